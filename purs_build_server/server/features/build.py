import logging
from pathlib import Path

from lsprotocol import types as lsp

from .. import PursBuildServer
from ..errors import BuildError, ModuleNameMissing
from .diagnostics import publish_diagnostics

SOURCE_EXTENSION = ".purs"


async def build_document(ls: PursBuildServer, uri: str) -> str | None:
    """Resolve the module of an open document and report the outcome.

    Returns the compiled JavaScript, or None when the document is not part of
    a workspace or could not be built.
    """
    text_doc = ls.workspace.get_text_document(uri)
    path = Path(text_doc.path)

    if path.suffix != SOURCE_EXTENSION:
        return None

    if (coordinator := ls.get_coordinator(path)) is None:
        logging.debug(f"{path} is not in a workspace")
        return None

    cache = coordinator.cache
    js = None

    try:
        js = await coordinator.resolve_module(text_doc.source, str(path))
    except ModuleNameMissing as exc:
        logging.debug(exc)
        return None
    except BuildError as exc:
        logging.error(f"Failed to build {path}: {exc}")
    except OSError as exc:
        logging.error(f"Failed to load compiled output for {path}: {exc}")
        ls.show_message_log(str(exc), lsp.MessageType.Error)

    publish_diagnostics(ls, coordinator, cache, uri)
    return js


async def did_open(ls: PursBuildServer, params: lsp.DidOpenTextDocumentParams):
    await build_document(ls, params.text_document.uri)


async def did_save(ls: PursBuildServer, params: lsp.DidSaveTextDocumentParams):
    ls.invalidate(ls.uri_to_path(params.text_document.uri))
    await build_document(ls, params.text_document.uri)


async def resolve_module(ls: PursBuildServer, uri: str) -> str:
    js = await build_document(ls, uri)

    if js is None:
        return f"// Unable to build {uri}, see the server log"

    return js


def dump_module_indices(ls: PursBuildServer) -> str:
    dumps = []

    for coordinator in ls.coordinators():
        dumps.append(f"{coordinator.options.context}:\n{coordinator.cache.module_index.dump()}")

    return "\n\n".join(dumps)
