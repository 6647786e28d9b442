import argparse
import logging
from typing import Any

from lsprotocol import types as lsp

import purs_build_server

from .server import PursBuildServer
from .server.features import build


def create_server():
    server = PursBuildServer("purs-build-server", purs_build_server.__version__)

    @server.feature(lsp.INITIALIZE)
    def initialize(ls: PursBuildServer, params: lsp.InitializeParams):
        if isinstance(params.initialization_options, dict):
            ls.set_client_options(params.initialization_options)

    @server.feature(lsp.INITIALIZED)
    def initialized(ls: PursBuildServer, params: lsp.InitializedParams):
        ls.setup_workspaces()

    @server.feature(lsp.WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
    def folders_changed(
        ls: PursBuildServer, params: lsp.DidChangeWorkspaceFoldersParams
    ):
        ls.setup_workspaces()

    @server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
    async def did_open(ls: PursBuildServer, params: lsp.DidOpenTextDocumentParams):
        await build.did_open(ls, params)

    @server.feature(lsp.TEXT_DOCUMENT_DID_SAVE)
    async def did_save(ls: PursBuildServer, params: lsp.DidSaveTextDocumentParams):
        await build.did_save(ls, params)

    @server.command("purs.build.resolveModule")
    async def resolve_module(ls: PursBuildServer, args: list[Any]):
        return await build.resolve_module(ls, str(args[0]))

    @server.command("purs.build.invalidate")
    def invalidate(ls: PursBuildServer, *args):
        ls.invalidate()

    @server.command("purs.build.dumpModuleIndex")
    def dump(ls: PursBuildServer, *args):
        ls.show_message_log(build.dump_module_indices(ls))

    return server


def add_arguments(parser: argparse.ArgumentParser):
    parser.description = "PureScript build coordination server"

    parser.add_argument("--tcp", action="store_true", help="Use TCP server")
    parser.add_argument("--ws", action="store_true", help="Use WebSocket server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind to this address")
    parser.add_argument("--port", type=int, default=2087, help="Bind to this port")
    parser.add_argument("--compiler", type=str, help="Compiler command, e.g. psc or psa")
    parser.add_argument("--output", type=str, help="Compiler output directory")
    parser.add_argument(
        "--ide",
        action="store_true",
        default=None,
        help="Use the IDE server for incremental rebuilds",
    )
    parser.add_argument(
        "--bundle",
        action="store_true",
        default=None,
        help="Bundle the compiled modules into a single file",
    )
    parser.add_argument(
        "--no-warnings",
        dest="warnings",
        action="store_false",
        default=None,
        help="Do not report compiler warnings",
    )


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    overrides = {
        "compiler": args.compiler,
        "output": args.output,
        "ide": args.ide,
        "bundle": args.bundle,
        "warnings": args.warnings,
    }
    return {key: value for key, value in overrides.items() if value is not None}


def main():
    parser = argparse.ArgumentParser()
    add_arguments(parser)
    args = parser.parse_args()

    server = create_server()
    server.set_overrides(overrides_from_args(args))
    logging.info(f"Starting purs-build-server {purs_build_server.__version__}")

    if args.tcp:
        server.start_tcp(args.host, args.port)
    elif args.ws:
        server.start_ws(args.host, args.port)
    else:
        server.start_io()


if __name__ == "__main__":
    main()
