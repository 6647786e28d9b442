import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from lsprotocol import types as lsp
from pygls.server import LanguageServer

from .coordinator import BuildCoordinator
from .errors import ConfigError
from .options import load_options

logging.basicConfig(
    filename="purs-build.log",
    filemode="w",
    level=logging.DEBUG,
    format="%(levelname)s:%(filename)s:%(lineno)d:\t%(message)s",
)


class PursBuildServer(LanguageServer):
    _coordinators: dict[Path, BuildCoordinator] = dict()
    _overrides: dict[str, Any] = {}
    _client_options: dict[str, Any] = {}

    def __init__(self, *args):
        super().__init__(*args)
        self._coordinators = {}
        self._overrides = {}
        self._client_options = {}

    def set_overrides(self, overrides: dict[str, Any]):
        """Options that take precedence over every workspace config"""
        self._overrides = {**self._overrides, **overrides}

    def set_client_options(self, options: dict[str, Any]):
        self._client_options = dict(options)

    def create_coordinator(self, root: Path) -> BuildCoordinator | None:
        try:
            options = load_options(root, {**self._client_options, **self._overrides})
        except ConfigError as exc:
            message = f"Invalid build configuration in {root}\n{exc}"
            logging.error(message)
            self.show_message(message.split("\n")[0], lsp.MessageType.Error)
            self.show_message_log(message, lsp.MessageType.Error)
            return None

        logging.debug(f"Build options for {root}: {options}")
        return BuildCoordinator(options)

    def workspace_roots(self) -> list[Path]:
        roots = [self.uri_to_path(w.uri) for w in self.workspace.folders.values()]

        if not roots and self.workspace.root_path:
            roots.append(Path(self.workspace.root_path))

        return roots

    def setup_workspaces(self):
        for coordinator in self._coordinators.values():
            coordinator.shutdown()
        self._coordinators = {}

        for root in self.workspace_roots():
            if coordinator := self.create_coordinator(root):
                self._coordinators[root] = coordinator

    def uri_to_path(self, uri: str):
        parsed = urlparse(uri)
        host = "{0}{0}{mnt}{0}".format(os.path.sep, mnt=parsed.netloc)
        norm_path = os.path.normpath(
            os.path.join(host, url2pathname(unquote(parsed.path)))
        )
        return Path(norm_path)

    def get_coordinator(self, path: Path) -> BuildCoordinator | None:
        parents = [root for root in self._coordinators if path.is_relative_to(root)]

        if len(parents) <= 0:
            return None

        # The innermost workspace wins
        parents = sorted(parents, key=lambda p: len(p.parts))
        return self._coordinators[parents[-1]]

    def coordinators(self) -> list[BuildCoordinator]:
        return list(self._coordinators.values())

    def invalidate(self, path: Path | None = None):
        if path is None:
            for coordinator in self._coordinators.values():
                coordinator.invalidate()
        elif coordinator := self.get_coordinator(path):
            coordinator.invalidate()

    def shutdown_coordinators(self):
        for coordinator in self._coordinators.values():
            coordinator.shutdown()

    def shutdown(self):
        self.shutdown_coordinators()
        super().shutdown()
