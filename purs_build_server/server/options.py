import json
import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError

__all__ = ["BuildOptions", "CONFIG_FILE", "load_options", "normalize_key"]

CONFIG_FILE = "purs-build.json"


def default_src() -> list[str]:
    return [
        os.path.join("src", "**", "*.purs"),
        os.path.join("bower_components", "purescript-*", "src", "**", "*.purs"),
    ]


def default_ffi() -> list[str]:
    return [
        os.path.join("src", "**", "*.js"),
        os.path.join("bower_components", "purescript-*", "src", "**", "*.js"),
    ]


@dataclass
class BuildOptions:
    context: str = field(default_factory=os.getcwd)

    compiler: str = "psc"
    compiler_args: dict[str, Any] = field(default_factory=dict)

    bundler: str = "psc-bundle"
    bundler_args: dict[str, Any] = field(default_factory=dict)
    bundle: bool = False
    bundle_output: str = os.path.join("output", "bundle.js")
    bundle_namespace: str = "PS"

    ide: bool = False
    ide_server: str = "psc-ide-server"
    ide_args: dict[str, Any] = field(default_factory=dict)
    ide_colors: bool | None = None
    ide_retries: int = 9
    ide_retry_delay: float = 0.333

    warnings: bool = True
    output: str = "output"
    src: list[str] = field(default_factory=default_src)
    ffi: list[str] = field(default_factory=default_ffi)

    def __post_init__(self):
        if self.ide_colors is None:
            self.ide_colors = Path(self.compiler.split()[0]).name == "psa" if self.compiler else False

    def resolve(self, path: str) -> str:
        """Absolute form of a path given relative to the project context"""
        return os.path.normpath(os.path.join(self.context, path))

    @property
    def output_dir(self) -> str:
        return self.resolve(self.output)

    @property
    def bundle_path(self) -> str:
        return self.resolve(self.bundle_output)

    def module_output(self, module_name: str, filename: str = "index.js") -> str:
        return os.path.join(self.output_dir, module_name, filename)

    def merge(self, overrides: dict[str, Any]) -> "BuildOptions":
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}

        for key, value in overrides.items():
            name = normalize_key(key)
            if name not in known:
                raise ConfigError(f"Unknown build option `{key}`")
            changes[name] = value

        # Re-derive the color default when only the compiler changes
        if "compiler" in changes and "ide_colors" not in changes:
            changes["ide_colors"] = None

        return replace(self, **changes)


# Options of the original loader that were named after the compiler binaries
ALIASES = {
    "psc": "compiler",
    "psc_args": "compiler_args",
    "psc_bundle": "bundler",
    "psc_bundle_args": "bundler_args",
    "psc_ide": "ide",
    "psc_ide_args": "ide_args",
    "psc_ide_colors": "ide_colors",
}


def normalize_key(key: str) -> str:
    key = re.sub(r"[A-Z]", lambda m: "_" + m.group(0).lower(), key).lstrip("_")
    return ALIASES.get(key, key)


def load_options(
    root: Path, overrides: dict[str, Any] | None = None
) -> BuildOptions:
    """Build the options for a workspace.

    Defaults are overlaid by `purs-build.json` in the workspace root, then by
    `overrides` (client initialization options and command line flags).
    """
    options = BuildOptions(context=str(root))
    config_path = root / CONFIG_FILE

    if config_path.exists():
        try:
            with open(config_path) as file:
                config = json.loads(file.read())
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Failed to parse {config_path}\n{exc}") from exc

        if not isinstance(config, dict):
            raise ConfigError(f"{config_path} must contain a JSON object")

        logging.debug(f"Loaded build config {config_path}: {config}")
        options = options.merge(config)

    if overrides:
        options = options.merge(overrides)

    return options
