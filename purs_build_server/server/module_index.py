import asyncio
import glob
import logging
import os
import re
from dataclasses import dataclass

from .errors import ModuleNameMissing
from .options import BuildOptions

__all__ = [
    "ModuleRecord",
    "ModuleIndex",
    "module_name",
    "rewrite_references",
    "bundle_reference",
]

MODULE_PATTERN = re.compile(r"(?:^|\n)module\s+([\w\.]+)", re.IGNORECASE)
SIBLING_REQUIRE = re.compile(r"""require\(['"]\.\./([\w\.]+)['"]\)""")
FOREIGN_REQUIRE = re.compile(r"""require\(['"]\./foreign['"]\)""")


def module_name(source: str, path: str = "<unknown>") -> str:
    if match := MODULE_PATTERN.search(source):
        return match.group(1)

    raise ModuleNameMissing(path)


@dataclass(frozen=True)
class ModuleRecord:
    name: str
    src_path: str
    src_dir: str
    js_path: str

    @staticmethod
    def parse(source: str, src_path: str, options: BuildOptions) -> "ModuleRecord":
        src_path = os.path.abspath(src_path)
        name = module_name(source, src_path)

        return ModuleRecord(
            name=name,
            src_path=src_path,
            src_dir=os.path.dirname(src_path),
            js_path=options.module_output(name),
        )


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as file:
        return file.read()


class ModuleIndex:
    """Maps module names to the absolute path of the source file declaring them"""

    def __init__(self, globs: list[str], context: str):
        self.globs = globs
        self.context = context
        self._modules: dict[str, str] | None = None
        self._building: asyncio.Task[dict[str, str]] | None = None

    def discover(self) -> list[str]:
        paths: set[str] = set()

        for pattern in self.globs:
            if not os.path.isabs(pattern):
                pattern = os.path.join(self.context, pattern)
            paths.update(glob.glob(pattern, recursive=True))

        return sorted(os.path.abspath(p) for p in paths if os.path.isfile(p))

    async def _build(self) -> dict[str, str]:
        modules: dict[str, str] = {}
        paths = self.discover()
        sources = await asyncio.gather(
            *(asyncio.to_thread(_read, path) for path in paths), return_exceptions=True
        )

        for path, source in zip(paths, sources):
            if isinstance(source, (OSError, UnicodeDecodeError)):
                logging.warning(f"Skipping {path}: {source}")
                continue
            if isinstance(source, BaseException):
                raise source

            try:
                modules[module_name(source, path)] = path
            except ModuleNameMissing as exc:
                logging.warning(f"Skipping {exc.path}: no module declaration")

        logging.debug(f"Indexed {len(modules)} modules")
        self._modules = modules
        return modules

    async def build(self) -> dict[str, str]:
        if self._modules is not None:
            return self._modules

        if self._building is None:
            self._building = asyncio.create_task(self._build())

        try:
            return await asyncio.shield(self._building)
        except Exception:
            self._building = None
            raise

    def invalidate(self):
        self._modules = None
        self._building = None

    def dump(self) -> str:
        if self._modules is None:
            return "module index not built"

        return "\n".join(f"{name} -> {path}" for name, path in sorted(self._modules.items()))


def rewrite_references(
    js: str, record: ModuleRecord, modules: dict[str, str], options: BuildOptions
) -> str:
    """Point sibling requires back at module sources and the foreign import at its output"""

    def sibling(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in modules:
            logging.warning(f"Module {record.name} requires unknown module {name}")
            return match.group(0)

        return f'require("{modules[name]}")'

    foreign = f'require("{options.module_output(record.name, "foreign.js")}")'

    js = SIBLING_REQUIRE.sub(sibling, js)
    return FOREIGN_REQUIRE.sub(lambda _: foreign, js)


def bundle_reference(record: ModuleRecord, options: BuildOptions) -> str:
    bundle = os.path.relpath(options.bundle_path, record.src_dir)
    return f'module.exports = require("{bundle}")["{record.name}"]'
