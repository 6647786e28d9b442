import asyncio
import logging
import os
from dataclasses import dataclass, field

from .diagnostics import RenderedDiagnostic
from .errors import (
    BuildError,
    BundleFailure,
    CompileFailure,
    DependentCompileFailure,
    RebuildFailure,
    ServerUnavailable,
)
from .ide_client import IdeServerClient
from .module_index import ModuleIndex, ModuleRecord, bundle_reference, rewrite_references
from .options import BuildOptions
from .process import ProcessRunner
from .utils.flags import to_flags

__all__ = ["PendingRequest", "CompilationCache", "BuildCoordinator"]


@dataclass
class PendingRequest:
    record: ModuleRecord
    future: asyncio.Future[str]

    def resolve(self, js: str):
        if not self.future.done():
            self.future.set_result(js)

    def reject(self, error: BaseException):
        if not self.future.done():
            self.future.set_exception(error)


@dataclass
class CompilationCache:
    """State of one build generation, replaced whenever the host invalidates"""

    ide_server: IdeServerClient
    module_index: ModuleIndex

    rebuild_requested: bool = False

    compilation: asyncio.Task[None] | None = None
    compilation_finished: bool = False
    compile_error: BuildError | None = None
    deferred: list[PendingRequest] = field(default_factory=list)
    flush: asyncio.Task[None] | None = None

    warnings: str | None = None
    errors: str | None = None
    diagnostics: list[RenderedDiagnostic] = field(default_factory=list)

    bundle_modules: list[str] = field(default_factory=list)
    bundle: asyncio.Task[list[str]] | None = None

    @property
    def compilation_started(self) -> bool:
        return self.compilation is not None

    def reset(self, rebuild: bool) -> "CompilationCache":
        # Only the IDE server survives so that it can be reused or torn down
        return CompilationCache(
            ide_server=self.ide_server,
            module_index=ModuleIndex(self.module_index.globs, self.module_index.context),
            rebuild_requested=rebuild,
        )


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as file:
        return file.read()


def _append(path: str, text: str):
    with open(path, "a", encoding="utf-8") as file:
        file.write(text)


class BuildCoordinator:
    """Decides how each module request is served.

    Within a generation the whole project is compiled at most once; requests
    that arrive before that compile finishes wait for it. After an
    invalidation in IDE mode, requests are served by incremental rebuilds
    through the IDE server instead.
    """

    def __init__(self, options: BuildOptions, runner: ProcessRunner | None = None):
        self.options = options
        self.runner = runner or ProcessRunner()
        self.cache = CompilationCache(
            ide_server=IdeServerClient(options, self.runner),
            module_index=ModuleIndex(options.src, options.context),
        )

    def invalidate(self):
        logging.debug("Invalidating compilation cache")
        self.cache = self.cache.reset(rebuild=self.options.ide)

    def shutdown(self):
        self.cache.ide_server.teardown()

    async def resolve_module(self, source: str, src_path: str) -> str:
        cache = self.cache
        record = ModuleRecord.parse(source, src_path, self.options)

        logging.debug(f"resolving module {record.name}")

        if self.options.bundle and record.name not in cache.bundle_modules:
            cache.bundle_modules.append(record.name)

        if cache.rebuild_requested:
            try:
                return await self._rebuild(cache, record)
            except ServerUnavailable as exc:
                logging.warning(f"{exc}, falling back to full compilation")
                cache.rebuild_requested = False

        if cache.compilation_finished:
            if cache.compile_error is not None:
                raise DependentCompileFailure() from cache.compile_error
            return await self.to_javascript(cache, record)

        pending = PendingRequest(record, asyncio.get_running_loop().create_future())
        cache.deferred.append(pending)

        if cache.flush is None:
            cache.flush = asyncio.create_task(self._compile_deferred(cache))

        return await pending.future

    async def _compile_deferred(self, cache: CompilationCache):
        try:
            await self.compile(cache)
        except Exception as exc:
            first, *rest = cache.deferred
            first.reject(exc)
            for pending in rest:
                pending.reject(DependentCompileFailure())
            return

        if self.cache is cache:
            cache.ide_server.teardown()

        async def load(pending: PendingRequest):
            try:
                pending.resolve(await self.to_javascript(cache, pending.record))
            except Exception as exc:
                pending.reject(exc)

        await asyncio.gather(*(load(pending) for pending in list(cache.deferred)))

    async def compile(self, cache: CompilationCache | None = None):
        """Compile the whole project, once per generation"""
        cache = cache or self.cache

        if cache.compilation is None:
            cache.compilation = asyncio.create_task(self._run_compiler(cache))

        await asyncio.shield(cache.compilation)

    def compiler_args(self) -> list[str]:
        return to_flags(
            {
                "_": self.options.src,
                "ffi": self.options.ffi,
                "output": self.options.output,
                **self.options.compiler_args,
            }
        )

    async def _run_compiler(self, cache: CompilationCache):
        args = self.compiler_args()
        logging.debug(f"spawning compiler {self.options.compiler} {args}")
        logging.info("Compiling PureScript...")

        try:
            try:
                result = await self.runner.run(self.options.compiler, args, cwd=self.options.context)
            except OSError as exc:
                cache.errors = f"Failed to start {self.options.compiler}: {exc}"
                raise CompileFailure(cache.errors) from exc

            logging.info("Finished compiling PureScript.")

            if result.exit_code != 0:
                cache.errors = result.output
                raise CompileFailure(result.output, result.exit_code)

            cache.warnings = result.output

            if self.options.bundle:
                await self.bundle(cache)
        except BuildError as exc:
            cache.compile_error = exc
            raise
        finally:
            cache.compilation_finished = True

    def bundler_args(self, cache: CompilationCache) -> list[str]:
        args = to_flags(
            {
                "_": [os.path.join(self.options.output, "*", "*.js")],
                "output": self.options.bundle_output,
                "namespace": self.options.bundle_namespace,
                **self.options.bundler_args,
            }
        )
        for name in cache.bundle_modules:
            args.extend(["--module", name])
        return args

    async def bundle(self, cache: CompilationCache | None = None) -> list[str]:
        cache = cache or self.cache

        if cache.bundle is None:
            cache.bundle = asyncio.create_task(self._run_bundler(cache))

        return await asyncio.shield(cache.bundle)

    async def _run_bundler(self, cache: CompilationCache) -> list[str]:
        args = self.bundler_args(cache)
        logging.debug(f"spawning bundler {self.options.bundler} {' '.join(args)}")
        logging.info("Bundling PureScript...")

        try:
            result = await self.runner.run(self.options.bundler, args, cwd=self.options.context)
        except OSError as exc:
            cache.errors = (cache.errors or "") + f"Failed to start {self.options.bundler}: {exc}"
            raise BundleFailure(str(exc)) from exc

        if result.exit_code != 0:
            cache.errors = (cache.errors or "") + result.stderr
            raise BundleFailure(result.stderr, result.exit_code)

        await asyncio.to_thread(
            _append, self.options.bundle_path, f"module.exports = {self.options.bundle_namespace}"
        )
        return result.stderr.splitlines()

    async def to_javascript(self, cache: CompilationCache, record: ModuleRecord) -> str:
        logging.debug(f"loading JavaScript for {record.name}")

        if self.options.bundle:
            return bundle_reference(record, self.options)

        js, modules = await asyncio.gather(
            asyncio.to_thread(_read, record.js_path), cache.module_index.build()
        )
        return rewrite_references(js, record, modules, self.options)

    async def _rebuild(self, cache: CompilationCache, record: ModuleRecord) -> str:
        ide = cache.ide_server

        if not await ide.connect():
            raise ServerUnavailable(ide.attempts)

        try:
            result = await ide.rebuild(record.src_path, lambda: self.compile(cache))
        except RebuildFailure as exc:
            if exc.messages:
                cache.errors = exc.text
                cache.diagnostics = exc.messages
            raise

        if result.messages:
            cache.warnings = result.text
            cache.diagnostics = result.messages

        return await self.to_javascript(cache, record)
