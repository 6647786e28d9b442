import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .diagnostics import Diagnostic, RenderedDiagnostic, render_file
from .errors import BuildError, ProtocolError, RebuildFailure
from .options import BuildOptions
from .process import ProcessHandle, ProcessRunner
from .utils.flags import to_flags
from .utils.retry import retry

__all__ = ["IdeServerClient", "RebuildResult"]


@dataclass
class RebuildResult:
    messages: list[RenderedDiagnostic] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(m.text for m in self.messages)


class IdeServerClient:
    """Owns the long-lived IDE server process and speaks its JSON line protocol.

    Requests are strictly sequential: each one writes a single JSON line to the
    server's stdin and waits for a single line on its stdout. Anything written
    to stderr while a request is pending fails that request.
    """

    def __init__(self, options: BuildOptions, runner: ProcessRunner | None = None):
        self.options = options
        self.runner = runner or ProcessRunner()
        self.attempts = 0
        self._process: ProcessHandle | None = None
        self._ready = False
        self._connecting = False
        self._connect_lock = asyncio.Lock()
        self._request_lock = asyncio.Lock()

    @property
    def state(self) -> str:
        if self._ready:
            return "ready"
        if self._connecting:
            return "connecting"
        return "absent"

    @property
    def ready(self) -> bool:
        return self._ready

    def server_args(self) -> list[str]:
        return to_flags({"outputDirectory": self.options.output_dir, **self.options.ide_args})

    async def _start(self):
        if self._process is not None and not self._process.closed:
            return

        args = self.server_args()
        logging.debug(f"attempting to start IDE server {self.options.ide_server} {args}")
        self._process = await self.runner.spawn(
            self.options.ide_server, args, cwd=self.options.context
        )

    async def request(self, body: dict[str, Any]) -> dict[str, Any]:
        async with self._request_lock:
            if self._process is None or self._process.closed:
                raise ProtocolError("IDE server is not running")

            process = self._process

            for stale in process.drain():
                if stale.kind == "close":
                    self._clear()
                    raise ProtocolError(f"IDE server exited with {stale.exit_code}")
                logging.debug(f"IDE server {stale.kind}: {stale.data.rstrip()}")

            logging.debug(f"IDE request {body}")
            try:
                await process.write_line(json.dumps(body))
            except (BrokenPipeError, ConnectionResetError) as exc:
                self._clear()
                raise ProtocolError(f"Failed to write to IDE server: {exc}") from exc

            event = await process.next_event()

            if event.kind == "close":
                self._clear()
                raise ProtocolError(f"IDE server exited with {event.exit_code}")
            if event.kind == "stderr":
                raise ProtocolError(event.data.strip())

            line = event.data.strip()
            logging.debug(f"IDE response {line[:500]}")

            if not line.startswith("{"):
                raise ProtocolError(f"Unexpected response from IDE server: {line}")

            try:
                response = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ProtocolError(f"Malformed response from IDE server: {exc}") from exc

            if not isinstance(response, dict):
                raise ProtocolError(f"Unexpected response from IDE server: {line}")

            return response

    async def load(self):
        response = await self.request({"command": "load"})
        if response.get("resultType") != "success":
            raise ProtocolError(f"IDE server failed to load modules: {response.get('result')}")

    async def _attempt(self):
        self.attempts += 1
        await self._start()
        await self.load()
        self._ready = True

    async def connect(self) -> bool:
        """Make sure a loaded server session exists.

        Returns False once every retry has failed; callers then fall back to
        full compilation.
        """
        async with self._connect_lock:
            if self._ready:
                return True

            self._connecting = True
            self.attempts = 0
            try:
                outcome = await retry(
                    self._attempt,
                    retries=self.options.ide_retries,
                    delay=self.options.ide_retry_delay,
                )
            finally:
                self._connecting = False

            if outcome.succeeded:
                logging.debug(f"Connected to IDE server after {outcome.attempts} attempts")
                return True

            logging.debug(outcome.error)
            logging.warning(
                "failed to connect to or start the IDE server, "
                "full compilation will occur on rebuild"
            )
            self.teardown()
            return False

    async def rebuild(
        self, file: str, full_compile: Callable[[], Awaitable[None]]
    ) -> RebuildResult:
        """Ask the server to rebuild a single file.

        A rebuild that fails because the server does not know a module is
        escalated to `full_compile`, after which the server reloads its
        module graph. Raises RebuildFailure if the rebuild (or the escalation)
        fails.
        """
        logging.debug(f"attempting rebuild with IDE server {file}")
        response = await self.request({"command": "rebuild", "params": {"file": file}})

        result = response.get("result")
        result_type = response.get("resultType")

        if not isinstance(result, list):
            if result_type == "success":
                return RebuildResult()
            raise RebuildFailure()

        severity = "error" if result_type == "error" else "warning"
        diagnostics = [Diagnostic.from_json(item, severity) for item in result]
        messages = list(
            await asyncio.gather(
                *(
                    render_file(
                        diagnostic,
                        i,
                        len(diagnostics),
                        self.options.context,
                        bool(self.options.ide_colors),
                    )
                    for i, diagnostic in enumerate(diagnostics)
                )
            )
        )

        if result_type != "error":
            return RebuildResult(messages)

        if any(d.error_code == "UnknownModule" for d in diagnostics):
            logging.info("Unknown module, attempting full recompile")
            try:
                await full_compile()
                await self.load()
            except BuildError as exc:
                raise RebuildFailure() from exc

            return RebuildResult()

        raise RebuildFailure(messages)

    def _clear(self):
        self._process = None
        self._ready = False

    def teardown(self):
        """Kill the server; the next connect starts a fresh one"""
        if self._process is not None:
            logging.debug(f"Stopping IDE server ({self._process.pid})")
            self._process.kill()
        self._clear()
