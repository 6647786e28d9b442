import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from .utils.flags import command_line

__all__ = ["ProcessEvent", "ProcessResult", "ProcessHandle", "ProcessRunner"]

# Responses from the IDE server can be very long single lines
STREAM_LIMIT = 2**26


@dataclass
class ProcessEvent:
    kind: Literal["stdout", "stderr", "close"]
    data: str = ""
    exit_code: int | None = None


@dataclass
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int
    # stdout and stderr interleaved in arrival order
    output: str = ""


class ProcessHandle:
    """A running process whose output streams are delivered as line events.

    One task pumps each output stream into `events`; a final `close` event
    carrying the exit code is queued once both streams reach EOF.
    """

    def __init__(self, process: asyncio.subprocess.Process, args: list[str]):
        self.args = args
        self.events: asyncio.Queue[ProcessEvent] = asyncio.Queue()
        self._process = process
        self._closed = False
        self._watcher = asyncio.create_task(self._watch())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def closed(self) -> bool:
        return self._closed

    async def _pump(self, stream: asyncio.StreamReader | None, kind: Literal["stdout", "stderr"]):
        if stream is None:
            return

        while line := await stream.readline():
            await self.events.put(ProcessEvent(kind, line.decode("utf-8", errors="replace")))

    async def _watch(self):
        await asyncio.gather(
            self._pump(self._process.stdout, "stdout"),
            self._pump(self._process.stderr, "stderr"),
        )
        exit_code = await self._process.wait()
        self._closed = True
        logging.debug(f"Process {self.args[0]} ({self.pid}) exited with {exit_code}")
        await self.events.put(ProcessEvent("close", exit_code=exit_code))

    async def next_event(self) -> ProcessEvent:
        return await self.events.get()

    def drain(self) -> list[ProcessEvent]:
        """Discard and return every event queued so far"""
        drained = []
        while not self.events.empty():
            drained.append(self.events.get_nowait())
        return drained

    async def write_line(self, line: str):
        if self._process.stdin is None:
            raise BrokenPipeError("process was started without a stdin pipe")

        self._process.stdin.write(line.encode("utf-8") + b"\n")
        await self._process.stdin.drain()

    def close_stdin(self):
        if self._process.stdin is not None and not self._process.stdin.is_closing():
            self._process.stdin.close()

    def kill(self):
        if self._closed or self._process.returncode is not None:
            return

        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    async def wait(self) -> int:
        await self._watcher
        return self._process.returncode


class ProcessRunner:
    """Spawns external tools. A nonzero exit status is reported, never raised."""

    async def spawn(self, command: str, args: list[str], cwd: str | None = None) -> ProcessHandle:
        argv = command_line(command, args)
        logging.debug(f"spawning {argv}")

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            limit=STREAM_LIMIT,
        )

        return ProcessHandle(process, argv)

    async def run(self, command: str, args: list[str], cwd: str | None = None) -> ProcessResult:
        handle = await self.spawn(command, args, cwd)
        handle.close_stdin()

        stdout: list[str] = []
        stderr: list[str] = []
        combined: list[str] = []

        while True:
            event = await handle.next_event()

            if event.kind == "close":
                return ProcessResult(
                    "".join(stdout), "".join(stderr), int(event.exit_code), "".join(combined)
                )

            (stdout if event.kind == "stdout" else stderr).append(event.data)
            combined.append(event.data)
