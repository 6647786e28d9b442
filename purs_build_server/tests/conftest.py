import json
import os
import shlex
import sys
from pathlib import Path
from typing import Awaitable, Callable

import pytest

from ..server.options import BuildOptions
from ..server.process import ProcessResult, ProcessRunner

FAKE_IDE_SERVER = """
import json
import sys

with open(sys.argv[1]) as file:
    responses = json.load(file)

counts = {}
for line in sys.stdin:
    request = json.loads(line)
    with open(sys.argv[2], "a") as log:
        log.write(line)

    command = request["command"]
    queue = responses.get(command, [])
    index = counts.get(command, 0)
    counts[command] = index + 1
    reply = queue[min(index, len(queue) - 1)] if queue else {"resultType": "success", "result": []}

    if isinstance(reply, dict) and "stderr" in reply:
        sys.stderr.write(reply["stderr"] + "\\n")
        sys.stderr.flush()
        continue

    sys.stdout.write((reply if isinstance(reply, str) else json.dumps(reply)) + "\\n")
    sys.stdout.flush()
"""


def python_command(*args: str | Path) -> str:
    return " ".join(shlex.quote(str(a)) for a in [sys.executable, *args])


@pytest.fixture
def project(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    src.mkdir()
    (src / "A.purs").write_text("module A where\n\nvalue = 1\n")
    (src / "B.purs").write_text("module B where\n\nimport A\n\nother = A.value\n")
    (src / "B.js").write_text("exports.native = 1;\n")
    return tmp_path


@pytest.fixture
def options(project: Path) -> BuildOptions:
    return BuildOptions(
        context=str(project),
        src=[os.path.join("src", "**", "*.purs")],
        ffi=[os.path.join("src", "**", "*.js")],
        ide_retry_delay=0,
    )


class IdeServerScript:
    def __init__(self, directory: Path):
        self.script = directory / "fake_ide_server.py"
        self.script.write_text(FAKE_IDE_SERVER)
        self.responses = directory / "responses.json"
        self.log = directory / "requests.log"
        self.respond({})

    def respond(self, responses: dict):
        self.responses.write_text(json.dumps(responses))

    @property
    def command(self) -> str:
        return python_command(self.script, self.responses, self.log)

    def requests(self) -> list[dict]:
        if not self.log.exists():
            return []
        return [json.loads(line) for line in self.log.read_text().splitlines()]


@pytest.fixture
def ide_server(tmp_path: Path) -> IdeServerScript:
    return IdeServerScript(tmp_path)


Handler = Callable[[str, list[str]], Awaitable[ProcessResult]]


class FakeRunner(ProcessRunner):
    """Records every tool run; long-lived processes are still spawned for real"""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.calls: list[tuple[str, list[str]]] = []

    async def run(self, command: str, args: list[str], cwd: str | None = None) -> ProcessResult:
        self.calls.append((command, args))
        return await self.handler(command, args)

    def commands(self, command: str) -> list[list[str]]:
        return [args for c, args in self.calls if c == command]


COMPILED = {
    "A": 'exports.value = 1;\n',
    "B": 'var A = require("../A");\nvar $foreign = require("./foreign");\nexports.other = A.value;\n',
}


def write_output(options: BuildOptions, modules: dict[str, str] = COMPILED):
    for name, js in modules.items():
        path = Path(options.module_output(name))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(js)


@pytest.fixture
def compiler(options: BuildOptions) -> FakeRunner:
    async def handler(command: str, args: list[str]) -> ProcessResult:
        if command == options.compiler:
            write_output(options)
            return ProcessResult("", "Compiling A\n", 0, "Compiling A\n")

        Path(options.bundle_path).write_text("var PS = {};\n")
        return ProcessResult("", "", 0)

    return FakeRunner(handler)
