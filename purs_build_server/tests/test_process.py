import pytest

from ..server.process import ProcessRunner
from .conftest import python_command

ECHO = "import sys\nfor line in sys.stdin:\n    print(line.strip().upper(), flush=True)\n"


@pytest.mark.asyncio
async def test_run_collects_output_and_exit_code():
    result = await ProcessRunner().run(
        python_command(),
        ["-c", "import sys; print('out', flush=True); print('err', file=sys.stderr); sys.exit(3)"],
    )

    assert result.exit_code == 3
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"
    assert sorted(result.output.splitlines()) == ["err", "out"]


@pytest.mark.asyncio
async def test_spawn_streams_lines():
    handle = await ProcessRunner().spawn(python_command(), ["-c", ECHO])

    await handle.write_line("hello")
    event = await handle.next_event()
    assert (event.kind, event.data) == ("stdout", "HELLO\n")

    handle.close_stdin()
    event = await handle.next_event()
    assert event.kind == "close"
    assert event.exit_code == 0
    assert handle.closed


@pytest.mark.asyncio
async def test_kill():
    handle = await ProcessRunner().spawn(python_command(), ["-c", "import time; time.sleep(60)"])

    handle.kill()

    assert await handle.wait() != 0


@pytest.mark.asyncio
async def test_missing_executable():
    with pytest.raises(OSError):
        await ProcessRunner().run("definitely-not-a-real-compiler", [])
