from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .diagnostics import RenderedDiagnostic

__all__ = [
    "BuildError",
    "CompileFailure",
    "DependentCompileFailure",
    "BundleFailure",
    "RebuildFailure",
    "ProtocolError",
    "ServerUnavailable",
    "ModuleNameMissing",
    "ConfigError",
]


class BuildError(Exception):
    pass


class CompileFailure(BuildError):
    """The compiler exited with a nonzero status"""

    def __init__(self, output: str, exit_code: int | None = None):
        super().__init__(f"PureScript compilation failed (exit code {exit_code})")
        self.output = output
        self.exit_code = exit_code


class DependentCompileFailure(BuildError):
    """Raised on requests that were waiting on a compile triggered by another module"""

    def __init__(self):
        super().__init__("compilation triggered by a sibling module failed")


class BundleFailure(BuildError):
    def __init__(self, output: str, exit_code: int | None = None):
        super().__init__(f"PureScript bundling failed (exit code {exit_code})")
        self.output = output
        self.exit_code = exit_code


class RebuildFailure(BuildError):
    def __init__(self, messages: "list[RenderedDiagnostic] | None" = None):
        super().__init__("psc-ide rebuild failed")
        self.messages = messages or []

    @property
    def text(self) -> str:
        return "\n".join(m.text for m in self.messages)


class ProtocolError(BuildError):
    pass


class ServerUnavailable(BuildError):
    def __init__(self, attempts: int):
        super().__init__(f"IDE server unavailable after {attempts} attempts")
        self.attempts = attempts


class ModuleNameMissing(BuildError):
    def __init__(self, path: str):
        super().__init__(f"No module declaration found in {path}")
        self.path = path


class ConfigError(BuildError):
    pass
