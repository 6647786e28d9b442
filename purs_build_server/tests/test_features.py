import argparse
from pathlib import Path

from lsprotocol import types as lsp

from ..__main__ import add_arguments, overrides_from_args
from ..server.diagnostics import Diagnostic, Position, RenderedDiagnostic
from ..server.features.diagnostics import group_by_uri, to_lsp_diagnostic


def rendered(filename: str, severity="error") -> RenderedDiagnostic:
    diagnostic = Diagnostic(severity, "TypesDoNotUnify", filename, Position(2, 3, 4, 5), "message")
    return RenderedDiagnostic(diagnostic, "\n[1/1 TypesDoNotUnify] src/A.purs:2:3\n\n...\n\nmessage")


def test_to_lsp_diagnostic():
    diagnostic = to_lsp_diagnostic(rendered("/project/src/A.purs"), "PursBuildServer")

    assert diagnostic.range == lsp.Range(
        start=lsp.Position(line=1, character=2), end=lsp.Position(line=3, character=4)
    )
    assert diagnostic.severity == lsp.DiagnosticSeverity.Error
    assert diagnostic.code == "TypesDoNotUnify"
    assert diagnostic.message.startswith("[1/1 TypesDoNotUnify]")


def test_warnings_keep_their_severity():
    diagnostic = to_lsp_diagnostic(rendered("/project/src/A.purs", "warning"), "PursBuildServer")

    assert diagnostic.severity == lsp.DiagnosticSeverity.Warning


def test_group_by_uri(tmp_path: Path):
    a = str(tmp_path / "A.purs")
    b = str(tmp_path / "B.purs")

    grouped = group_by_uri([rendered(a), rendered(b), rendered(a)], "PursBuildServer")

    assert {uri: len(items) for uri, items in grouped.items()} == {
        Path(a).as_uri(): 2,
        Path(b).as_uri(): 1,
    }


def test_command_line_overrides():
    parser = argparse.ArgumentParser()
    add_arguments(parser)

    assert overrides_from_args(parser.parse_args([])) == {}
    assert overrides_from_args(
        parser.parse_args(["--compiler", "psa", "--ide", "--no-warnings"])
    ) == {"compiler": "psa", "ide": True, "warnings": False}
