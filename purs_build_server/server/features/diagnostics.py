import logging
from pathlib import Path

import lsprotocol.types as lsp

from .. import PursBuildServer
from ..coordinator import BuildCoordinator, CompilationCache
from ..diagnostics import RenderedDiagnostic

SEVERITIES = {
    "error": lsp.DiagnosticSeverity.Error,
    "warning": lsp.DiagnosticSeverity.Warning,
}


def to_lsp_diagnostic(rendered: RenderedDiagnostic, source: str) -> lsp.Diagnostic:
    pos = rendered.diagnostic.position

    return lsp.Diagnostic(
        range=lsp.Range(
            start=lsp.Position(
                line=max(pos.start_line - 1, 0), character=max(pos.start_column - 1, 0)
            ),
            end=lsp.Position(
                line=max(pos.end_line - 1, 0), character=max(pos.end_column - 1, 0)
            ),
        ),
        message=rendered.text.strip(),
        severity=SEVERITIES[rendered.diagnostic.severity],
        code=rendered.diagnostic.error_code,
        source=source,
    )


def group_by_uri(
    diagnostics: list[RenderedDiagnostic], source: str
) -> dict[str, list[lsp.Diagnostic]]:
    grouped: dict[str, list[lsp.Diagnostic]] = {}

    for rendered in diagnostics:
        uri = Path(rendered.diagnostic.filename).absolute().as_uri()
        grouped.setdefault(uri, []).append(to_lsp_diagnostic(rendered, source))

    return grouped


def report_compilation(
    ls: PursBuildServer, coordinator: BuildCoordinator, cache: CompilationCache
):
    """Surface the generation's compiler output to the client"""
    if coordinator.options.warnings and cache.warnings:
        ls.show_message_log(
            f"PureScript compilation:\n{cache.warnings}", lsp.MessageType.Warning
        )

    if cache.errors:
        logging.error(f"PureScript compilation:\n{cache.errors}")
        ls.show_message("PureScript compilation failed", lsp.MessageType.Error)
        ls.show_message_log(
            f"PureScript compilation:\n{cache.errors}", lsp.MessageType.Error
        )


def publish_diagnostics(
    ls: PursBuildServer,
    coordinator: BuildCoordinator,
    cache: CompilationCache,
    uri: str,
):
    report_compilation(ls, coordinator, cache)

    diagnostics = [
        d
        for d in cache.diagnostics
        if coordinator.options.warnings or d.diagnostic.severity == "error"
    ]
    grouped = group_by_uri(diagnostics, type(ls).__name__)
    grouped.setdefault(uri, [])

    for target, items in grouped.items():
        logging.debug(f"Sending diagnostics for {target}: {items}")
        ls.publish_diagnostics(target, items)
