"""
Reporter

Builds the ChainReport for a run and renders the per-layer breakdown.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from .main import (
    CONTRACT_VIOLATIONS,
    DEFAULT_ORDER,
    EXIT_CONFIG_ERROR,
    EXIT_NO_ARTIFACTS,
    EXIT_OK,
    EXIT_TOOL_FAILURE,
    ChainReport,
    Layer,
    LayerResult,
    LayerStatus,
)

STATUS_LABELS = {
    LayerStatus.PASS: "PASS",
    LayerStatus.FAIL: "FAIL",
    LayerStatus.SKIPPED: "SKIP",
}
NOT_RUN_LABEL = "----"


def failure_exit_code(result: LayerResult) -> int:
    """
    Process exit code for a failed layer.

    The tool's code passes through unless it would read as one of
    verichain's own codes or is not a valid exit status (killed by a
    signal); those become EXIT_TOOL_FAILURE. Codes 1/2/3 keep their
    contract-violation meaning only on the contract layer.
    """
    code = result.exit_code
    if code <= 0 or code > 255 or code in (EXIT_NO_ARTIFACTS, EXIT_CONFIG_ERROR):
        return EXIT_TOOL_FAILURE
    if code in CONTRACT_VIOLATIONS and result.layer != Layer.CONTRACT:
        return EXIT_TOOL_FAILURE
    return code


def compute_exit_code(results: Sequence[LayerResult]) -> int:
    """
    Exit code of a run: the first failure's exit code in execution order
    (see failure_exit_code); EXIT_NO_ARTIFACTS when every recorded layer was
    skipped; else 0.
    """
    for result in results:
        if result.status == LayerStatus.FAIL:
            return failure_exit_code(result)
    if results and all(r.status == LayerStatus.SKIPPED for r in results):
        return EXIT_NO_ARTIFACTS
    return EXIT_OK


def summarize(
    results: Sequence[LayerResult],
    order: Optional[Sequence[Layer]] = None,
    stop_on_fail: bool = True,
    root: Optional[Path] = None,
    duration_ms: int = 0,
) -> ChainReport:
    """Build the terminal report of a run from the executor's results"""
    return ChainReport(
        results=tuple(results),
        overall_exit_code=compute_exit_code(results),
        order=tuple(order) if order is not None else tuple(r.layer for r in results) or DEFAULT_ORDER,
        stop_on_fail=stop_on_fail,
        root=root,
        duration_ms=duration_ms,
    )


def describe_failure(result: LayerResult) -> str:
    """Short human description of why a layer failed"""
    if result.timed_out:
        return "timed out"
    if result.exit_code < 0:
        return f"killed by signal {-result.exit_code}"
    if result.layer == Layer.CONTRACT and result.exit_code in CONTRACT_VIOLATIONS:
        return f"contract {CONTRACT_VIOLATIONS[result.exit_code]}"
    first_line = result.message.splitlines()[0] if result.message else ""
    if first_line.startswith(("execution failure", "incomplete proof")):
        return first_line
    return "tool reported failure"


def describe(result: Optional[LayerResult]) -> str:
    if result is None:
        return "not run (halted upstream)"
    if result.status == LayerStatus.SKIPPED:
        return "skipped (no artifacts)"
    if result.status == LayerStatus.PASS:
        return f"passed ({result.technology})" if result.technology else "passed"
    return f"{describe_failure(result)} (exit {result.exit_code})"


def layer_label(result: Optional[LayerResult]) -> str:
    return STATUS_LABELS[result.status] if result else NOT_RUN_LABEL


def layer_line(
    layer: Layer,
    result: Optional[LayerResult],
    label: Optional[str] = None,
) -> str:
    """One breakdown line; ``label`` replaces the plain status label (e.g. colored)"""
    if label is None:
        label = layer_label(result)
    duration = f"  {result.duration_ms / 1000:.1f}s" if result and not result.skipped else ""
    return f"{layer.value:<9} {label}  {describe(result)}{duration}"


def status_line(report: ChainReport) -> str:
    first = report.first_failure
    if first is not None:
        mode = "halted" if report.stop_on_fail else "all-errors"
        return (
            f"FAILED: first failure in layer '{first.layer.value}' "
            f"({mode}, exit code {report.overall_exit_code})"
        )
    if report.overall_exit_code == EXIT_NO_ARTIFACTS:
        return f"NOTHING TO VERIFY: no artifacts for any configured layer (exit code {EXIT_NO_ARTIFACTS})"
    passed = sum(1 for r in report.results if r.passed)
    skipped = sum(1 for r in report.results if r.skipped)
    return f"PASSED: {passed} layer(s) passed, {skipped} skipped (exit code {EXIT_OK})"


def render_lines(report: ChainReport) -> List[str]:
    """One line per configured layer, then the final status line"""
    lines = [layer_line(layer, report.result_for(layer)) for layer in report.order]
    lines.append(status_line(report))
    return lines
