"""
Console Output Formatter

Colored progress lines while the chain runs, then the per-layer breakdown.
"""

import sys
from datetime import datetime
from typing import Optional, TextIO

from .base import BaseFormatter, OutputLevel
from ..main import ChainReport, Layer, LayerArtifactSet, LayerResult, LayerStatus
from ..reporter import layer_label, layer_line, status_line


class ConsoleFormatter(BaseFormatter):
    """
    Console formatter with colored output.

    Uses ANSI escape codes in terminal environments and falls back to plain
    text when not in a TTY.
    """

    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "red": "\033[31m",
        "blue": "\033[34m",
        "cyan": "\033[36m",
    }

    SYMBOLS = {
        LayerStatus.PASS: "✓",
        LayerStatus.FAIL: "✗",
        LayerStatus.SKIPPED: "○",
    }

    STATUS_COLORS = {
        LayerStatus.PASS: "green",
        LayerStatus.FAIL: "red",
        LayerStatus.SKIPPED: "dim",
    }

    # Lines of tool output shown for a failing layer
    OUTPUT_TAIL = 20

    def __init__(
        self,
        level: OutputLevel = OutputLevel.NORMAL,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
    ):
        super().__init__(level)
        self.stream = stream or sys.stdout
        self.use_colors = use_colors and hasattr(self.stream, "isatty") and self.stream.isatty()

    def _c(self, color: str, text: str) -> str:
        """Apply color to text"""
        if self.use_colors:
            return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"
        return text

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def _timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def layer_started(self, layer: Layer, artifacts: LayerArtifactSet) -> None:
        if self.level < OutputLevel.VERBOSE or not artifacts.present:
            return
        ts = self._c("dim", f"[{self._timestamp()}]")
        techs = ", ".join(artifacts.technologies)
        self._print(
            f"  {self._c('blue', '◔')} {ts} {layer.value}: "
            f"{len(artifacts.paths)} artifact(s) [{techs}]"
        )

    def layer_recorded(self, result: LayerResult) -> None:
        if self.level < OutputLevel.NORMAL:
            return
        color = self.STATUS_COLORS[result.status]
        symbol = self._c(color, self.SYMBOLS[result.status])
        ts = self._c("dim", f"[{self._timestamp()}]")
        self._print(f"  {symbol} {ts} {result.layer.value}: {result.status.value.upper()}")

        if result.failed and result.message:
            lines = result.message.rstrip().splitlines()
            if self.level < OutputLevel.VERBOSE:
                lines = lines[-self.OUTPUT_TAIL:]
            for line in lines:
                self._print(f"      {self._c('dim', line)}")

    def chain_halted(self, layer: Layer) -> None:
        if self.level < OutputLevel.NORMAL:
            return
        self._print(f"  {self._c('yellow', '⊘')} halted after '{layer.value}' (stop-on-fail)")

    def report(self, report: ChainReport) -> None:
        if self.level >= OutputLevel.NORMAL:
            self._print()
            self._print(self._c("bold", "═" * 60))
            self._print(self._c("bold", f"  VERIFICATION CHAIN  {report.root or ''}"))
            self._print(self._c("bold", "═" * 60))
            for layer in report.order:
                result = report.result_for(layer)
                color = self.STATUS_COLORS[result.status] if result else "yellow"
                label = self._c(color, layer_label(result))
                self._print(f"  {layer_line(layer, result, label)}")
            self._print(self._c("bold", "═" * 60))

        color = "green" if report.passed else ("yellow" if report.first_failure is None else "red")
        self._print(self._c(color, status_line(report)))
