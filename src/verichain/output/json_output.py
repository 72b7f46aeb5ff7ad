"""
JSON Output Formatter

Silent while the chain runs; prints the report as a single JSON document.
"""

import json
import sys
from typing import Optional, TextIO

from .base import BaseFormatter, OutputLevel
from ..main import ChainReport, Layer, LayerArtifactSet, LayerResult


class JsonFormatter(BaseFormatter):
    """Machine-readable report for CI pipelines"""

    def __init__(
        self,
        level: OutputLevel = OutputLevel.NORMAL,
        stream: Optional[TextIO] = None,
        indent: int = 2,
    ):
        super().__init__(level)
        self.stream = stream or sys.stdout
        self.indent = indent

    def layer_started(self, layer: Layer, artifacts: LayerArtifactSet) -> None:
        pass

    def layer_recorded(self, result: LayerResult) -> None:
        pass

    def chain_halted(self, layer: Layer) -> None:
        pass

    def report(self, report: ChainReport) -> None:
        print(json.dumps(report.to_dict(), indent=self.indent), file=self.stream)
