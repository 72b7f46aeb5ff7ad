"""
Base Output Formatter
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from ..main import ChainReport, Layer, LayerArtifactSet, LayerResult


class OutputLevel(Enum):
    """Output verbosity levels"""
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3

    def __ge__(self, other: "OutputLevel") -> bool:
        return self.value >= other.value

    def __lt__(self, other: "OutputLevel") -> bool:
        return self.value < other.value


class BaseFormatter(ABC):
    """
    Base class for output formatters.

    ``attach`` subscribes the formatter to a ChainExecutor's events so
    progress is rendered while the chain runs.
    """

    def __init__(self, level: OutputLevel = OutputLevel.NORMAL):
        self.level = level

    def attach(self, executor: Any) -> None:
        executor.on("layer.running", self._on_layer_running)
        executor.on("layer.recorded", self._on_layer_recorded)
        executor.on("chain.halted", self._on_chain_halted)

    def _on_layer_running(self, event: str, run: Any, layer: Layer, artifacts: LayerArtifactSet, **kwargs: Any) -> None:
        self.layer_started(layer, artifacts)

    def _on_layer_recorded(self, event: str, run: Any, layer: Layer, result: LayerResult, **kwargs: Any) -> None:
        self.layer_recorded(result)

    def _on_chain_halted(self, event: str, run: Any, layer: Layer, **kwargs: Any) -> None:
        self.chain_halted(layer)

    @abstractmethod
    def layer_started(self, layer: Layer, artifacts: LayerArtifactSet) -> None:
        """Format layer started message"""
        pass

    @abstractmethod
    def layer_recorded(self, result: LayerResult) -> None:
        """Format a recorded layer result"""
        pass

    @abstractmethod
    def chain_halted(self, layer: Layer) -> None:
        """Format halt notice"""
        pass

    @abstractmethod
    def report(self, report: ChainReport) -> None:
        """Format the final report"""
        pass
