"""
Types for the Verification Chain

Layers, statuses, per-run artifact sets and layer results shared by the
locator, runner, executor and reporter.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple


# Process exit codes
EXIT_OK = 0
EXIT_CONTRACT_PRECONDITION = 1
EXIT_CONTRACT_POSTCONDITION = 2
EXIT_CONTRACT_INVARIANT = 3
EXIT_NO_ARTIFACTS = 11
EXIT_TOOL_FAILURE = 13
EXIT_CONFIG_ERROR = 15

CONTRACT_VIOLATIONS = {
    EXIT_CONTRACT_PRECONDITION: "precondition violation",
    EXIT_CONTRACT_POSTCONDITION: "postcondition violation",
    EXIT_CONTRACT_INVARIANT: "invariant violation",
}


class VerichainError(Exception):
    """Base exception for verichain errors"""
    exit_code: int = EXIT_TOOL_FAILURE


class ChainConfigError(VerichainError):
    """Invalid chain configuration (unknown layer, malformed order, ...)"""
    exit_code = EXIT_CONFIG_ERROR


class Layer(Enum):
    """Verification layers, declared in canonical order"""
    PROOF = "proof"
    SPEC = "spec"
    TYPE = "type"
    CONTRACT = "contract"
    TESTS = "tests"

    @classmethod
    def parse(cls, name: Any) -> "Layer":
        """Map a layer name to a Layer, raising ChainConfigError if unknown"""
        if isinstance(name, Layer):
            return name
        if not isinstance(name, str) or not name.strip():
            raise ChainConfigError(f"Empty or invalid layer name: {name!r}")
        try:
            return cls(name.strip().lower())
        except ValueError:
            known = ", ".join(layer.value for layer in cls)
            raise ChainConfigError(
                f"Unknown layer '{name.strip()}' (known layers: {known})"
            ) from None


DEFAULT_ORDER: Tuple[Layer, ...] = tuple(Layer)


class LayerStatus(Enum):
    """Outcome of running one layer"""
    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


class ChainState(Enum):
    """Executor state machine"""
    PENDING = "pending"
    LOCATING = "locating"
    RUNNING = "running"
    RECORDED = "recorded"
    ADVANCING = "advancing"
    HALTED = "halted"
    DONE = "done"


@dataclass(frozen=True)
class LayerArtifactSet:
    """
    Artifacts discovered for one layer under one root.

    ``by_technology`` keeps the paths grouped by the sub-technology that
    selects the command template (e.g. ``lean`` vs ``coq`` for proofs).
    """
    layer: Layer
    root: Path
    by_technology: Mapping[str, Tuple[Path, ...]] = field(default_factory=dict)

    @property
    def paths(self) -> Tuple[Path, ...]:
        return tuple(p for paths in self.by_technology.values() for p in paths)

    @property
    def technologies(self) -> List[str]:
        return list(self.by_technology)

    @property
    def present(self) -> bool:
        return any(self.by_technology.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "root": str(self.root),
            "present": self.present,
            "technologies": {
                tech: [str(p) for p in paths]
                for tech, paths in self.by_technology.items()
            },
        }


@dataclass(frozen=True)
class LayerResult:
    """Normalized outcome of one layer in one run"""
    layer: Layer
    status: LayerStatus
    exit_code: int = EXIT_OK
    message: str = ""
    duration_ms: int = 0
    technology: Optional[str] = None
    commands: Tuple[Tuple[str, ...], ...] = ()
    timed_out: bool = False

    @property
    def passed(self) -> bool:
        return self.status == LayerStatus.PASS

    @property
    def failed(self) -> bool:
        return self.status == LayerStatus.FAIL

    @property
    def skipped(self) -> bool:
        return self.status == LayerStatus.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "technology": self.technology,
            "commands": [list(c) for c in self.commands],
            "timed_out": self.timed_out,
        }


@dataclass(frozen=True)
class ChainReport:
    """
    Terminal object of a run.

    ``results`` is in execution order and stops at the failing layer when
    the chain halted; ``order`` is the configured order so unreached layers
    can still be rendered.
    """
    results: Tuple[LayerResult, ...]
    overall_exit_code: int
    order: Tuple[Layer, ...] = DEFAULT_ORDER
    stop_on_fail: bool = True
    root: Optional[Path] = None
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.overall_exit_code == EXIT_OK

    @property
    def first_failure(self) -> Optional[LayerResult]:
        for result in self.results:
            if result.failed:
                return result
        return None

    @property
    def halted(self) -> bool:
        """True when configured layers were never reached"""
        return len(self.results) < len(self.order)

    @property
    def statuses(self) -> List[LayerStatus]:
        return [r.status for r in self.results]

    def result_for(self, layer: Layer) -> Optional[LayerResult]:
        for result in self.results:
            if result.layer == layer:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        first = self.first_failure
        return {
            "root": str(self.root) if self.root else None,
            "order": [layer.value for layer in self.order],
            "stop_on_fail": self.stop_on_fail,
            "overall_exit_code": self.overall_exit_code,
            "passed": self.passed,
            "first_failure": first.layer.value if first else None,
            "duration_ms": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
            "not_run": [
                layer.value for layer in self.order
                if self.result_for(layer) is None
            ],
        }
