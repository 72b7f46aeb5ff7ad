"""
verichain - Staged Verification-Chain Orchestrator

Runs a project's correctness checks through a fixed sequence of verification
layers (proof, spec, type, contract, tests), gating each layer on the ones
before it, and produces one consolidated pass/fail result.

verichain never implements a checker itself: every layer is an external
tool, consumed through its exit code and combined output.
"""

__version__ = "1.0.0"

# Types
from .main import (
    DEFAULT_ORDER,
    EXIT_CONFIG_ERROR,
    EXIT_CONTRACT_INVARIANT,
    EXIT_CONTRACT_POSTCONDITION,
    EXIT_CONTRACT_PRECONDITION,
    EXIT_NO_ARTIFACTS,
    EXIT_OK,
    EXIT_TOOL_FAILURE,
    ChainConfigError,
    ChainReport,
    ChainState,
    Layer,
    LayerArtifactSet,
    LayerResult,
    LayerStatus,
    VerichainError,
)

# Configuration
from .config import ChainConfig, ChainOverrides, resolve

# Components
from .locator import ArtifactLocator
from .runner import CommandRegistry, CommandTemplate, LayerRunner
from .orchestrator import ChainExecutor, ChainRun, run_chain
from .reporter import render_lines, summarize

__all__ = [
    # Types
    "Layer",
    "LayerStatus",
    "ChainState",
    "LayerArtifactSet",
    "LayerResult",
    "ChainReport",
    "DEFAULT_ORDER",
    # Errors
    "VerichainError",
    "ChainConfigError",
    # Exit codes
    "EXIT_OK",
    "EXIT_CONTRACT_PRECONDITION",
    "EXIT_CONTRACT_POSTCONDITION",
    "EXIT_CONTRACT_INVARIANT",
    "EXIT_NO_ARTIFACTS",
    "EXIT_TOOL_FAILURE",
    "EXIT_CONFIG_ERROR",
    # Configuration
    "ChainConfig",
    "ChainOverrides",
    "resolve",
    # Components
    "ArtifactLocator",
    "CommandRegistry",
    "CommandTemplate",
    "LayerRunner",
    "ChainExecutor",
    "ChainRun",
    "run_chain",
    "summarize",
    "render_lines",
    # Meta
    "__version__",
]
