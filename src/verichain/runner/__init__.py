"""
Layer Runner

Command registry and the runner that shells out to external verification
tools.
"""

from .commands import (
    DEFAULT_COMMANDS,
    CommandRegistry,
    CommandTemplate,
)
from .layer_runner import (
    INCOMPLETE_PROOF_MARKERS,
    CommandExecution,
    LayerRunner,
)

__all__ = [
    # Commands
    "CommandRegistry",
    "CommandTemplate",
    "DEFAULT_COMMANDS",
    # Runner
    "LayerRunner",
    "CommandExecution",
    "INCOMPLETE_PROOF_MARKERS",
]
