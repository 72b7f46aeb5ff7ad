"""
Chain Executor - Core Orchestration Logic

Walks the configured layer order, locating artifacts and running each layer,
and applies the gating rule: with stop-on-fail the first FAIL halts the chain,
otherwise every configured layer runs and the first failure decides the exit
code. Layers are never retried.
"""

import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .config import ChainConfig
from .locator import ArtifactLocator
from .main import (
    ChainReport,
    ChainState,
    Layer,
    LayerArtifactSet,
    LayerResult,
    LayerStatus,
)
from .reporter import summarize
from .runner import CommandRegistry, LayerRunner

logger = logging.getLogger(__name__)


@dataclass
class ChainRun:
    """
    Per-run state, owned by a single ChainExecutor.run() call.

    Nothing here is shared between runs, so one executor can verify several
    roots concurrently.
    """
    run_id: str
    root: Path
    config: ChainConfig
    state: ChainState = ChainState.PENDING
    current_layer: Optional[Layer] = None
    artifacts: Dict[Layer, LayerArtifactSet] = field(default_factory=dict)
    results: List[LayerResult] = field(default_factory=list)
    history: List[ChainState] = field(default_factory=lambda: [ChainState.PENDING])
    started_at: datetime = field(default_factory=datetime.now)

    def transition(self, state: ChainState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def is_terminal(self) -> bool:
        return self.state == ChainState.DONE


class ChainExecutor:
    """
    Sequential, gated executor of the verification chain.

    Events (handlers receive ``(event, run, **kwargs)``):
        chain.started, layer.locating, layer.running, layer.recorded,
        chain.halted, chain.done
    """

    def __init__(
        self,
        config: ChainConfig,
        locator: Optional[ArtifactLocator] = None,
        runner: Optional[LayerRunner] = None,
        registry: Optional[CommandRegistry] = None,
    ):
        self.config = config
        self.locator = locator or ArtifactLocator()
        if runner is None:
            if registry is None:
                registry = CommandRegistry()
            registry = registry.with_overrides(config.commands)
            runner = LayerRunner(registry=registry)
        self.runner = runner
        self._event_handlers: Dict[str, List[Callable]] = {}

    async def run(self, root: Union[str, Path]) -> ChainReport:
        """Run the configured chain against root and return its report"""
        run = ChainRun(
            run_id=str(uuid.uuid4())[:8],
            root=Path(root),
            config=self.config,
        )
        start = time.monotonic()

        logger.info(
            f"[{run.run_id}] Chain started for {run.root} "
            f"(order={','.join(l.value for l in self.config.order)}, "
            f"stop_on_fail={self.config.stop_on_fail})"
        )
        await self._emit_event("chain.started", run)

        for index, layer in enumerate(self.config.order):
            run.current_layer = layer

            # --- LOCATING ---
            run.transition(ChainState.LOCATING)
            await self._emit_event("layer.locating", run, layer=layer)
            artifacts = self.locator.locate(run.root, layer)
            run.artifacts[layer] = artifacts

            # --- RUNNING ---
            run.transition(ChainState.RUNNING)
            await self._emit_event("layer.running", run, layer=layer, artifacts=artifacts)
            result = await self.runner.run(layer, artifacts, self.config.timeout_for(layer))

            # --- RECORDED ---
            run.results.append(result)
            run.transition(ChainState.RECORDED)
            logger.info(
                f"[{run.run_id}] Layer '{layer.value}': {result.status.value} "
                f"(exit {result.exit_code}, {result.duration_ms}ms)"
            )
            await self._emit_event("layer.recorded", run, layer=layer, result=result)

            if result.status == LayerStatus.FAIL and self.config.stop_on_fail:
                run.transition(ChainState.HALTED)
                remaining = [l.value for l in self.config.order[index + 1:]]
                logger.warning(
                    f"[{run.run_id}] Chain halted at '{layer.value}'"
                    + (f"; not run: {', '.join(remaining)}" if remaining else "")
                )
                await self._emit_event("chain.halted", run, layer=layer, result=result)
                break

            run.transition(ChainState.ADVANCING)

        run.current_layer = None
        report = summarize(
            run.results,
            order=self.config.order,
            stop_on_fail=self.config.stop_on_fail,
            root=run.root,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        run.transition(ChainState.DONE)

        logger.info(
            f"[{run.run_id}] Chain done: exit code {report.overall_exit_code} "
            f"in {report.duration_ms}ms"
        )
        await self._emit_event("chain.done", run, report=report)
        return report

    # =========================================================================
    # Event System
    # =========================================================================

    def on(self, event: str, handler: Callable) -> None:
        """Register event handler"""
        if event not in self._event_handlers:
            self._event_handlers[event] = []
        self._event_handlers[event].append(handler)

    async def _emit_event(self, event: str, run: ChainRun, **kwargs: Any) -> None:
        """Call registered handlers; a failing handler never breaks the chain"""
        for handler in self._event_handlers.get(event, []):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(event, run, **kwargs)
                else:
                    handler(event, run, **kwargs)
            except Exception as e:
                logger.error(f"Event handler error ({event}): {e}")


async def run_chain(
    root: Union[str, Path],
    config: ChainConfig,
    registry: Optional[CommandRegistry] = None,
) -> ChainReport:
    """Convenience: build an executor for config and run it once"""
    return await ChainExecutor(config, registry=registry).run(root)
