"""
Layer Runner

Runs the external verification command(s) for one layer and normalizes the
outcome into a LayerResult. The tool's own judgement is the exit code, with
one exception: proof checkers that exit 0 while reporting an admitted or
incomplete obligation are treated as failures.
"""

import asyncio
import logging
import os
import re
import shlex
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Pattern, Sequence, Tuple

from ..main import (
    EXIT_OK,
    EXIT_TOOL_FAILURE,
    Layer,
    LayerArtifactSet,
    LayerResult,
    LayerStatus,
)
from .commands import CommandRegistry

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"

# Proof-tool output meaning an obligation was assumed rather than proved.
# Matched case-sensitively against tool output only, never against argv.
INCOMPLETE_PROOF_MARKERS: Tuple[str, ...] = (
    r"declaration uses ['`‘]sorry",  # Lean
    r"\bunsolved goals\b",                 # Lean
    r"\bAdmitted\b",                       # Coq
    r"\badmit\b",                          # Coq tactic
)

_READ_CHUNK = 65536


@dataclass
class CommandExecution:
    """Result of one external process"""
    argv: Tuple[str, ...]
    returncode: Optional[int]
    output: str = ""
    timed_out: bool = False
    spawn_error: Optional[str] = None
    duration_ms: int = 0


class LayerRunner:
    """
    Invokes the registered command(s) for a layer's artifacts.

    All commands of a layer share one deadline. The first command that
    fails, times out or cannot be started ends the layer. A runner keeps no
    per-run state and can serve concurrent runs.
    """

    def __init__(
        self,
        registry: Optional[CommandRegistry] = None,
        incomplete_markers: Optional[Sequence[str]] = None,
    ):
        self.registry = registry if registry is not None else CommandRegistry()
        self._markers: List[Pattern[str]] = [
            re.compile(marker)
            for marker in (
                incomplete_markers if incomplete_markers is not None else INCOMPLETE_PROOF_MARKERS
            )
        ]

    async def run(
        self,
        layer: Layer,
        artifacts: LayerArtifactSet,
        timeout_ms: int,
    ) -> LayerResult:
        """
        Run one layer.

        Args:
            layer: Layer being verified
            artifacts: Artifacts located for this layer
            timeout_ms: Budget for every command of the layer together

        Returns:
            LayerResult (SKIPPED without spawning anything when no artifacts)
        """
        if not artifacts.present:
            return LayerResult(
                layer=layer,
                status=LayerStatus.SKIPPED,
                exit_code=EXIT_OK,
                message=f"skipped: no {layer.value} artifacts found",
            )

        start = time.monotonic()
        deadline = start + timeout_ms / 1000
        technology = ",".join(artifacts.technologies)
        commands: List[Tuple[str, ...]] = []
        transcript: List[str] = []
        outputs: List[str] = []

        def finish(status: LayerStatus, exit_code: int, note: str = "", timed_out: bool = False) -> LayerResult:
            message = "\n".join(transcript)
            if note:
                message = f"{note}\n{message}" if message else note
            return LayerResult(
                layer=layer,
                status=status,
                exit_code=exit_code,
                message=message,
                duration_ms=int((time.monotonic() - start) * 1000),
                technology=technology,
                commands=tuple(commands),
                timed_out=timed_out,
            )

        for tech, paths in artifacts.by_technology.items():
            if not paths:
                continue

            template = self.registry.lookup(layer, tech)
            if template is None:
                logger.warning(f"No command registered for {layer.value}/{tech}")
                return finish(
                    LayerStatus.FAIL,
                    EXIT_TOOL_FAILURE,
                    f"execution failure: no command registered for {layer.value}/{tech}",
                )

            for argv in template.commands_for(artifacts.root, paths):
                commands.append(tuple(argv))
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return finish(
                        LayerStatus.FAIL,
                        EXIT_TOOL_FAILURE,
                        f"timed out after {timeout_ms} ms before running: {shlex.join(argv)}",
                        timed_out=True,
                    )

                execution = await self._execute(argv, artifacts.root, remaining)
                transcript.append(f"$ {shlex.join(argv)}")
                if execution.output:
                    transcript.append(execution.output.rstrip("\n"))
                    outputs.append(execution.output)

                if execution.spawn_error:
                    return finish(
                        LayerStatus.FAIL,
                        EXIT_TOOL_FAILURE,
                        f"execution failure: {execution.spawn_error}",
                    )

                if execution.timed_out:
                    logger.warning(f"Layer '{layer.value}' timed out after {timeout_ms} ms")
                    return finish(
                        LayerStatus.FAIL,
                        EXIT_TOOL_FAILURE,
                        f"timed out after {timeout_ms} ms: {shlex.join(argv)}",
                        timed_out=True,
                    )

                if execution.returncode != 0:
                    logger.info(
                        f"Layer '{layer.value}' command exited {execution.returncode}: "
                        f"{shlex.join(argv)}"
                    )
                    return finish(LayerStatus.FAIL, execution.returncode)

        if layer == Layer.PROOF:
            marker = self.find_incomplete_marker("\n".join(outputs))
            if marker:
                return finish(
                    LayerStatus.FAIL,
                    EXIT_TOOL_FAILURE,
                    f"incomplete proof: output contains '{marker}'",
                )

        return finish(LayerStatus.PASS, EXIT_OK)

    def find_incomplete_marker(self, output: str) -> Optional[str]:
        """Return the first incomplete-proof marker found in tool output"""
        for pattern in self._markers:
            match = pattern.search(output)
            if match:
                return match.group(0)
        return None

    # =========================================================================
    # Process execution
    # =========================================================================

    async def _execute(
        self,
        argv: Sequence[str],
        cwd: Path,
        timeout_s: float,
    ) -> CommandExecution:
        """Spawn one command, capture combined output, enforce the timeout"""
        started = time.monotonic()
        logger.debug(f"Running: {shlex.join(argv)} (cwd={cwd}, timeout={timeout_s:.1f}s)")

        spawn_kwargs = {"start_new_session": True} if _POSIX else {}
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                **spawn_kwargs,
            )
        except FileNotFoundError:
            return CommandExecution(
                argv=tuple(argv),
                returncode=None,
                spawn_error=f"command not found: {argv[0]}",
            )
        except OSError as e:
            return CommandExecution(
                argv=tuple(argv),
                returncode=None,
                spawn_error=f"could not start {argv[0]}: {e}",
            )

        chunks: List[bytes] = []

        async def drain() -> None:
            while True:
                chunk = await process.stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                chunks.append(chunk)

        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(drain(), process.wait()),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            timed_out = True
        finally:
            # After a clean exit the leader is reaped and its pid may be reused
            if timed_out or process.returncode is None:
                await self._terminate(process)

        return CommandExecution(
            argv=tuple(argv),
            returncode=None if timed_out else process.returncode,
            output=b"".join(chunks).decode("utf-8", errors="replace"),
            timed_out=timed_out,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process (and its group on POSIX) and reap it"""
        if _POSIX:
            # The group outlives the leader when the tool forked helpers
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                pass
        elif process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
