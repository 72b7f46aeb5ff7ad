"""
Command Registry

Maps (layer, technology) to the external command that verifies it. Adding a
tool is a registration, not a code branch.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..main import ChainConfigError, Layer

logger = logging.getLogger(__name__)

CommandKey = Tuple[Layer, str]


@dataclass(frozen=True)
class CommandTemplate:
    """
    An argv template for an external verification tool.

    Placeholders: ``{python}`` (current interpreter), ``{root}`` (target
    root), ``{path}`` (one artifact, per-artifact templates only). A token
    that is exactly ``{paths}`` expands to every artifact path.
    """
    argv: Tuple[str, ...]
    per_artifact: bool = False

    @classmethod
    def from_value(cls, value: Any) -> "CommandTemplate":
        """Build from a config value: a list of strings, or a mapping with argv/per_artifact"""
        if isinstance(value, CommandTemplate):
            return value
        if isinstance(value, Mapping):
            argv = value.get("argv")
            per_artifact = bool(value.get("per_artifact", False))
        else:
            argv, per_artifact = value, False

        if isinstance(argv, str):
            argv = argv.split()
        if not argv or not isinstance(argv, (list, tuple)) or not all(isinstance(a, str) for a in argv):
            raise ChainConfigError(f"Command must be a non-empty list of strings: {value!r}")

        argv = tuple(argv)
        if not per_artifact and any("{path}" in token for token in argv):
            per_artifact = True
        return cls(argv=argv, per_artifact=per_artifact)

    def render(
        self,
        root: Path,
        paths: Sequence[Path],
        path: Optional[Path] = None,
    ) -> List[str]:
        """Expand placeholders into a concrete argv"""
        values = {
            "python": sys.executable,
            "root": str(root),
            "path": str(path) if path is not None else "",
        }
        argv: List[str] = []
        for token in self.argv:
            if token == "{paths}":
                argv.extend(str(p) for p in paths)
                continue
            for name, value in values.items():
                token = token.replace("{" + name + "}", value)
            argv.append(token)
        return argv

    def commands_for(self, root: Path, paths: Sequence[Path]) -> List[List[str]]:
        """All argvs to run for one technology's artifacts"""
        if self.per_artifact:
            return [self.render(root, paths, path) for path in paths]
        return [self.render(root, paths)]


DEFAULT_COMMANDS: Dict[CommandKey, CommandTemplate] = {
    # Proof checkers
    (Layer.PROOF, "lean"): CommandTemplate(("lake", "env", "lean", "{path}"), per_artifact=True),
    (Layer.PROOF, "coq"): CommandTemplate(("coqc", "{path}"), per_artifact=True),
    (Layer.PROOF, "isabelle"): CommandTemplate(("isabelle", "build", "-D", "{root}")),
    (Layer.PROOF, "agda"): CommandTemplate(("agda", "{path}"), per_artifact=True),
    (Layer.PROOF, "dafny"): CommandTemplate(("dafny", "verify", "{paths}")),
    # Specification model checkers
    (Layer.SPEC, "tla"): CommandTemplate(("tlc", "{path}"), per_artifact=True),
    (Layer.SPEC, "quint"): CommandTemplate(("quint", "verify", "{path}"), per_artifact=True),
    (Layer.SPEC, "alloy"): CommandTemplate(("alloy", "exec", "{path}"), per_artifact=True),
    # Type checkers, keyed by project descriptor
    (Layer.TYPE, "python"): CommandTemplate(("{python}", "-m", "mypy", "{root}")),
    (Layer.TYPE, "typescript"): CommandTemplate(("npx", "tsc", "--noEmit", "-p", "{root}")),
    (Layer.TYPE, "rust"): CommandTemplate(("cargo", "check", "--quiet")),
    (Layer.TYPE, "go"): CommandTemplate(("go", "vet", "./...")),
    # Contract test runners
    (Layer.CONTRACT, "python"): CommandTemplate(("{python}", "-m", "pytest", "-q", "{paths}")),
    # Test runners
    (Layer.TESTS, "python"): CommandTemplate(("{python}", "-m", "pytest", "-q")),
    (Layer.TESTS, "javascript"): CommandTemplate(("npm", "test", "--silent")),
    (Layer.TESTS, "go"): CommandTemplate(("go", "test", "./...")),
}


class CommandRegistry:
    """
    Capability-keyed lookup of command templates.

    Populated once at startup; runs only read from it, so a registry can be
    shared by concurrent runs. ``with_overrides`` returns a new registry.
    """

    def __init__(self, commands: Optional[Mapping[CommandKey, CommandTemplate]] = None):
        self._commands: Dict[CommandKey, CommandTemplate] = dict(
            DEFAULT_COMMANDS if commands is None else commands
        )

    def register(self, layer: Layer, technology: str, template: Any) -> None:
        """Register (or replace) the command for a layer/technology pair"""
        self._commands[(layer, technology)] = CommandTemplate.from_value(template)
        logger.debug(f"Registered command for {layer.value}/{technology}")

    def lookup(self, layer: Layer, technology: str) -> Optional[CommandTemplate]:
        return self._commands.get((layer, technology))

    def technologies(self, layer: Layer) -> List[str]:
        return [tech for (l, tech) in self._commands if l == layer]

    def with_overrides(self, overrides: Mapping[CommandKey, CommandTemplate]) -> "CommandRegistry":
        registry = CommandRegistry(self._commands)
        for (layer, technology), template in overrides.items():
            registry.register(layer, technology, template)
        return registry

    def items(self) -> Iterable[Tuple[CommandKey, CommandTemplate]]:
        return self._commands.items()

    def __contains__(self, key: CommandKey) -> bool:
        return key in self._commands

    def __len__(self) -> int:
        return len(self._commands)
