"""
Chain Configuration

Resolves the layer order, stop-on-fail policy, per-layer timeouts and command
overrides for one run. Precedence, highest first: explicit overrides,
environment, project descriptor (verichain.yml), built-in defaults.

resolve() is the only place that reads the environment; everything
downstream receives the resulting ChainConfig.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import yaml

from .main import DEFAULT_ORDER, ChainConfigError, Layer
from .runner.commands import CommandKey, CommandTemplate

logger = logging.getLogger(__name__)

DESCRIPTOR_NAMES = ("verichain.yml", "verichain.yaml", ".verichain.yml", ".verichain.yaml")

ENV_CONFIG = "VERICHAIN_CONFIG"
ENV_ORDER = "VERICHAIN_ORDER"
ENV_STOP_ON_FAIL = "VERICHAIN_STOP_ON_FAIL"
ENV_TIMEOUT_PREFIX = "VERICHAIN_TIMEOUT_MS_"

DEFAULT_TIMEOUTS_MS: Dict[Layer, int] = {
    Layer.PROOF: 600000,     # 10 minutes, first proof build may compile libraries
    Layer.SPEC: 600000,      # 10 minutes
    Layer.TYPE: 300000,      # 5 minutes
    Layer.CONTRACT: 300000,  # 5 minutes
    Layer.TESTS: 900000,     # 15 minutes
}

DESCRIPTOR_KEYS = {"order", "stop_on_fail", "timeouts_ms", "commands"}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_order(value: Union[str, Sequence[Any]]) -> Tuple[Layer, ...]:
    """
    Parse a layer order from "type,tests" or a sequence of names.

    Raises ChainConfigError on empty orders, unknown names or duplicates.
    """
    if isinstance(value, str):
        names = value.split(",")
    elif isinstance(value, (list, tuple)):
        names = list(value)
    else:
        raise ChainConfigError(f"Layer order must be a list or comma-separated string: {value!r}")

    if not names or (len(names) == 1 and isinstance(names[0], str) and not names[0].strip()):
        raise ChainConfigError("Layer order is empty")

    order = tuple(Layer.parse(name) for name in names)

    seen = set()
    for layer in order:
        if layer in seen:
            raise ChainConfigError(f"Layer '{layer.value}' appears more than once in order")
        seen.add(layer)

    return order


def parse_bool(value: Any, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE:
        return True
    if isinstance(value, str) and value.strip().lower() in _FALSE:
        return False
    raise ChainConfigError(f"Invalid boolean for {name}: {value!r}")


def parse_timeout(value: Any, layer: Layer) -> int:
    if isinstance(value, bool):
        raise ChainConfigError(f"Invalid timeout for layer '{layer.value}': {value!r}")
    try:
        timeout_ms = int(value)
    except (TypeError, ValueError):
        raise ChainConfigError(f"Invalid timeout for layer '{layer.value}': {value!r}") from None
    if timeout_ms <= 0:
        raise ChainConfigError(f"Timeout for layer '{layer.value}' must be positive: {timeout_ms}")
    return timeout_ms


def parse_timeouts(values: Mapping[Any, Any]) -> Dict[Layer, int]:
    if not isinstance(values, Mapping):
        raise ChainConfigError(f"timeouts_ms must be a mapping of layer to milliseconds: {values!r}")
    parsed = {}
    for name, value in values.items():
        layer = Layer.parse(name)
        parsed[layer] = parse_timeout(value, layer)
    return parsed


def parse_timeout_option(option: str) -> Tuple[Layer, int]:
    """Parse a CLI assignment such as "tests=120000" """
    name, sep, value = option.partition("=")
    if not sep:
        raise ChainConfigError(f"Timeout must look like LAYER=MILLISECONDS: {option!r}")
    layer = Layer.parse(name)
    return layer, parse_timeout(value, layer)


def parse_commands(values: Mapping[Any, Any]) -> Dict[CommandKey, CommandTemplate]:
    """Parse the descriptor's ``commands`` section: layer -> technology -> argv"""
    if not isinstance(values, Mapping):
        raise ChainConfigError(f"commands must be a mapping of layer to technologies: {values!r}")
    commands = {}
    for layer_name, technologies in values.items():
        layer = Layer.parse(layer_name)
        if not isinstance(technologies, Mapping):
            raise ChainConfigError(
                f"commands.{layer.value} must map technology names to commands"
            )
        for technology, template in technologies.items():
            commands[(layer, str(technology))] = CommandTemplate.from_value(template)
    return commands


@dataclass(frozen=True)
class ChainConfig:
    """
    Resolved run parameters.

    Built once per run and immutable afterwards. Construction validates the
    order, so an unknown layer name can never reach the executor.
    """
    order: Tuple[Layer, ...] = DEFAULT_ORDER
    stop_on_fail: bool = True
    timeouts_ms: Mapping[Layer, int] = field(default_factory=dict)
    commands: Mapping[CommandKey, CommandTemplate] = field(default_factory=dict)
    source: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "order", parse_order(self.order))
        if not isinstance(self.stop_on_fail, bool):
            raise ChainConfigError(f"stop_on_fail must be a boolean: {self.stop_on_fail!r}")

        timeouts = dict(DEFAULT_TIMEOUTS_MS)
        timeouts.update(parse_timeouts(self.timeouts_ms))
        object.__setattr__(self, "timeouts_ms", MappingProxyType(timeouts))
        object.__setattr__(self, "commands", MappingProxyType(dict(self.commands)))

    def timeout_for(self, layer: Layer) -> int:
        return self.timeouts_ms[layer]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": [layer.value for layer in self.order],
            "stop_on_fail": self.stop_on_fail,
            "timeouts_ms": {layer.value: ms for layer, ms in self.timeouts_ms.items()},
            "commands": {
                f"{layer.value}/{technology}": list(template.argv)
                for (layer, technology), template in self.commands.items()
            },
            "source": self.source,
        }


@dataclass
class ChainOverrides:
    """Explicit run-time overrides (highest precedence), usually from the CLI"""
    order: Optional[Union[str, Sequence[str]]] = None
    stop_on_fail: bool = False
    all_errors: bool = False
    timeouts_ms: Dict[Any, Any] = field(default_factory=dict)
    config_path: Optional[Path] = None


def find_descriptor(root: Path) -> Optional[Path]:
    """Return the project descriptor under root, if any"""
    for name in DESCRIPTOR_NAMES:
        candidate = Path(root) / name
        if candidate.is_file():
            return candidate
    return None


def load_descriptor(path: Path) -> Dict[str, Any]:
    """Load and shape-check a YAML project descriptor"""
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ChainConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ChainConfigError(f"Malformed config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ChainConfigError(f"Config file {path} must contain a mapping")

    unknown = set(data) - DESCRIPTOR_KEYS
    if unknown:
        raise ChainConfigError(
            f"Unknown key(s) in {path}: {', '.join(sorted(map(str, unknown)))}"
        )
    return data


def resolve(
    overrides: Optional[ChainOverrides] = None,
    root: Union[str, Path] = ".",
    env: Optional[Mapping[str, str]] = None,
) -> ChainConfig:
    """
    Resolve the ChainConfig for a run.

    Args:
        overrides: Explicit run-time overrides
        root: Target root (where the project descriptor is looked up)
        env: Environment mapping (defaults to os.environ)

    Raises:
        ChainConfigError: unknown layer, empty/malformed order, conflicting
            overrides, unreadable descriptor, invalid timeout
    """
    overrides = overrides or ChainOverrides()
    env = os.environ if env is None else env

    if overrides.stop_on_fail and overrides.all_errors:
        raise ChainConfigError("Conflicting overrides: stop-on-fail and all-errors both requested")

    # Project descriptor
    descriptor = overrides.config_path or env.get(ENV_CONFIG) or find_descriptor(Path(root))
    data: Dict[str, Any] = {}
    if descriptor:
        descriptor = Path(descriptor)
        if not descriptor.is_file():
            raise ChainConfigError(f"Config file not found: {descriptor}")
        data = load_descriptor(descriptor)
        logger.debug(f"Loaded chain config from {descriptor}")

    order: Any = data.get("order", DEFAULT_ORDER)
    stop_on_fail = parse_bool(data.get("stop_on_fail", True), "stop_on_fail")
    timeouts = parse_timeouts(data.get("timeouts_ms") or {})
    commands = parse_commands(data.get("commands") or {})

    # Environment
    if env.get(ENV_ORDER):
        order = env[ENV_ORDER]
    if env.get(ENV_STOP_ON_FAIL):
        stop_on_fail = parse_bool(env[ENV_STOP_ON_FAIL], ENV_STOP_ON_FAIL)
    for layer in Layer:
        value = env.get(f"{ENV_TIMEOUT_PREFIX}{layer.name}")
        if value:
            timeouts[layer] = parse_timeout(value, layer)

    # Explicit overrides
    if overrides.order is not None:
        order = overrides.order
    if overrides.stop_on_fail:
        stop_on_fail = True
    if overrides.all_errors:
        stop_on_fail = False
    timeouts.update(parse_timeouts(overrides.timeouts_ms))

    config = ChainConfig(
        order=order,
        stop_on_fail=stop_on_fail,
        timeouts_ms=timeouts,
        commands=commands,
        source=str(descriptor) if descriptor else None,
    )
    logger.info(
        f"Chain config: order={','.join(l.value for l in config.order)} "
        f"stop_on_fail={config.stop_on_fail}"
    )
    return config


DEFAULT_DESCRIPTOR = """# verichain configuration

# Layers to run, in order (proof, spec, type, contract, tests)
order: [proof, spec, type, contract, tests]

# Halt at the first failing layer; false runs every layer (all-errors mode)
stop_on_fail: true

# Per-layer timeouts in milliseconds
timeouts_ms:
  proof: 600000
  spec: 600000
  type: 300000
  contract: 300000
  tests: 900000

# Command overrides: layer -> technology -> argv
# Placeholders: {python}, {root}, {path} (one artifact), {paths} (all artifacts)
# commands:
#   tests:
#     python: ["{python}", "-m", "pytest", "-q", "-x"]
"""
