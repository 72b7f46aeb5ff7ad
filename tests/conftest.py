"""
Shared fixtures for verichain tests
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

import pytest

from verichain.main import Layer, LayerArtifactSet, LayerResult, LayerStatus
from verichain.runner import CommandTemplate


@pytest.fixture(autouse=True)
def reset_verichain_logger():
    """setup_logging() binds handlers to the captured streams; undo it per test"""
    yield
    logger = logging.getLogger("verichain")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host VERICHAIN_* variables out of resolve()"""
    for name in [
        "VERICHAIN_CONFIG",
        "VERICHAIN_ORDER",
        "VERICHAIN_STOP_ON_FAIL",
    ] + [f"VERICHAIN_TIMEOUT_MS_{layer.name}" for layer in Layer]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_tree(tmp_path) -> Callable[..., Path]:
    """Create files (and their parent directories) under tmp_path"""
    def _make(*relpaths: str, contents: Optional[Dict[str, str]] = None) -> Path:
        for relpath in relpaths:
            path = tmp_path / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text((contents or {}).get(relpath, ""))
        return tmp_path
    return _make


@pytest.fixture
def py_command() -> Callable[..., CommandTemplate]:
    """Command template running an inline Python snippet with the test interpreter"""
    def _command(code: str, *extra: str, per_artifact: bool = False) -> CommandTemplate:
        return CommandTemplate(("{python}", "-c", code) + tuple(extra), per_artifact=per_artifact)
    return _command


class FakeLocator:
    """Locator reporting artifacts only for the given layers"""

    def __init__(self, present: Iterable[Layer]):
        self.present = set(present)
        self.calls = []

    def locate(self, root: Path, layer: Layer) -> LayerArtifactSet:
        self.calls.append(layer)
        if layer in self.present:
            return LayerArtifactSet(
                layer=layer,
                root=Path(root),
                by_technology={"fake": (Path(root) / f"{layer.value}.artifact",)},
            )
        return LayerArtifactSet(layer=layer, root=Path(root))


class FakeRunner:
    """Runner returning scripted outcomes; records every layer it was asked to run"""

    def __init__(self, exit_codes: Optional[Dict[Layer, int]] = None):
        self.exit_codes = exit_codes or {}
        self.calls = []
        self.spawned = []

    async def run(self, layer: Layer, artifacts: LayerArtifactSet, timeout_ms: int) -> LayerResult:
        self.calls.append(layer)
        if not artifacts.present:
            return LayerResult(layer=layer, status=LayerStatus.SKIPPED, message="skipped")
        self.spawned.append(layer)
        code = self.exit_codes.get(layer, 0)
        return LayerResult(
            layer=layer,
            status=LayerStatus.PASS if code == 0 else LayerStatus.FAIL,
            exit_code=code,
            message=f"{layer.value} exited {code}",
        )


@pytest.fixture
def fake_locator():
    return FakeLocator


@pytest.fixture
def fake_runner():
    return FakeRunner
