"""
Artifact Locator

Discovers which verification artifacts exist under a target path, per layer.
Read-only: the locator never writes to the tree it scans.
"""

import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .main import Layer, LayerArtifactSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactPattern:
    """
    One way a layer can become applicable.

    kind:
        "files"      - any file in the tree whose name matches ``globs``
        "descriptor" - a file named in ``globs`` directly under the root
        "directory"  - a directory named ``directory`` under the root that
                       contains at least one file matching ``globs``
    """
    technology: str
    kind: str
    globs: Tuple[str, ...]
    directory: Optional[str] = None


LAYER_PATTERNS: Dict[Layer, List[ArtifactPattern]] = {
    Layer.PROOF: [
        ArtifactPattern("lean", "files", ("*.lean",)),
        ArtifactPattern("coq", "files", ("*.v",)),
        ArtifactPattern("isabelle", "files", ("*.thy",)),
        ArtifactPattern("agda", "files", ("*.agda",)),
        ArtifactPattern("dafny", "files", ("*.dfy",)),
    ],
    Layer.SPEC: [
        ArtifactPattern("tla", "files", ("*.tla",)),
        ArtifactPattern("quint", "files", ("*.qnt",)),
        ArtifactPattern("alloy", "files", ("*.als",)),
    ],
    Layer.TYPE: [
        ArtifactPattern("python", "descriptor", ("pyproject.toml", "setup.cfg", "mypy.ini")),
        ArtifactPattern("typescript", "descriptor", ("tsconfig.json",)),
        ArtifactPattern("rust", "descriptor", ("Cargo.toml",)),
        ArtifactPattern("go", "descriptor", ("go.mod",)),
    ],
    Layer.CONTRACT: [
        ArtifactPattern("python", "directory", ("*.py",), directory="contracts"),
    ],
    Layer.TESTS: [
        ArtifactPattern("python", "files", ("test_*.py", "*_test.py")),
        ArtifactPattern(
            "javascript",
            "files",
            ("*.test.js", "*.test.ts", "*.test.jsx", "*.test.tsx", "*.spec.js", "*.spec.ts"),
        ),
        ArtifactPattern("go", "files", ("*_test.go",)),
    ],
}

# Directories never descended into: VCS metadata, dependencies, build output
SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".venv",
    "venv",
    "__pycache__",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".pytest_cache",
    ".lake",
    "_build",
    "target",
    "dist",
    "build",
}


class ArtifactLocator:
    """
    Scans a root for the artifacts that make each layer applicable.

    Deterministic for a fixed filesystem state: directory entries are
    visited in sorted order and results keep pattern declaration order.
    Absence of artifacts is reported as ``present = False``, never raised.
    """

    def __init__(
        self,
        patterns: Optional[Dict[Layer, List[ArtifactPattern]]] = None,
        skip_dirs: Optional[Iterable[str]] = None,
    ):
        self.patterns = patterns if patterns is not None else LAYER_PATTERNS
        self.skip_dirs = set(skip_dirs) if skip_dirs is not None else SKIP_DIRS

    def locate(self, root: Path, layer: Layer) -> LayerArtifactSet:
        """Discover artifacts for a single layer"""
        root = Path(root)
        found: Dict[str, Tuple[Path, ...]] = {}

        if not root.is_dir():
            logger.warning(f"Target root does not exist or is not a directory: {root}")
            return LayerArtifactSet(layer=layer, root=root, by_technology=found)

        patterns = self.patterns.get(layer, [])
        tree = self._walk(root) if any(p.kind == "files" for p in patterns) else []

        for pattern in patterns:
            paths = self._match(root, pattern, tree)
            if paths:
                # Two patterns may share a technology name
                found[pattern.technology] = found.get(pattern.technology, ()) + paths

        artifacts = LayerArtifactSet(layer=layer, root=root, by_technology=found)
        logger.debug(
            f"Located {len(artifacts.paths)} artifact(s) for layer '{layer.value}' "
            f"under {root} ({', '.join(artifacts.technologies) or 'none'})"
        )
        return artifacts

    def locate_all(
        self,
        root: Path,
        layers: Optional[Sequence[Layer]] = None,
    ) -> Dict[Layer, LayerArtifactSet]:
        """Discover artifacts for several layers (all of them by default)"""
        return {layer: self.locate(root, layer) for layer in (layers or list(Layer))}

    # =========================================================================
    # Matching
    # =========================================================================

    def _match(
        self,
        root: Path,
        pattern: ArtifactPattern,
        tree: List[Path],
    ) -> Tuple[Path, ...]:
        if pattern.kind == "files":
            return tuple(
                path for path in tree
                if _name_matches(path.name, pattern.globs)
            )

        if pattern.kind == "descriptor":
            return tuple(
                root / name for name in pattern.globs
                if (root / name).is_file()
            )

        if pattern.kind == "directory":
            directory = root / (pattern.directory or "")
            if not pattern.directory or not directory.is_dir():
                return ()
            contains_match = any(
                _name_matches(path.name, pattern.globs)
                for path in self._walk(directory)
            )
            return (directory,) if contains_match else ()

        raise ValueError(f"Unknown artifact pattern kind: {pattern.kind}")

    def _walk(self, root: Path) -> List[Path]:
        """Sorted recursive file listing with pruned directories"""
        files: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.skip_dirs)
            base = Path(dirpath)
            files.extend(base / name for name in sorted(filenames))
        return files


def _name_matches(name: str, globs: Sequence[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, glob) for glob in globs)
