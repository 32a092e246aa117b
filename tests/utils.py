"""Helpers shared by the test modules."""

from pathlib import Path
from typing import Dict, Union


def make_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    """Create ``{relative_path: content}`` below ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    return root


def relative_files(root: Path) -> Dict[str, bytes]:
    """Map of relative path to content for every file below ``root``."""
    return {
        str(path.relative_to(root)).replace("\\", "/"): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def relative_dirs(root: Path) -> set:
    return {
        str(path.relative_to(root)).replace("\\", "/")
        for path in root.rglob("*")
        if path.is_dir()
    }
