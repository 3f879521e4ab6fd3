import os
import stat
from pathlib import Path
from typing import Iterable, List, Sequence, Union
from tomp4.config.models import DEFAULT_EXTENSIONS
from tomp4.domain.errors import DiscoveryError

def is_media_candidate(path: Union[str, Path], extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> bool:
    """True for non-hidden files whose (case-sensitive) suffix is allowed."""
    name = os.path.basename(str(path))
    if not name or name.startswith("."):
        return False
    _, ext = os.path.splitext(name)
    return ext in extensions

def discover(root: Union[str, Path], recursive: bool = False) -> List[Path]:
    """Expands root into leaf file paths using an explicit stack.

    A file root is returned as is. A directory root always has its immediate
    children expanded; deeper directories are expanded only when recursive.
    Directories themselves are never returned.

    Raises DiscoveryError when any visited path cannot be stat'ed or listed.
    """
    to_explore: List[Path] = [Path(root)]
    files: List[Path] = []
    top_level = True

    while to_explore:
        current = to_explore.pop()
        try:
            is_dir = stat.S_ISDIR(os.stat(current).st_mode)
        except OSError as e:
            raise DiscoveryError(current, f"unable to stat path: {e}") from e

        if is_dir and (recursive or top_level):
            try:
                entries = sorted(os.listdir(current))
            except OSError as e:
                raise DiscoveryError(current, f"unable to read dir: {e}") from e
            # Reversed so entries pop in sorted order
            to_explore.extend(current / name for name in reversed(entries))
        elif not is_dir:
            files.append(current)
        top_level = False

    return files

class FileScanner:
    """Discovery and classification bound to a configured extension list."""

    def __init__(self, extensions: Iterable[str] = DEFAULT_EXTENSIONS):
        self.extensions = [ext if ext.startswith(".") else f".{ext}" for ext in extensions]

    def is_media_candidate(self, path: Union[str, Path]) -> bool:
        return is_media_candidate(path, self.extensions)

    def discover(self, root: Union[str, Path], recursive: bool = False) -> List[Path]:
        return discover(root, recursive)

    def discover_candidates(self, root: Union[str, Path]) -> List[Path]:
        """Recursive discovery filtered to media candidates (watch mode)."""
        return [path for path in discover(root, recursive=True) if self.is_media_candidate(path)]
