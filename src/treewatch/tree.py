"""Lazy directory-tree enumeration that never follows symbolic links."""

import logging
import os
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)


def iter_directories(root: Union[str, os.PathLike]) -> Iterator[Path]:
    """
    Yield a root and every descendant directory, depth first.
    
    Symbolic links to directories are neither yielded nor descended into.
    The root itself is yielded as given, even when it is a link, because
    the caller named it explicitly. Unreadable subdirectories are skipped.
    
    Args:
        root: Directory to enumerate
        
    Yields:
        Absolute paths of the root and its descendant directories
    """
    root = Path(root).absolute()
    if not root.is_dir():
        return
    
    yield root
    
    def _on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable directory {error.filename}: {error}")
    
    for dirpath, dirnames, _ in os.walk(root, topdown=True, onerror=_on_error, followlinks=False):
        base = Path(dirpath)
        # Prune links so os.walk neither reports nor enters them
        dirnames[:] = sorted(d for d in dirnames if not (base / d).is_symlink())
        for name in dirnames:
            yield base / name
