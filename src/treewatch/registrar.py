"""Registration of watched directories with same-file deduplication."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .exceptions import RegistrationError, WatcherError
from .handles.base import HandleFactory
from .models import WatchEntry, file_identity
from .tree import iter_directories
from .watch_set import WatchSet

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class Registrar:
    """
    Creates watch entries for requested directories.
    
    New entries are only ever queued as pending additions on the watch
    set. A directory is skipped when it is the same physical directory
    as one already registered, whatever its spelling.
    """

    def __init__(self, watch_set: WatchSet, handle_factory: HandleFactory, recursive: bool = False):
        """
        Initialize the registrar.
        
        Args:
            watch_set: Watch set that receives new entries
            handle_factory: Source of native change handles
            recursive: Expand every path into its subtree before registering
        """
        self.watch_set = watch_set
        self.handle_factory = handle_factory
        self.recursive = recursive

    def is_registered(self, path: Path) -> bool:
        """
        Check whether a path is the same directory as a registered root.
        
        Directories are compared by device and inode, so a directory
        recreated under a registered path is not a duplicate of it.
        
        Args:
            path: Path to check
            
        Returns:
            True if a registered root refers to the same file
        """
        try:
            identity = file_identity(path)
        except OSError:
            return False
        return self.watch_set.lookup(identity) is not None

    def register_path(self, path: PathLike) -> Optional[WatchEntry]:
        """
        Register a single directory.
        
        Args:
            path: Directory to watch
            
        Returns:
            The queued entry, or None if the directory is already registered
            
        Raises:
            RegistrationError: If no handle could be opened for the path
        """
        path = Path(path).absolute()
        
        try:
            identity = file_identity(path)
        except OSError as e:
            raise RegistrationError(f"Cannot watch {path}: {e}") from e
        
        if self.watch_set.lookup(identity) is not None:
            logger.debug(f"Already watching {path}, skipping")
            return None
        
        try:
            handle = self.handle_factory.open(path)
        except (OSError, WatcherError) as e:
            raise RegistrationError(f"Cannot watch {path}: {e}") from e
        
        entry = WatchEntry(root=path, handle=handle, identity=identity)
        self.watch_set.add(entry)
        logger.debug(f"Registered {path}")
        return entry

    def _expand(self, path: PathLike) -> Iterable[Path]:
        if self.recursive:
            return iter_directories(path)
        return [Path(path)]

    def register(self, *paths: PathLike) -> List[WatchEntry]:
        """
        Register a batch of directories, skipping any that fail.
        
        Args:
            *paths: Directories to watch
            
        Returns:
            Entries created by this call
        """
        created = []
        for path in paths:
            for candidate in self._expand(path):
                try:
                    entry = self.register_path(candidate)
                except RegistrationError as e:
                    logger.debug(f"Skipping {candidate}: {e}")
                    continue
                if entry is not None:
                    created.append(entry)
        return created

    def intercept_created(self, path: Path) -> List[WatchEntry]:
        """
        Register a newly created directory and its subtree.
        
        Runs before the user's creation callback in adaptive mode. Paths
        that are not directories, or are symbolic links, are ignored.
        Every new entry is seeded with CREATE events for the children it
        already holds, since those may predate its handle.
        
        Args:
            path: Path reported by a creation event
            
        Returns:
            Entries created for the new directory
        """
        if path.is_symlink() or not path.is_dir():
            return []
        
        created = self.register(path)
        for entry in created:
            try:
                entry.seed_existing()
            except OSError as e:
                logger.debug(f"Cannot list {entry.root}: {e}")
        
        if created:
            logger.debug(f"Adaptively registered {len(created)} directory(ies) under {path}")
        return created
