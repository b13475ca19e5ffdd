"""Configuration for the treewatch package."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class WatcherConfig:
    """
    Configuration options for a watcher.
    
    Attributes:
        recursive: Expand every root into its full subtree at registration
        adaptive: Register directories created while running (implies recursive)
        idle_backoff_ms: Wait after a poll cycle that dispatched nothing (0 spins)
        max_buffered_events: Events a handle buffers before reporting overflow
        thread_name: Name of the internally managed poll thread
    """
    recursive: bool = False
    adaptive: bool = False
    idle_backoff_ms: int = 10
    max_buffered_events: int = 512
    thread_name: str = "treewatch-poll"

    def __post_init__(self):
        if self.adaptive:
            self.recursive = True
        if self.idle_backoff_ms < 0:
            raise ValueError(f"idle_backoff_ms must be >= 0: {self.idle_backoff_ms}")
        if self.max_buffered_events < 1:
            raise ValueError(f"max_buffered_events must be >= 1: {self.max_buffered_events}")

    @property
    def idle_backoff(self) -> float:
        """Idle backoff in seconds."""
        return self.idle_backoff_ms / 1000.0

    @classmethod
    def from_env(
        cls,
        prefix: str = "TREEWATCH_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "WatcherConfig":
        """
        Build a config from environment variables.
        
        Args:
            prefix: Variable name prefix
            environ: Mapping to read instead of os.environ
            
        Returns:
            Config with defaults overridden by any variables present
        """
        env = os.environ if environ is None else environ
        kwargs = {}
        
        for name in ("recursive", "adaptive"):
            value = env.get(f"{prefix}{name.upper()}")
            if value is not None:
                kwargs[name] = _parse_bool(value)
        
        for name in ("idle_backoff_ms", "max_buffered_events"):
            value = env.get(f"{prefix}{name.upper()}")
            if value is not None:
                kwargs[name] = int(value)
        
        thread_name = env.get(f"{prefix}THREAD_NAME")
        if thread_name:
            kwargs["thread_name"] = thread_name
        
        return cls(**kwargs)
