"""
Client Configuration
Construction options, environment loading and client factories
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .client import LocalClient

DEFAULT_DATASET = 'local'
DEFAULT_LOG_LEVEL = 'info'
DEFAULT_ASSETS_DIRNAME = 'local_assets'

LOG_LEVELS: Dict[str, int] = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR
}


@dataclass(frozen=True)
class ClientConfig:
    dataset: str = DEFAULT_DATASET
    log_level: str = DEFAULT_LOG_LEVEL
    assets_directory: Optional[str] = None

    def __post_init__(self):
        if not self.dataset:
            raise ValueError('dataset must be a non-empty string')
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level {self.log_level!r}; expected one of {sorted(LOG_LEVELS)}"
            )

    @property
    def logging_level(self) -> int:
        return LOG_LEVELS[self.log_level.lower()]

    @property
    def resolved_assets_directory(self) -> str:
        if self.assets_directory:
            return os.path.abspath(self.assets_directory)
        return os.path.join(os.getcwd(), DEFAULT_ASSETS_DIRNAME)

    def merge(self, **overrides: Any) -> 'ClientConfig':
        """Copy with every override that is not None applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'ClientConfig':
        load_dotenv(dotenv_path)
        return cls(
            dataset=os.getenv('LOCAL_STORE_DATASET', DEFAULT_DATASET),
            log_level=os.getenv('LOCAL_STORE_LOG_LEVEL', DEFAULT_LOG_LEVEL),
            assets_directory=os.getenv('LOCAL_STORE_ASSETS_DIR') or None
        )


def create_client_factory(
    base_config: Optional[ClientConfig] = None
) -> Callable[..., 'LocalClient']:
    """
    Build a factory that returns a fresh client on each call.

    Keyword overrides passed to the factory are merged over ``base_config``;
    the produced clients share no state with each other.
    """
    from .client import LocalClient

    base = base_config or ClientConfig()

    def factory(**overrides: Any) -> LocalClient:
        return LocalClient(base.merge(**overrides))

    return factory
