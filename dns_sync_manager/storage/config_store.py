"""
Config Store - Key-addressed persistence for providers, options and history

Values are whole JSON-compatible collections. Callers read, modify and put
back the full value; concurrent writers are not merged and the last write
wins.
"""

import copy
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROVIDERS_KEY = "dns_providers"
SYNC_CONFIG_KEY = "sync_config"
SYNC_HISTORY_KEY = "sync_history"


class ConfigStore(ABC):
    """Abstract key/value store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a deep copy of the value stored under key."""
        pass

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Replace the value stored under key."""
        pass


class MemoryConfigStore(ConfigStore):
    """In-process store, used by tests and one-shot runs."""

    def __init__(self, initial: Optional[Dict] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class YAMLConfigStore(ConfigStore):
    """Store backed by a single YAML document on disk."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict:
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            return {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing state file {self.path}: {e}")
            raise ConfigurationError(f"Corrupt state file {self.path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"State file {self.path} must contain a mapping")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def put(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value

        directory = self.path.parent if str(self.path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=".state-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Saved '{key}' to {self.path}")
