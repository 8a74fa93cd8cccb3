"""
autoprofiler/settings/sources.py

Where tunables come from. Remote retrieval is outside this package; a
deployment plugs its own SettingsSource in. Two local sources ship here.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import ValidationError

from autoprofiler.contracts.settings import SettingsContract
from autoprofiler.errors import ConfigurationStaleError, ErrorCode, ProfilerError

logger = logging.getLogger(__name__)


class SettingsSource(Protocol):
    def fetch(self) -> Optional[SettingsContract]:
        """Return the latest contract, None when nothing is configured."""
        ...


class StaticSettingsSource:
    """Standalone mode: always returns the same contract."""

    def __init__(self, contract: Optional[SettingsContract] = None):
        self._contract = contract

    def fetch(self) -> Optional[SettingsContract]:
        return self._contract


class JsonFileSettingsSource:
    """Reads a SettingsContract from a JSON file on every fetch."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def fetch(self) -> Optional[SettingsContract]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ProfilerError(
                ErrorCode.CONFIG_FILE_NOT_FOUND,
                f"Settings file {self.path} not found",
                details={"path": str(self.path)},
            ) from e
        except OSError as e:
            raise ConfigurationStaleError(f"Cannot read {self.path}: {e}") from e

        if not text.strip():
            logger.debug(f"[JsonFileSettingsSource] {self.path} is empty")
            return None

        try:
            return SettingsContract.model_validate_json(text)
        except ValidationError as e:
            raise ProfilerError(
                ErrorCode.CONFIG_PARSE_ERROR,
                f"Invalid settings in {self.path}",
                details={"errors": e.errors(include_url=False)},
            ) from e
