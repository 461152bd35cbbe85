"""
Preferences Storage

The electricity rate and the first-session baseline reading are the
only settings the user edits in the app. They are kept as a small JSON
document; without a path they live in memory only.
"""

from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from zapntap.models.session import Preferences
from zapntap.services.storage.interface import StorageError


logger = structlog.get_logger(__name__)


class PreferencesStore:
    """Loads and saves Preferences as JSON."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        defaults: Optional[Preferences] = None,
    ):
        self._path = Path(path) if path else None
        self._defaults = defaults or Preferences()
        self._cached: Optional[Preferences] = None

    def load(self) -> Preferences:
        """
        Load preferences.

        A missing file yields the defaults. A corrupt file is logged and
        also yields the defaults, so a bad edit never locks the user out.
        """
        if self._cached is not None:
            return self._cached.model_copy()

        prefs = self._defaults
        if self._path is not None and self._path.exists():
            try:
                prefs = Preferences.model_validate_json(self._path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.warning("preferences_unreadable", path=str(self._path), error=str(e))

        self._cached = prefs
        return prefs.model_copy()

    def save(self, prefs: Preferences) -> None:
        """
        Persist preferences.

        Raises:
            StorageError: If the file could not be written
        """
        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self._path.with_suffix(self._path.suffix + ".tmp")
                tmp.write_text(prefs.model_dump_json(indent=2), encoding="utf-8")
                tmp.replace(self._path)
            except OSError as e:
                raise StorageError(f"Failed to save preferences: {e}") from e
        self._cached = prefs.model_copy()

    def update(self, **changes) -> Preferences:
        """Validate and persist a partial change."""
        current = self.load()
        updated = Preferences.model_validate({**current.model_dump(), **changes})
        self.save(updated)
        return updated
