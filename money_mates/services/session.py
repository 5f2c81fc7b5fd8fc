"""
Remembered Login

Stores the last active profile on this device so the app can skip the
profile picker. A record is valid for a fixed number of days (30 by
default), checked when it is read. Expired or unreadable records are
removed.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ValidationError

from money_mates.config import get_settings
from money_mates.models.ledger import ProfileId, utc_now

_logger = structlog.get_logger("money_mates.session")


class SessionRecord(BaseModel):
    profile_id: ProfileId
    timestamp: datetime


class LocalSessionStore:
    """Device-local JSON file holding one SessionRecord."""

    def __init__(
        self,
        path: Optional[Path] = None,
        ttl_days: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        settings = get_settings().app if path is None or ttl_days is None else None
        self._path = Path(path) if path is not None else settings.session_path
        self._ttl = timedelta(days=ttl_days if ttl_days is not None else settings.session_ttl_days)
        self._clock = clock

    def load(self) -> Optional[ProfileId]:
        """The remembered profile, or None if absent, expired or corrupt."""
        if not self._path.exists():
            return None
        try:
            record = SessionRecord.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            _logger.warning("session_record_unreadable", path=str(self._path), error=str(e))
            self.clear()
            return None

        timestamp = record.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if self._clock() - timestamp > self._ttl:
            self.clear()
            return None
        return record.profile_id

    def save(self, profile_id: ProfileId) -> None:
        record = SessionRecord(profile_id=profile_id, timestamp=self._clock())
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(record.model_dump(mode="json")),
            encoding="utf-8",
        )

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
