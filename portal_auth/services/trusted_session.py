"""Trusted-for-today record.

One record per device: the identity and the time of its last fully completed
login. It only ever lets a login skip the one-time code on the same calendar
day (local time) for the same identity; anything unreadable counts as absent.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol

from portal_auth.config import settings
from portal_auth.schemas.identity import TrustedSessionRecord
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    return datetime.now().astimezone()


def _written_today(record: TrustedSessionRecord, now: datetime) -> bool:
    try:
        recorded = datetime.fromtimestamp(record.timestamp / 1000, tz=now.tzinfo)
    except (OverflowError, OSError, ValueError):
        return False
    return recorded.date() == now.date()


def recorded_today(now: Callable[[], datetime] = local_now) -> Callable[[str, str], bool]:
    """Storage filter keeping only records that can still skip the code."""

    def keep(key: str, value: str) -> bool:
        try:
            record = TrustedSessionRecord.model_validate_json(value)
        except ValueError:
            return False
        return _written_today(record, now())

    return keep


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """String values kept in a single JSON object file.

    With ``keep``, every write also drops the entries it rejects, so records
    of devices that never sign out do not pile up.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        keep: Callable[[str, str], bool] | None = None,
    ):
        self.path = Path(path or settings.trusted_session_storage_path)
        self.keep = keep

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        if self.keep is not None:
            data = {
                key: value
                for key, value in data.items()
                if isinstance(value, str) and self.keep(key, value)
            }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._load()
        except ValueError:
            data = {}
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        try:
            data = self._load()
        except ValueError:
            data = {}
        if key in data:
            del data[key]
            self._save(data)


class TrustedSessionCache:
    """Decides whether a login may skip the one-time code."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str | None = None,
        now: Callable[[], datetime] = local_now,
    ):
        self.storage = storage
        self.key = key or settings.trusted_session_key
        self._now = now

    def _read(self) -> TrustedSessionRecord | None:
        try:
            raw = self.storage.get(self.key)
            if raw is None:
                return None
            return TrustedSessionRecord.model_validate_json(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable trusted-session record: {e}")
            return None

    def can_skip(self, email: str) -> bool:
        """True only for a record of this exact identity written today."""
        record = self._read()
        if record is None or record.email != normalize_email(email):
            return False

        return _written_today(record, self._now())

    def mark_trusted(self, email: str) -> None:
        record = TrustedSessionRecord(
            email=normalize_email(email),
            timestamp=int(self._now().timestamp() * 1000),
        )
        try:
            self.storage.set(self.key, record.model_dump_json())
        except OSError as e:
            logger.warning(f"Could not persist trusted-session record: {e}")

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except OSError as e:
            logger.warning(f"Could not remove trusted-session record: {e}")
