"""Tests for the trusted-for-today record."""

import json
from datetime import datetime, timedelta

from portal_auth.services.trusted_session import (
    JsonFileStorage,
    MemoryStorage,
    TrustedSessionCache,
    recorded_today,
)
from tests.conftest import MADRID, LocalNow
from tests.fakes import CORPORATE_EMAIL


def cache_at(now: datetime, storage=None) -> TrustedSessionCache:
    return TrustedSessionCache(storage or MemoryStorage(), key="last_login", now=LocalNow(now))


class TestCanSkip:
    """Same identity, same local calendar day."""

    def test_same_day(self, trusted):
        trusted.mark_trusted(CORPORATE_EMAIL)

        assert trusted.can_skip(CORPORATE_EMAIL) is True

    def test_no_record(self, trusted):
        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_other_identity(self, trusted):
        trusted.mark_trusted("luis@avtechesdeveniments.com")

        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_input_normalized(self, trusted):
        trusted.mark_trusted(CORPORATE_EMAIL)

        assert trusted.can_skip(" Ana@AVTECHESDEVENIMENTS.com ") is True

    def test_stored_email_compared_exactly(self, trusted, storage, wall_clock):
        """A record with different casing is never treated as a match."""
        storage.set(
            trusted.key,
            json.dumps(
                {"email": "Ana@avtechesdeveniments.com", "timestamp": int(wall_clock.now.timestamp() * 1000)}
            ),
        )

        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_local_midnight_boundary(self):
        """A login at 23:59 does not carry over to 00:01."""
        storage = MemoryStorage()
        cache_at(datetime(2025, 3, 10, 23, 59, tzinfo=MADRID), storage).mark_trusted(CORPORATE_EMAIL)

        later = cache_at(datetime(2025, 3, 11, 0, 1, tzinfo=MADRID), storage)

        assert later.can_skip(CORPORATE_EMAIL) is False

    def test_uses_local_date_not_utc(self):
        """00:30 local is still today even though it is yesterday in UTC."""
        storage = MemoryStorage()
        cache_at(datetime(2025, 3, 10, 0, 30, tzinfo=MADRID), storage).mark_trusted(CORPORATE_EMAIL)

        later = cache_at(datetime(2025, 3, 10, 18, 0, tzinfo=MADRID), storage)

        assert later.can_skip(CORPORATE_EMAIL) is True

    def test_next_day(self, trusted, wall_clock):
        trusted.mark_trusted(CORPORATE_EMAIL)
        wall_clock.now += timedelta(days=1)

        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_corrupt_record_treated_as_absent(self, trusted, storage):
        storage.set(trusted.key, "{not json")

        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_record_missing_fields(self, trusted, storage):
        storage.set(trusted.key, json.dumps({"email": CORPORATE_EMAIL}))

        assert trusted.can_skip(CORPORATE_EMAIL) is False

    def test_clear(self, trusted, storage):
        trusted.mark_trusted(CORPORATE_EMAIL)

        trusted.clear()

        assert storage.get(trusted.key) is None
        assert trusted.can_skip(CORPORATE_EMAIL) is False


class TestJsonFileStorage:
    """Persisting records on disk."""

    def test_record_survives_new_instance(self, tmp_path, wall_clock):
        path = tmp_path / "trusted.json"
        TrustedSessionCache(JsonFileStorage(path), now=wall_clock).mark_trusted(CORPORATE_EMAIL)

        cache = TrustedSessionCache(JsonFileStorage(path), now=wall_clock)

        assert cache.can_skip(CORPORATE_EMAIL) is True

    def test_keys_kept_apart(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "trusted.json")
        storage.set("a", "1")
        storage.set("b", "2")

        storage.remove("a")

        assert storage.get("a") is None
        assert storage.get("b") == "2"

    def test_missing_file(self, tmp_path):
        assert JsonFileStorage(tmp_path / "absent.json").get("key") is None

    def test_corrupt_file_treated_as_absent(self, tmp_path, wall_clock):
        path = tmp_path / "trusted.json"
        path.write_text("garbage", encoding="utf-8")
        cache = TrustedSessionCache(JsonFileStorage(path), now=wall_clock)

        assert cache.can_skip(CORPORATE_EMAIL) is False

        cache.mark_trusted(CORPORATE_EMAIL)
        assert cache.can_skip(CORPORATE_EMAIL) is True

    def test_old_records_dropped_on_write(self, tmp_path, wall_clock):
        """Writing today's record drops other devices' records from earlier days."""
        path = tmp_path / "trusted.json"
        yesterday = LocalNow(wall_clock() - timedelta(days=1))
        old_storage = JsonFileStorage(path)
        TrustedSessionCache(old_storage, key="last_login:old", now=yesterday).mark_trusted(
            "luis@avtechesdeveniments.com"
        )
        TrustedSessionCache(old_storage, key="last_login:recent", now=wall_clock).mark_trusted(
            "marta@avtechesdeveniments.com"
        )

        storage = JsonFileStorage(path, keep=recorded_today(wall_clock))
        TrustedSessionCache(storage, key="last_login:new", now=wall_clock).mark_trusted(
            CORPORATE_EMAIL
        )

        assert set(json.loads(path.read_text(encoding="utf-8"))) == {
            "last_login:recent",
            "last_login:new",
        }
