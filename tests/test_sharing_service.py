"""
Tests for the sharing service and its stores against SQLite.

Covers:
- create_share option checks and expiry resolution
- access_by_passcode: view counting, caps, expiry, revocation, access logs
- uniform denial type with distinct internal reasons
- atomic view claim under a concurrent competitor
- rollback when a write fails mid-access
- ownership checks on revoke / list / logs
"""
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    DenialReason,
    ForbiddenError,
    InvalidPasscodeFormatError,
    InvalidShareOptionsError,
    MemoryNotFoundError,
    ShareNotFoundError,
    SharedAccessDeniedError,
    StoreUnavailableError,
)
from app.models.memory_access_log import MemoryAccessLog
from app.models.memory_share import MemoryShare
from app.services.memory import MemoryStore
from app.services.share_store import AccessLogStore, ShareStore
from app.services.sharing import SharingService


def _log_count(db, share_id: str) -> int:
    return db.query(MemoryAccessLog).filter(MemoryAccessLog.memory_share_id == share_id).count()


def _views(db, share_id: str) -> int:
    db.expire_all()
    return db.get(MemoryShare, share_id).current_views


# ---------------------------------------------------------------------------
# create_share
# ---------------------------------------------------------------------------

class TestCreateShare:
    def test_defaults(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        assert len(share.access_passcode) == 12
        assert share.allowed_views == -1
        assert share.current_views == 0
        assert share.is_active is True
        assert share.expires_at is None
        assert share.shared_by_user_id == owner_id
        assert share.memory_id == memory.id

    @pytest.mark.parametrize("bad", [0, -2, -100])
    def test_rejects_zero_and_other_negatives(self, service, owner_id, memory, bad):
        with pytest.raises(InvalidShareOptionsError) as exc_info:
            service.create_share(owner_id, memory.id, allowed_views=bad)
        assert exc_info.value.details["field"] == "allowed_views"

    def test_expires_in_days_is_fixed_at_creation(self, service, owner_id, memory, clock):
        share = service.create_share(owner_id, memory.id, expires_in_days=7)
        expected = clock.now + timedelta(days=7)
        stored = share.expires_at.replace(tzinfo=timezone.utc) if share.expires_at.tzinfo is None else share.expires_at
        assert abs(stored - expected) < timedelta(seconds=1)

    def test_absolute_expiry_is_normalized_to_utc(self, service, owner_id, memory):
        plus_two = timezone(timedelta(hours=2))
        share = service.create_share(
            owner_id, memory.id, expires_at=datetime(2030, 1, 1, 12, 0, tzinfo=plus_two)
        )
        stored = share.expires_at.replace(tzinfo=timezone.utc) if share.expires_at.tzinfo is None else share.expires_at
        assert stored == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_both_expiry_forms_rejected(self, service, owner_id, memory, clock):
        with pytest.raises(InvalidShareOptionsError):
            service.create_share(
                owner_id, memory.id, expires_in_days=1, expires_at=clock.now + timedelta(days=2)
            )

    def test_expiry_beyond_max_rejected(self, service, owner_id, memory):
        with pytest.raises(InvalidShareOptionsError):
            service.create_share(owner_id, memory.id, expires_in_days=10_000)

    def test_unknown_memory(self, service, owner_id):
        with pytest.raises(MemoryNotFoundError):
            service.create_share(owner_id, "does-not-exist")

    def test_other_users_memory_is_forbidden(self, service, memory):
        with pytest.raises(ForbiddenError):
            service.create_share("someone-else", memory.id)

    def test_recipient_email_is_stored(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id, recipient_email="kid@example.com")
        assert share.recipient_email == "kid@example.com"

    def test_passcode_collision_regenerates(self, db, owner_id, memory, clock):
        first = SharingService(db, clock=clock).create_share(owner_id, memory.id)
        codes = iter([first.access_passcode, "Zz23456789Ab"])
        store = ShareStore(db, passcode_factory=lambda: next(codes))
        second = SharingService(db, shares=store, clock=clock).create_share(owner_id, memory.id)
        assert second.access_passcode == "Zz23456789Ab"

    def test_persistent_collisions_give_up(self, db, owner_id, memory, clock):
        first = SharingService(db, clock=clock).create_share(owner_id, memory.id)
        store = ShareStore(db, passcode_factory=lambda: first.access_passcode)
        with pytest.raises(StoreUnavailableError):
            SharingService(db, shares=store, clock=clock).create_share(owner_id, memory.id)

    def test_unique_index_conflict_regenerates(self, db, owner_id, memory, clock):
        # A concurrent writer took the code after the lookup: only the index sees it.
        first = SharingService(db, clock=clock).create_share(owner_id, memory.id)
        codes = iter([first.access_passcode, "Zq23456789Ab"])
        store = ShareStore(db, passcode_factory=lambda: next(codes))
        service = SharingService(db, shares=store, clock=clock)
        with mock.patch.object(store, "find_by_passcode", return_value=None):
            second = service.create_share(owner_id, memory.id)

        assert second.access_passcode == "Zq23456789Ab"
        db.expire_all()
        stored = {s.access_passcode for s in ShareStore(db).list_by_memory(memory.id)}
        assert stored == {first.access_passcode, "Zq23456789Ab"}
        assert service.access_by_passcode("Zq23456789Ab").share.current_views == 1

    def test_unique_index_conflicts_give_up(self, db, owner_id, memory, clock):
        first = SharingService(db, clock=clock).create_share(owner_id, memory.id)
        store = ShareStore(db, passcode_factory=lambda: first.access_passcode)
        with mock.patch.object(store, "find_by_passcode", return_value=None):
            with pytest.raises(StoreUnavailableError) as exc_info:
                SharingService(db, shares=store, clock=clock).create_share(owner_id, memory.id)
        assert exc_info.value.details["operation"] == "generate_passcode"


# ---------------------------------------------------------------------------
# access_by_passcode
# ---------------------------------------------------------------------------

class TestAccessByPasscode:
    def test_unlimited_views_count_up(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        for k in range(1, 6):
            result = service.access_by_passcode(share.access_passcode, "10.0.0.1", "pytest")
            assert result.share.current_views == k
        assert _views(db, share.id) == 5
        assert _log_count(db, share.id) == 5

    def test_single_view_limit(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id, allowed_views=1)
        first = service.access_by_passcode(share.access_passcode)
        assert first.share.current_views == 1
        for _ in range(3):
            with pytest.raises(SharedAccessDeniedError) as exc_info:
                service.access_by_passcode(share.access_passcode)
            assert exc_info.value.is_expired
            assert exc_info.value.reason is DenialReason.exhausted
        assert _views(db, share.id) == 1
        assert _log_count(db, share.id) == 1

    def test_three_views_then_denied(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id, allowed_views=3)
        counts = [service.access_by_passcode(share.access_passcode).share.current_views for _ in range(3)]
        assert counts == [1, 2, 3]
        with pytest.raises(SharedAccessDeniedError):
            service.access_by_passcode(share.access_passcode)
        assert _log_count(db, share.id) == 3

    def test_past_expiry_denied_with_views_left(self, db, service, owner_id, memory, clock):
        share = service.create_share(
            owner_id, memory.id, allowed_views=5, expires_at=clock.now - timedelta(minutes=1)
        )
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.reason is DenialReason.expired
        assert _log_count(db, share.id) == 0

    def test_clock_moving_past_expiry(self, db, service, owner_id, memory, clock):
        share = service.create_share(owner_id, memory.id, expires_in_days=1)
        service.access_by_passcode(share.access_passcode)
        clock.now = clock.now + timedelta(days=1, seconds=1)
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.reason is DenialReason.expired
        assert _views(db, share.id) == 1

    def test_expires_in_zero_days_is_dead_on_arrival(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id, expires_in_days=0)
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.is_expired
        assert _views(db, share.id) == 0

    def test_unknown_passcode(self, service):
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode("Zzzzzzzzzzzz")
        assert exc_info.value.is_not_found
        assert exc_info.value.share_id is None

    def test_denials_are_indistinguishable_outside(self, service, owner_id, memory):
        revoked = service.create_share(owner_id, memory.id)
        service.revoke_share(owner_id, revoked.id)
        errors = []
        for code in ("Zzzzzzzzzzzz", revoked.access_passcode):
            with pytest.raises(SharedAccessDeniedError) as exc_info:
                service.access_by_passcode(code)
            errors.append(exc_info.value)
        assert errors[0].reason != errors[1].reason
        assert errors[0].to_dict() == errors[1].to_dict()
        assert errors[0].http_status == errors[1].http_status

    def test_missing_viewer_info_defaults_to_unknown(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        result = service.access_by_passcode(share.access_passcode)
        assert result.log_entry.viewer_ip_address == "unknown"
        assert result.log_entry.viewer_user_agent == "unknown"

    def test_returns_sanitized_memory(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        result = service.access_by_passcode(share.access_passcode)
        dumped = result.memory.model_dump()
        assert dumped["question"] == "What was your first job?"
        assert "user_id" not in dumped
        assert "share_passcode" not in dumped

    def test_log_rows_carry_viewer_metadata(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        service.access_by_passcode(share.access_passcode, "203.0.113.5", "Firefox/130")
        logs = service.list_access_logs(owner_id, share.id)
        assert len(logs) == 1
        assert logs[0].viewer_ip_address == "203.0.113.5"
        assert logs[0].viewer_user_agent == "Firefox/130"


class TestMalformedPasscodeSkipsStore:
    @pytest.mark.parametrize("passcode", ["ABCDEFGHJKM", "ABCDEF GHJKM", "", "ABCDEFGHJKMNP", None])
    def test_no_store_calls(self, passcode):
        shares = mock.Mock(spec=ShareStore)
        logs = mock.Mock(spec=AccessLogStore)
        memories = mock.Mock(spec=MemoryStore)
        db = mock.Mock()
        service = SharingService(db, shares=shares, access_logs=logs, memories=memories)

        with pytest.raises(InvalidPasscodeFormatError):
            service.access_by_passcode(passcode, "1.2.3.4", "ua")

        assert shares.mock_calls == []
        assert logs.mock_calls == []
        assert memories.mock_calls == []
        assert db.mock_calls == []


# ---------------------------------------------------------------------------
# Atomicity
# ---------------------------------------------------------------------------

class TestAtomicViewClaim:
    def test_increment_refuses_past_limit(self, db, service, owner_id, memory, clock):
        share = service.create_share(owner_id, memory.id, allowed_views=1)
        store = ShareStore(db)
        assert store.increment_views(share.id, clock.now) is True
        assert store.increment_views(share.id, clock.now) is False
        db.commit()
        assert _views(db, share.id) == 1

    def test_increment_refuses_revoked_and_expired(self, db, service, owner_id, memory, clock):
        revoked = service.create_share(owner_id, memory.id)
        service.revoke_share(owner_id, revoked.id)
        expired = service.create_share(owner_id, memory.id, expires_at=clock.now - timedelta(seconds=5))
        store = ShareStore(db)
        assert store.increment_views(revoked.id, clock.now) is False
        assert store.increment_views(expired.id, clock.now) is False

    def test_competitor_takes_last_view_after_our_read(self, db, owner_id, memory, clock, session_factory):
        share = SharingService(db, clock=clock).create_share(owner_id, memory.id, allowed_views=1)

        class RacingShareStore(ShareStore):
            def find_by_passcode(self, passcode):
                found = super().find_by_passcode(passcode)
                # A second request claims the only view between our read and our update.
                other = session_factory()
                try:
                    other.execute(
                        update(MemoryShare)
                        .where(MemoryShare.id == found.id)
                        .values(current_views=MemoryShare.current_views + 1)
                        .execution_options(synchronize_session=False)
                    )
                    other.commit()
                finally:
                    other.close()
                return found

        service = SharingService(db, shares=RacingShareStore(db), clock=clock)
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.reason is DenialReason.exhausted
        assert _views(db, share.id) == 1
        assert _log_count(db, share.id) == 0

    def test_failed_log_write_rolls_back_increment(self, db, owner_id, memory, clock):
        share = SharingService(db, clock=clock).create_share(owner_id, memory.id, allowed_views=2)

        class BrokenLogStore(AccessLogStore):
            def append(self, share_id, viewer_ip, viewer_user_agent):
                raise OperationalError("INSERT INTO memory_access_logs", {}, Exception("disk I/O error"))

        service = SharingService(db, access_logs=BrokenLogStore(db), clock=clock)
        with pytest.raises(StoreUnavailableError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.http_status == 503
        assert _views(db, share.id) == 0
        assert _log_count(db, share.id) == 0


# ---------------------------------------------------------------------------
# Revocation, listing, ownership
# ---------------------------------------------------------------------------

class TestRevokeShare:
    def test_revoke_blocks_access_and_is_idempotent(self, db, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        service.access_by_passcode(share.access_passcode)

        assert service.revoke_share(owner_id, share.id).is_active is False
        with pytest.raises(SharedAccessDeniedError) as exc_info:
            service.access_by_passcode(share.access_passcode)
        assert exc_info.value.reason is DenialReason.revoked

        again = service.revoke_share(owner_id, share.id)
        assert again.is_active is False
        with pytest.raises(SharedAccessDeniedError):
            service.access_by_passcode(share.access_passcode)
        assert _views(db, share.id) == 1

    def test_revoking_one_grant_leaves_sibling_alive(self, service, owner_id, memory):
        a = service.create_share(owner_id, memory.id)
        b = service.create_share(owner_id, memory.id)
        assert a.access_passcode != b.access_passcode
        service.revoke_share(owner_id, a.id)
        assert service.access_by_passcode(b.access_passcode).share.current_views == 1

    def test_non_owner_cannot_revoke(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        with pytest.raises(ForbiddenError):
            service.revoke_share("intruder", share.id)
        assert service.access_by_passcode(share.access_passcode).share.is_active is True

    def test_unknown_share(self, service, owner_id):
        with pytest.raises(ShareNotFoundError):
            service.revoke_share(owner_id, "no-such-share")


class TestListing:
    def test_list_for_owner_newest_first(self, service, owner_id, memory):
        first = service.create_share(owner_id, memory.id)
        second = service.create_share(owner_id, memory.id)
        ids = [s.id for s in service.list_shares_for_owner(owner_id)]
        assert ids == [second.id, first.id]

    def test_list_for_owner_excludes_others(self, service, owner_id, memory):
        service.create_share(owner_id, memory.id)
        assert service.list_shares_for_owner("nobody-" + owner_id) == []

    def test_list_for_memory(self, service, owner_id, memory):
        created = {service.create_share(owner_id, memory.id).id for _ in range(2)}
        listed = {s.id for s in service.list_shares_for_memory(owner_id, memory.id)}
        assert listed == created

    def test_list_for_memory_requires_ownership(self, service, memory):
        with pytest.raises(ForbiddenError):
            service.list_shares_for_memory("intruder", memory.id)

    def test_access_logs_newest_first(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        service.access_by_passcode(share.access_passcode, "1.1.1.1", "first")
        service.access_by_passcode(share.access_passcode, "2.2.2.2", "second")
        logs = service.list_access_logs(owner_id, share.id)
        assert [entry.viewer_user_agent for entry in logs] == ["second", "first"]

    def test_access_logs_require_ownership(self, service, owner_id, memory):
        share = service.create_share(owner_id, memory.id)
        with pytest.raises(ForbiddenError):
            service.list_access_logs("intruder", share.id)


class TestLogging:
    def test_denial_reason_logged_without_passcode(self, service, owner_id, memory, caplog):
        share = service.create_share(owner_id, memory.id)
        service.revoke_share(owner_id, share.id)
        with caplog.at_level("INFO", logger="app.services.sharing"):
            with pytest.raises(SharedAccessDeniedError):
                service.access_by_passcode(share.access_passcode)
        assert "reason=revoked" in caplog.text
        assert share.id in caplog.text
        assert share.access_passcode not in caplog.text
