"""
Test claim allocation against material capacity.
"""
import logging
from contextlib import nullcontext

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from event_registry.core.errors import (
    AlreadyClaimed,
    Busy,
    CapacityExceeded,
    NotFound,
    Unauthorized,
    ValidationError,
)
from event_registry.models.claims import Claim, ClaimStatus
from event_registry.models.materials import Material
from event_registry.services import allocation, locking, registry


def claim(db: Session, material: Material, user_id: str, quantity: int = 1, **kwargs) -> Claim:
    return allocation.claim_material(db, material_id=material.id, user_id=user_id, quantity=quantity, **kwargs)


def active_claims(db: Session, material_id: int) -> list[Claim]:
    return list(
        db.scalars(
            select(Claim).where(Claim.material_id == material_id, Claim.status == ClaimStatus.CLAIMED.value)
        )
    )


class TestClaimScenarios:
    """The yoga mat and water bottle walkthroughs."""

    def test_limited_material_fills_up(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 2)

        claim(db_session, mat, "user-a", 1)
        assert allocation.get_remaining_capacity(db_session, mat.id) == 1

        with pytest.raises(CapacityExceeded) as exc_info:
            claim(db_session, mat, "user-b", 2)
        assert exc_info.value.remaining == 1
        assert "Only 1 left" in str(exc_info.value)

        claim(db_session, mat, "user-b", 1)
        assert allocation.get_remaining_capacity(db_session, mat.id) == 0

        with pytest.raises(CapacityExceeded) as exc_info:
            claim(db_session, mat, "user-c", 1)
        assert exc_info.value.remaining == 0

    def test_unclaim_frees_capacity(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 2)
        first = claim(db_session, mat, "user-a", 1)
        claim(db_session, mat, "user-b", 1)

        allocation.unclaim_material(db_session, claim_id=first.id, user_id="user-a")
        assert allocation.get_remaining_capacity(db_session, mat.id) == 1

        claim(db_session, mat, "user-c", 1)
        assert allocation.get_remaining_capacity(db_session, mat.id) == 0

    def test_unlimited_material(self, db_session: Session, make_material):
        bottle = make_material("Water Bottle", None)

        for i in range(10):
            claim(db_session, bottle, f"user-{i}", 1)
            assert allocation.get_remaining_capacity(db_session, bottle.id) is None

        assert len(active_claims(db_session, bottle.id)) == 10
        assert allocation.get_claimed_quantity(db_session, bottle.id) == 10

    def test_update_excludes_own_quantity(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 2)
        mine = claim(db_session, mat, "user-a", 1)

        updated = allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=2)

        assert updated.quantity == 2
        assert allocation.get_remaining_capacity(db_session, mat.id) == 0


class TestClaimMaterial:
    """Test claim creation."""

    def test_claim_fields(self, db_session: Session, make_material):
        mat = make_material("Extra Blocks", None, registry_type="lending")

        created = claim(db_session, mat, "user-a", 3, claim_type="lending", notes="  two cork, one foam ")

        assert created.id is not None
        assert created.material_id == mat.id
        assert created.user_id == "user-a"
        assert created.claim_type == "lending"
        assert created.quantity == 3
        assert created.notes == "two cork, one foam"
        assert created.status == ClaimStatus.CLAIMED.value
        assert created.created_at is not None

    def test_claim_bumps_material_version(self, db_session: Session, make_material):
        mat = make_material()
        claim(db_session, mat, "user-a")

        db_session.refresh(mat)
        assert mat.version == 1

    def test_second_claim_by_same_user_rejected(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 5)
        first = claim(db_session, mat, "user-a", 1)

        with pytest.raises(AlreadyClaimed) as exc_info:
            claim(db_session, mat, "user-a", 1)

        assert exc_info.value.claim_id == first.id
        assert len(active_claims(db_session, mat.id)) == 1

    def test_can_claim_again_after_unclaiming(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 5)
        first = claim(db_session, mat, "user-a", 1)
        allocation.unclaim_material(db_session, claim_id=first.id, user_id="user-a")

        second = claim(db_session, mat, "user-a", 2)

        assert second.id != first.id
        assert [c.id for c in active_claims(db_session, mat.id)] == [second.id]

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_invalid_quantity(self, db_session: Session, make_material, quantity):
        mat = make_material()
        with pytest.raises(ValidationError):
            claim(db_session, mat, "user-a", quantity)

    def test_invalid_claim_type(self, db_session: Session, make_material):
        mat = make_material()
        with pytest.raises(ValidationError):
            claim(db_session, mat, "user-a", 1, claim_type="borrow")

    def test_missing_material(self, db_session: Session):
        with pytest.raises(NotFound):
            allocation.claim_material(db_session, material_id=99999, user_id="user-a", quantity=1)

    def test_archived_material(self, db_session: Session, organizer_id, make_material):
        mat = make_material()
        registry.remove_material(db_session, mat.id, organizer_id)

        with pytest.raises(NotFound):
            claim(db_session, mat, "user-a")

    def test_capacity_error_leaves_nothing_behind(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 1)
        with pytest.raises(CapacityExceeded):
            claim(db_session, mat, "user-a", 2)

        assert db_session.scalars(select(Claim)).all() == []
        db_session.refresh(mat)
        assert mat.version == 0

    def test_visibility_policy_does_not_block_claims(self, db_session: Session, event, organizer_id, make_material):
        registry.set_visibility(db_session, event.id, "organizer_only", organizer_id)
        mat = make_material()

        assert claim(db_session, mat, "user-a").id is not None


class TestUpdateClaim:
    """Test editing an existing claim."""

    def test_update_quantity_and_notes(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 5)
        mine = claim(db_session, mat, "user-a", 1, notes="blue mat")

        updated = allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=3, notes="two mats")

        assert updated.id == mine.id
        assert updated.quantity == 3
        assert updated.notes == "two mats"

    def test_notes_none_keeps_and_empty_clears(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 5)
        mine = claim(db_session, mat, "user-a", 1, notes="blue mat")

        kept = allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=2)
        assert kept.notes == "blue mat"

        cleared = allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=2, notes="")
        assert cleared.notes is None

    def test_update_respects_other_claims(self, db_session: Session, make_material):
        mat = make_material("Yoga Mat", 3)
        mine = claim(db_session, mat, "user-a", 1)
        claim(db_session, mat, "user-b", 1)

        with pytest.raises(CapacityExceeded) as exc_info:
            allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=3)

        assert exc_info.value.remaining == 2
        db_session.refresh(mine)
        assert mine.quantity == 1

    def test_update_someone_elses_claim(self, db_session: Session, organizer_id, make_material):
        mat = make_material()
        theirs = claim(db_session, mat, "user-a")

        with pytest.raises(Unauthorized):
            allocation.update_claim(db_session, claim_id=theirs.id, user_id="user-b", quantity=1)
        with pytest.raises(Unauthorized):
            allocation.update_claim(db_session, claim_id=theirs.id, user_id=organizer_id, quantity=1)

    def test_update_cancelled_claim(self, db_session: Session, make_material):
        mat = make_material()
        mine = claim(db_session, mat, "user-a")
        allocation.unclaim_material(db_session, claim_id=mine.id, user_id="user-a")

        with pytest.raises(ValidationError):
            allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=1)

    def test_update_missing_claim(self, db_session: Session):
        with pytest.raises(NotFound):
            allocation.update_claim(db_session, claim_id=99999, user_id="user-a", quantity=1)

    def test_update_invalid_quantity(self, db_session: Session, make_material):
        mat = make_material()
        mine = claim(db_session, mat, "user-a")
        with pytest.raises(ValidationError):
            allocation.update_claim(db_session, claim_id=mine.id, user_id="user-a", quantity=0)


class TestUnclaim:
    """Test cancelling claims."""

    def test_unclaim_is_soft_and_idempotent(self, db_session: Session, make_material):
        mat = make_material()
        mine = claim(db_session, mat, "user-a")

        allocation.unclaim_material(db_session, claim_id=mine.id, user_id="user-a")
        allocation.unclaim_material(db_session, claim_id=mine.id, user_id="user-a")

        db_session.refresh(mine)
        assert mine.status == ClaimStatus.CANCELLED.value
        assert db_session.get(Claim, mine.id) is not None

    def test_organizer_can_force_unclaim(self, db_session: Session, organizer_id, make_material):
        mat = make_material()
        theirs = claim(db_session, mat, "user-a")

        allocation.unclaim_material(db_session, claim_id=theirs.id, user_id=organizer_id)

        db_session.refresh(theirs)
        assert theirs.status == ClaimStatus.CANCELLED.value

    def test_other_participant_cannot_unclaim(self, db_session: Session, make_material):
        mat = make_material()
        theirs = claim(db_session, mat, "user-a")

        with pytest.raises(Unauthorized):
            allocation.unclaim_material(db_session, claim_id=theirs.id, user_id="user-b")

    def test_unclaim_missing(self, db_session: Session):
        with pytest.raises(NotFound):
            allocation.unclaim_material(db_session, claim_id=99999, user_id="user-a")


class TestRemainingCapacity:
    """Test capacity reads."""

    def test_remaining_never_negative(self, db_session: Session, organizer_id, make_material, caplog):
        mat = make_material("Yoga Mat", 3)
        claim(db_session, mat, "user-a", 3)
        # organizer shrinks the maximum below what is already claimed
        registry.update_material(db_session, mat.id, {"max_quantity": 1}, organizer_id)

        with caplog.at_level(logging.WARNING, logger="event_registry.services.allocation"):
            assert allocation.get_remaining_capacity(db_session, mat.id) == 0

        assert "over-allocated" in caplog.text

    def test_over_allocated_material_rejects_new_claims(self, db_session: Session, organizer_id, make_material):
        mat = make_material("Yoga Mat", 3)
        claim(db_session, mat, "user-a", 3)
        registry.update_material(db_session, mat.id, {"max_quantity": 1}, organizer_id)

        with pytest.raises(CapacityExceeded) as exc_info:
            claim(db_session, mat, "user-b", 1)
        assert exc_info.value.remaining == 0

    def test_missing_material(self, db_session: Session):
        with pytest.raises(NotFound):
            allocation.get_remaining_capacity(db_session, 99999)

    def test_audit_reports_over_allocation(self, db_session: Session, organizer_id, make_material):
        mat = make_material("Yoga Mat", 3)
        claim(db_session, mat, "user-a", 3)
        registry.update_material(db_session, mat.id, {"max_quantity": 2}, organizer_id)

        report = allocation.audit_material_capacity(db_session, mat.id)

        assert report == {"material_id": mat.id, "max_quantity": 2, "claimed_quantity": 3, "over_allocated_by": 1}

    def test_audit_missing_material(self, db_session: Session):
        assert allocation.audit_material_capacity(db_session, 99999) == {}


class TestUserClaims:
    def test_user_claims_for_event(self, db_session: Session, event, organizer_id, make_material):
        mats = make_material("Mats", 5)
        blocks = make_material("Blocks", 5)
        straps = make_material("Straps", 5)
        c1 = claim(db_session, mats, "user-a")
        c2 = claim(db_session, blocks, "user-a", 2)
        cancelled = claim(db_session, straps, "user-a")
        allocation.unclaim_material(db_session, claim_id=cancelled.id, user_id="user-a")
        claim(db_session, mats, "user-b")

        mine = allocation.get_user_claims(db_session, event.id, "user-a")

        assert [c.id for c in mine] == [c1.id, c2.id]


class TestConflictHandling:
    """Test retry and failure paths around the atomic claim."""

    def test_stale_version_is_detected(self, db_session: Session, session_factory, make_material):
        mat = make_material()
        db_session.refresh(mat)

        other = session_factory()
        try:
            other.get(Material, mat.id).version += 1
            other.commit()
        finally:
            other.close()

        with pytest.raises(locking.StaleMaterialError):
            allocation.bump_version(db_session, mat)
        db_session.rollback()

    def test_retries_exhausted_raise_busy(self, db_session: Session, make_material, monkeypatch):
        mat = make_material()
        calls = []

        def always_stale(db, material):
            calls.append(material.id)
            raise locking.StaleMaterialError("moved")

        monkeypatch.setattr(allocation, "bump_version", always_stale)

        with pytest.raises(Busy):
            claim(db_session, mat, "user-a")

        assert len(calls) == 3
        assert db_session.scalars(select(Claim)).all() == []

    def test_retry_succeeds_after_one_conflict(self, db_session: Session, make_material, monkeypatch):
        mat = make_material()
        real_bump = allocation.bump_version
        calls = []

        def stale_once(db, material):
            calls.append(material.id)
            if len(calls) == 1:
                raise locking.StaleMaterialError("moved")
            real_bump(db, material)

        monkeypatch.setattr(allocation, "bump_version", stale_once)

        created = claim(db_session, mat, "user-a")

        assert created.id is not None
        assert len(calls) == 2

    def test_store_timeout_raises_busy_without_partial_claim(self, db_session: Session, make_material, monkeypatch):
        mat = make_material()

        def timeout(*args, **kwargs):
            raise OperationalError("INSERT INTO claims", {}, Exception("database is locked"))

        monkeypatch.setattr(allocation, "_check_capacity", timeout)

        with pytest.raises(Busy):
            claim(db_session, mat, "user-a")

        assert db_session.scalars(select(Claim)).all() == []

    def test_lock_contention_raises_busy(self, db_session: Session, make_material, fake_redis, monkeypatch):
        mat = make_material()
        monkeypatch.setattr(locking.settings, "CLAIM_LOCK_BLOCKING_TIMEOUT", 0.2)
        held = fake_redis.lock(f"material_lock:{mat.id}", timeout=10)
        assert held.acquire(blocking=False)
        try:
            with pytest.raises(Busy):
                claim(db_session, mat, "user-a")
        finally:
            held.release()

        assert claim(db_session, mat, "user-a").id is not None

    def test_version_check_alone_keeps_capacity(self, db_session: Session, make_material, monkeypatch):
        """Without the Redis lock the engine still refuses to overbook."""
        monkeypatch.setattr(locking, "material_lock", lambda material_id: nullcontext())
        mat = make_material("Yoga Mat", 1)

        claim(db_session, mat, "user-a")
        with pytest.raises(CapacityExceeded):
            claim(db_session, mat, "user-b")
