"""
Serialization of capacity-affecting writes on a material.

Anything that changes what can be claimed on a material (a claim, a claim
update, a new maximum, archiving) runs through ``run_locked``: the Redis lock
``material_lock:{id}`` keeps writers in different processes apart, and inside
the transaction the material's ``version`` is compare-and-set, so a writer that
slipped past the lock (expired TTL, Redis failover) loses and retries instead
of overwriting someone else's capacity decision.
"""

import logging
from contextlib import ExitStack, contextmanager

import redis
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from event_registry.core import redis_config
from event_registry.core.config import settings
from event_registry.core.errors import Busy
from event_registry.models.materials import Material

logger = logging.getLogger(__name__)


class StaleMaterialError(Exception):
    """Another writer changed the material between our read and our write."""


@contextmanager
def material_lock(material_id: int):
    """Hold the per-material claim lock, or raise Busy."""
    redis_client = redis_config.get_redis_client()
    lock = redis_client.lock(
        f"material_lock:{material_id}",
        timeout=settings.CLAIM_LOCK_TIMEOUT,
        blocking_timeout=settings.CLAIM_LOCK_BLOCKING_TIMEOUT,
    )
    try:
        acquired = lock.acquire(blocking=True)
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not lock material %s: %s", material_id, exc)
        raise Busy("Could not reserve the item right now, please try again.") from exc
    if not acquired:
        logger.warning("Timed out waiting for lock on material %s", material_id)
        raise Busy("Too many people are claiming this item right now, please try again.")

    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            # TTL ran out mid-transaction; the version check still protected capacity.
            logger.warning("Lock on material %s expired before release", material_id)


def bump_version(db: Session, material: Material) -> None:
    """Compare-and-set the material's version; raise StaleMaterialError if it moved."""
    seen = material.version
    result = db.execute(
        update(Material)
        .where(Material.id == material.id, Material.version == seen)
        .values(version=Material.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleMaterialError(f"material {material.id} moved past version {seen}")
    set_committed_value(material, "version", seen + 1)


def run_locked(db: Session, material_ids, operation, *args):
    """
    Run ``operation(db, *args)`` in its own transaction under the locks of ``material_ids``.

    Locks are taken in id order. Version conflicts and store errors are retried
    up to CLAIM_MAX_ATTEMPTS times, then surfaced as Busy. Nothing is left
    half-written on failure.
    """
    ids = sorted(set(material_ids))
    attempts = max(1, settings.CLAIM_MAX_ATTEMPTS)
    with ExitStack() as locks:
        for material_id in ids:
            locks.enter_context(material_lock(material_id))
        for attempt in range(1, attempts + 1):
            try:
                result = operation(db, *args)
                db.commit()
                return result
            except StaleMaterialError:
                db.rollback()
                logger.warning("Concurrent update on materials %s (attempt %s/%s)", ids, attempt, attempts)
            except OperationalError as exc:
                db.rollback()
                logger.warning("Store error on materials %s (attempt %s/%s): %s", ids, attempt, attempts, exc)
            except Exception:
                db.rollback()
                raise
    raise Busy("This item is in high demand, please try again.")
