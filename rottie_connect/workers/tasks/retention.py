from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from rottie_connect.core.config import settings
from rottie_connect.db.session import build_engine, build_session_factory
from rottie_connect.models.common import utcnow
from rottie_connect.models.verification_code import VerificationCode
from rottie_connect.workers.celery_app import celery_app

logger = logging.getLogger("rottie.retention")


def purge_expired(db: Session, *, now: datetime, retention_hours: int) -> dict[str, int]:
    """Delete records that expired more than ``retention_hours`` ago.

    Unexpired records are never touched, so cooldown and gate decisions are
    unaffected by a purge.
    """
    cutoff = now - timedelta(hours=max(int(retention_hours), 0))
    try:
        total = db.query(VerificationCode).count()
        deleted = (
            db.query(VerificationCode)
            .filter(VerificationCode.expires_at <= cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Purged %s of %s verification codes expired before %s", deleted, total, cutoff.isoformat())
    return {"checked": int(total), "deleted": int(deleted)}


@celery_app.task(name="rottie_connect.workers.tasks.retention.purge_expired_verification_codes")
def purge_expired_verification_codes():
    engine = build_engine(settings.DATABASE_URL)
    db = build_session_factory(engine)()
    try:
        return purge_expired(db, now=utcnow(), retention_hours=settings.VERIFICATION_RETENTION_HOURS)
    finally:
        db.close()
        engine.dispose()
