from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models.idempotency import IdempotencyRecord, IdempotencyStatus
from storefront.utils.logging import get_logger

log = get_logger("idempotency")


class IdempotencyRepository:
    def __init__(self, db: Session):
        # db is the caller's session (longer-lived)
        self.db = db

    def _short_session(self) -> Session:
        # separate connection so the marker is committed and visible to other
        # requests immediately, independent of the caller's transaction
        return Session(bind=self.db.get_bind())

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        """Fresh read of the record for `key` (expires stale state first)."""
        self.db.expire_all()
        return (
            self.db.query(IdempotencyRecord)
            .filter(IdempotencyRecord.key == key)
            .first()
        )

    def begin(
        self, key: str, operation: str, stale_after: Optional[float] = None
    ) -> Tuple[Optional[IdempotencyRecord], bool]:
        """
        Atomically claim `key`.

        Returns (record, claimed):
          - claimed == True  -> this call inserted the IN_PROGRESS row, or took
            over a row whose previous owner FAILED, or one left IN_PROGRESS
            and untouched for more than `stale_after` seconds (owner died)
          - claimed == False -> the row is IN_PROGRESS or COMPLETED elsewhere
        """
        claimed = False
        log.debug("begin(): trying insert key=%r", key)
        try:
            with self._short_session() as s:
                s.add(
                    IdempotencyRecord(
                        key=key, operation=operation, status=IdempotencyStatus.IN_PROGRESS
                    )
                )
                s.commit()
                claimed = True
        except IntegrityError:
            log.debug("begin(): insert collision for key=%r", key)

        if not claimed:
            # a failed or abandoned attempt may be retried: flip to IN_PROGRESS only
            # if the row is still FAILED (or still stale)
            now = datetime.now(timezone.utc)
            reclaimable = IdempotencyRecord.status == IdempotencyStatus.FAILED
            if stale_after is not None:
                reclaimable = or_(
                    reclaimable,
                    and_(
                        IdempotencyRecord.status == IdempotencyStatus.IN_PROGRESS,
                        IdempotencyRecord.updated_at < now - timedelta(seconds=stale_after),
                    ),
                )
            with self._short_session() as s:
                res = s.execute(
                    update(IdempotencyRecord)
                    .where(IdempotencyRecord.key == key, reclaimable)
                    .values(
                        status=IdempotencyStatus.IN_PROGRESS,
                        last_error=None,
                        attempts=IdempotencyRecord.attempts + 1,
                        updated_at=now,
                    )
                )
                s.commit()
                claimed = res.rowcount == 1
            if claimed:
                log.info("begin(): reclaimed key=%r", key)

        return self.get(key), claimed

    def mark_completed(self, key: str, response_body: dict) -> None:
        """
        Mark COMPLETED inside the caller's transaction, so the marker commits
        or rolls back together with the work it describes.
        """
        self.db.execute(
            update(IdempotencyRecord)
            .where(IdempotencyRecord.key == key)
            .values(status=IdempotencyStatus.COMPLETED, response_body=response_body)
            .execution_options(synchronize_session=False)
        )
        log.debug("mark_completed(): key=%r response=%s", key, response_body)

    def mark_failed(self, key: str, error_message: str) -> None:
        """Record the failure in its own short transaction (the caller's was rolled back)."""
        with self._short_session() as s:
            rec = s.query(IdempotencyRecord).filter(IdempotencyRecord.key == key).first()
            if not rec:
                rec = IdempotencyRecord(key=key, operation="unknown")
                s.add(rec)
            rec.status = IdempotencyStatus.FAILED
            rec.last_error = error_message[:1024]
            s.commit()
        log.debug("mark_failed(): key=%r error=%s", key, error_message)
