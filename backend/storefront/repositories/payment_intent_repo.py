from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.models.payment_intent import PaymentIntentRecord


class PaymentIntentRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, record: PaymentIntentRecord) -> PaymentIntentRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, intent_id: str, fresh: bool = False) -> Optional[PaymentIntentRecord]:
        stmt = select(PaymentIntentRecord).where(PaymentIntentRecord.intent_id == intent_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_user(self, user_id: int, intent_id: str) -> Optional[PaymentIntentRecord]:
        rec = self.get(intent_id, fresh=True)
        if rec is None or rec.user_id != user_id:
            return None
        return rec
