import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from storefront.db import Base


class IntentStatus(str, enum.Enum):
    CREATED = "created"
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (IntentStatus.SUCCEEDED, IntentStatus.FAILED)


# allowed forward moves; SUCCEEDED/FAILED never change once reached
INTENT_TRANSITIONS = {
    IntentStatus.CREATED: {
        IntentStatus.REQUIRES_ACTION,
        IntentStatus.SUCCEEDED,
        IntentStatus.FAILED,
    },
    IntentStatus.REQUIRES_ACTION: {IntentStatus.SUCCEEDED, IntentStatus.FAILED},
    IntentStatus.SUCCEEDED: set(),
    IntentStatus.FAILED: set(),
}


class PaymentIntentRecord(Base):
    """Local mirror of a processor payment intent plus the cart it was created for."""

    __tablename__ = "payment_intents"
    id = Column(Integer, primary_key=True, autoincrement=True)
    intent_id = Column(String(128), unique=True, nullable=False, index=True)
    order_draft_id = Column(String(64), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # in `currency`, as charged
    amount_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False, default=IntentStatus.CREATED.value)
    client_secret = Column(String(255), nullable=True)
    payment_method = Column(String(64), nullable=True)
    shipping_address = Column(Text, nullable=True)
    decline_reason = Column(String(512), nullable=True)
    cart_snapshot = Column(JSON, nullable=False, default=list)
    provider = Column(String(32), nullable=False, default="mock")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def intent_status(self) -> IntentStatus:
        return IntentStatus(self.status)
