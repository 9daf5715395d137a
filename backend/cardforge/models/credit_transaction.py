"""
CreditTransaction model: append-only audit trail of balance changes.
One row per ledger mutation (consumption, refund, grant).
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from datetime import datetime

from cardforge.models.base import Base, generate_uuid


class CreditTransaction(Base):
    """A single signed change to a user's credit balance."""

    __tablename__ = "credit_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    delta = Column(Integer, nullable=False)  # Negative for consumption, positive for grants
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(100), nullable=False)  # e.g., "image_generation", "membership_grant:2024-01"

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_credit_transaction_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<CreditTransaction(user_id={self.user_id}, delta={self.delta}, reason={self.reason})>"
