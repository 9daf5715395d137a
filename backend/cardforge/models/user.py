"""
User model with credit-based AI image generation.
Authenticated via Firebase (firebase_uid); the id itself is opaque.

`credits` is only ever written by CreditService. Membership fields cache the
last resolved subscription tier and remember which period was already granted
and how many credits that period received.
"""
from sqlalchemy import BigInteger, Column, String, Integer, Index, DateTime, CheckConstraint
from datetime import datetime
from cardforge.models.base import Base, generate_uuid


class User(Base):
    """User model with credit balance and cached membership status."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    firebase_uid = Column(String(128), nullable=True, unique=True)  # Firebase user ID
    email = Column(String(255), nullable=True, unique=True)  # Email from Firebase token
    credits = Column(Integer, nullable=False, default=0)  # Image generation credits

    # Membership cache: tier value ("none", "former", "active") and expiry in unix ms
    membership_tier = Column(String(16), nullable=True)
    membership_expiry = Column(BigInteger, nullable=True)
    membership_grant_period = Column(String(7), nullable=True)  # e.g., "2024-01"
    membership_granted_credits = Column(Integer, nullable=True)  # credits granted in that period

    stripe_customer_id = Column(String(255), nullable=True)  # Stripe customer ID

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        Index("idx_user_firebase_uid", "firebase_uid"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, credits={self.credits})>"
