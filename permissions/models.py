"""
SQLAlchemy model for per-user permission override rules.

Only the shape the ability builder reads is stored here; users themselves
live with the authentication layer.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Permission(Base):
    """
    A grant (inverted=False) or revoke (inverted=True) for one user.

    Attributes:
        seq: Insertion sequence number (tie-breaker for ordering)
        id: Unique permission identifier
        user_id: Owning user
        action: manage, create, read, update or delete
        subject: Resource type tag (e.g. "User") or "all"
        condition: JSON object text narrowing the rule, or NULL
        inverted: Revoke instead of grant
        reason: Free-text justification (diagnostics only)
        created_at: Insertion time; rules are applied in (created_at, seq) order
    """

    __tablename__ = "permissions"

    # Surrogate key; breaks created_at ties so storage order is total
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    subject = Column(String(100), nullable=False)
    condition = Column(Text, nullable=True)
    inverted = Column(Boolean, nullable=False, default=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "action", "subject", "condition", "inverted",
            name="uq_permission_rule",
        ),
        Index("ix_permission_action_subject", "action", "subject"),
        Index("ix_permission_user_action", "user_id", "action"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "subject": self.subject,
            "condition": self.condition,
            "inverted": self.inverted,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        verb = "cannot" if self.inverted else "can"
        return f"<Permission {self.id} user={self.user_id} {verb} {self.action}:{self.subject}>"
