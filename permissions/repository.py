"""
Data access layer for permission override rules.

Repository methods take an open Session and only run SQL; transaction
scope and cache invalidation belong to the service layer.

Repository methods:
- Permission: create, get, list_by_user, update, delete
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from permissions.models import Permission

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("action", "subject", "condition", "inverted", "reason")
NON_NULLABLE_FIELDS = ("action", "subject", "inverted")


class PermissionRepository:
    """
    Repository for Permission database operations.

    Encapsulates all SQL queries related to override rules.
    """

    @staticmethod
    def create(
        db: Session,
        user_id: str,
        action: str,
        subject: str,
        condition: Optional[str] = None,
        inverted: bool = False,
        reason: Optional[str] = None
    ) -> Permission:
        """
        Create a new override rule.

        Args:
            db: Database session
            user_id: Owning user
            action: Action value
            subject: Resource type tag or "all"
            condition: JSON object text, or None
            inverted: True for a revoke
            reason: Optional justification

        Returns:
            Created Permission object
        """
        permission = Permission(
            user_id=user_id,
            action=action,
            subject=subject,
            condition=condition,
            inverted=inverted,
            reason=reason
        )
        db.add(permission)
        db.flush()
        db.refresh(permission)

        logger.info(f"Created permission {permission.id} for user {user_id}")
        return permission

    @staticmethod
    def get_by_id(db: Session, permission_id: str) -> Optional[Permission]:
        return db.query(Permission).filter(Permission.id == permission_id).first()

    @staticmethod
    def list_by_user(db: Session, user_id: str) -> List[Permission]:
        """
        All override rules of a user in insertion order.

        Order matters: later rules override earlier ones.
        """
        return db.query(Permission).filter(
            Permission.user_id == user_id
        ).order_by(Permission.created_at, Permission.seq).all()

    @staticmethod
    def update(db: Session, permission_id: str, **updates: Any) -> Optional[Permission]:
        """
        Update rule fields. None is ignored for columns that cannot be null.

        Returns:
            Updated Permission object, or None if not found
        """
        permission = PermissionRepository.get_by_id(db, permission_id)
        if not permission:
            return None

        for key, value in updates.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if value is None and key in NON_NULLABLE_FIELDS:
                logger.warning(f"Ignoring null {key} in update of permission {permission_id}")
                continue
            setattr(permission, key, value)

        db.flush()
        db.refresh(permission)

        logger.info(f"Updated permission {permission_id}")
        return permission

    @staticmethod
    def delete(db: Session, permission_id: str) -> Optional[Permission]:
        """
        Hard delete a rule.

        Returns:
            The deleted Permission (detached), or None if not found
        """
        permission = PermissionRepository.get_by_id(db, permission_id)
        if not permission:
            return None

        db.delete(permission)
        db.flush()

        logger.info(f"Deleted permission {permission_id}")
        return permission
