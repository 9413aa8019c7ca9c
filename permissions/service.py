"""
Business logic for permission override rules.

The service layer sits between callers and the repository. It handles:
- Session scope for each operation
- Wrapping storage failures in DataAccessError
- Invalidating the owning user's cached rules after every mutation
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from access_control.errors import DataAccessError, PermissionNotFoundError
from access_control.permission_cache import PermissionCache
from permissions.database import DatabaseManager
from permissions.repository import PermissionRepository
from permissions.schemas import CreatePermissionRequest, PermissionRule, UpdatePermissionRequest

logger = logging.getLogger(__name__)


def _is_unique_violation(error: IntegrityError) -> bool:
    """True when the integrity error comes from a unique constraint (not NOT NULL or FK)"""
    message = str(error.orig).lower()
    return "unique" in message or "duplicate" in message


class DuplicatePermissionError(DataAccessError):
    status_code = 409
    default_message = "An identical permission already exists."


class PermissionService:
    """
    Reads and writes per-user override rules.

    find_user_permissions is what the ability builder consumes.
    """

    def __init__(self, db_manager: DatabaseManager, cache: Optional[PermissionCache] = None):
        self.db_manager = db_manager
        self.cache = cache

    def find_user_permissions(self, user_id: str) -> List[PermissionRule]:
        """
        List a user's override rules in storage order.

        Raises:
            DataAccessError: on storage failure
        """
        logger.debug(f"Fetching permissions for user {user_id}")
        try:
            with self.db_manager.session() as db:
                rows = PermissionRepository.list_by_user(db, user_id)
                rules = [PermissionRule.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching permissions for user {user_id}: {e}")
            raise DataAccessError() from e

        logger.info(f"Found {len(rules)} permissions for user {user_id}")
        return rules

    def get_permission(self, permission_id: str) -> PermissionRule:
        try:
            with self.db_manager.session() as db:
                row = PermissionRepository.get_by_id(db, permission_id)
                if row is None:
                    raise PermissionNotFoundError()
                return PermissionRule.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching permission {permission_id}: {e}")
            raise DataAccessError() from e

    def create_permission(self, request: CreatePermissionRequest) -> PermissionRule:
        """Create an override rule and drop the owner's cached rules."""
        try:
            with self.db_manager.session() as db:
                row = PermissionRepository.create(
                    db,
                    user_id=request.user_id,
                    action=request.action.value,
                    subject=request.subject,
                    condition=request.condition,
                    inverted=request.inverted,
                    reason=request.reason
                )
                rule = PermissionRule.model_validate(row)
        except IntegrityError as e:
            if not _is_unique_violation(e):
                logger.error(f"Integrity error creating permission for user {request.user_id}: {e}")
                raise DataAccessError() from e
            logger.warning(f"Duplicate permission for user {request.user_id}: {e}")
            raise DuplicatePermissionError() from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating permission for user {request.user_id}: {e}")
            raise DataAccessError() from e

        self._invalidate(rule.user_id)
        return rule

    def update_permission(self, permission_id: str, request: UpdatePermissionRequest) -> PermissionRule:
        updates = request.model_dump(exclude_unset=True)
        if "action" in updates and updates["action"] is not None:
            updates["action"] = updates["action"].value

        try:
            with self.db_manager.session() as db:
                row = PermissionRepository.update(db, permission_id, **updates)
                if row is None:
                    raise PermissionNotFoundError()
                rule = PermissionRule.model_validate(row)
        except IntegrityError as e:
            if not _is_unique_violation(e):
                logger.error(f"Integrity error updating permission {permission_id}: {e}")
                raise DataAccessError() from e
            logger.warning(f"Update of permission {permission_id} would duplicate a rule: {e}")
            raise DuplicatePermissionError() from e
        except SQLAlchemyError as e:
            logger.error(f"Error updating permission {permission_id}: {e}")
            raise DataAccessError() from e

        self._invalidate(rule.user_id)
        return rule

    def delete_permission(self, permission_id: str) -> PermissionRule:
        try:
            with self.db_manager.session() as db:
                row = PermissionRepository.delete(db, permission_id)
                if row is None:
                    raise PermissionNotFoundError()
                rule = PermissionRule.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting permission {permission_id}: {e}")
            raise DataAccessError() from e

        self._invalidate(rule.user_id)
        return rule

    def _invalidate(self, user_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(user_id)
