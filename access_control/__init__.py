from access_control.ability import (ALL, Ability, AbilityRule, Action,
                                    action_value,)
from access_control.config import AccessControlConfig
from access_control.errors import (AccessControlError, DataAccessError,
                                   ForbiddenError, IdentityMissingError,
                                   PermissionCheckError,
                                   PermissionNotFoundError,)
from access_control.permission_cache import CacheEntry, PermissionCache

__all__ = ['ALL', 'Ability', 'AbilityRule', 'AccessControlConfig',
           'AccessControlError', 'Action', 'CacheEntry', 'DataAccessError',
           'ForbiddenError', 'IdentityMissingError', 'PermissionCache',
           'PermissionCheckError', 'PermissionNotFoundError', 'action_value']
