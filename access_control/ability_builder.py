"""
Builds the Ability for a principal.

Rule composition order:
  1. Baseline grant from the principal's role
       ADMIN  -> manage all
       EDITOR -> read all
       other  -> read all
  2. The principal's override rules, in the order storage returned them.
     inverted=True records a revoke, otherwise a grant.

Override rules are looked up in the PermissionCache first. On a miss they
are fetched from the permission source, converted to AbilityRules once
(conditions parsed) and cached in that form. A failing source aborts the
build.

A condition that is not a valid JSON object is logged and dropped, and the
rule is applied without it, which widens it to every instance of its
subject. This fail-open behavior is kept for compatibility with existing
stored rules.
"""

import json
from typing import Any, Dict, List, Optional, Protocol, Sequence

from loguru import logger

from access_control.ability import ALL, Ability, AbilityRule, Action
from access_control.permission_cache import PermissionCache
from permissions.schemas import PermissionRule, Principal, Role

DEFAULT_GRANT_REASON = "Permission granted"
DEFAULT_REVOKE_REASON = "Permission denied"

ROLE_BASELINE = {
    Role.ADMIN.value: (Action.MANAGE, ALL),
    Role.EDITOR.value: (Action.READ, ALL),
    Role.USER.value: (Action.READ, ALL),
}


class PermissionSource(Protocol):
    """Anything that can list a user's override rules in storage order."""

    def find_user_permissions(self, user_id: str) -> Sequence[PermissionRule]: ...


def baseline_rules(role: str) -> List[AbilityRule]:
    """Role-derived default grants"""
    action, subject = ROLE_BASELINE.get(role, ROLE_BASELINE[Role.USER.value])
    return [AbilityRule(action=action, subject=subject, reason=f"Role {role} baseline")]


def parse_condition(permission: PermissionRule) -> Optional[Dict[str, Any]]:
    """
    Parse a stored condition. Returns None when absent or malformed.

    Malformed means not JSON, or JSON that is not an object.
    """
    raw = permission.condition
    if raw is None or raw == "":
        return None

    try:
        condition = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(
            f"[ABILITY] Could not parse condition of permission {permission.id}: "
            f"{e} (condition={raw!r}); applying rule without condition"
        )
        return None

    if not isinstance(condition, dict):
        logger.warning(
            f"[ABILITY] Condition of permission {permission.id} is not a JSON object "
            f"(condition={raw!r}); applying rule without condition"
        )
        return None

    return condition


def rule_from_permission(permission: PermissionRule) -> AbilityRule:
    inverted = bool(permission.inverted)
    default_reason = DEFAULT_REVOKE_REASON if inverted else DEFAULT_GRANT_REASON
    return AbilityRule(
        action=permission.action,
        subject=permission.subject,
        condition=parse_condition(permission),
        inverted=inverted,
        reason=permission.reason or default_reason,
    )


class AbilityBuilder:
    """Combines role baseline grants with cached per-user override rules"""

    def __init__(self, permission_source: PermissionSource, cache: PermissionCache):
        self.permission_source = permission_source
        self.cache = cache

    def build(self, principal: Principal) -> Ability:
        """
        Build the Ability for a principal.

        Raises:
            Whatever the permission source raises on a cache miss.
        """
        logger.debug(f"[ABILITY] Building ability for user {principal.id} (role={principal.role})")

        rules = baseline_rules(principal.role)

        try:
            overrides = self._load_overrides(principal.id)
        except Exception as e:
            logger.error(
                f"[ABILITY] Failed to load permissions for user {principal.id}: "
                f"{type(e).__name__}: {e}"
            )
            raise

        rules.extend(overrides)

        logger.debug(
            f"[ABILITY] Ability built for user {principal.id}: "
            f"role={principal.role}, overrides={len(overrides)}"
        )
        return Ability(rules)

    def _load_overrides(self, user_id: str) -> List[AbilityRule]:
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        version = self.cache.version(user_id)
        overrides = []
        for permission in self.permission_source.find_user_permissions(user_id):
            rule = rule_from_permission(permission)
            overrides.append(rule)
            logger.debug(
                f"[ABILITY] Loaded {'revoke' if rule.inverted else 'grant'} "
                f"{rule.action}:{rule.subject} for user {user_id} ({rule.reason})"
            )

        self.cache.put(user_id, overrides, version=version)
        return overrides
