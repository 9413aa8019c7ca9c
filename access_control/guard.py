"""
Authorization guard and the required-permissions marker.

Endpoints (or any callable) declare what they need with
`@check_permissions(...)`; the guard reads those rules, resolves the
principal from the call context, builds its Ability and requires every
rule to hold.

Example:
    @check_permissions(RequiredRule(action=Action.DELETE, subject="User"))
    def delete_user(...):
        ...

    guard.authorize(required_rules_for(delete_user), request)
"""

from typing import Any, Callable, Iterable, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict

from access_control.ability import Action
from access_control.ability_builder import AbilityBuilder
from access_control.errors import ForbiddenError, IdentityMissingError, PermissionCheckError
from permissions.schemas import Principal

REQUIRED_PERMISSIONS_ATTR = "__required_permissions__"

PrincipalResolver = Callable[[Any], Optional[Principal]]


class RequiredRule(BaseModel):
    """An (action, subject) pair an operation requires"""
    model_config = ConfigDict(frozen=True)

    action: Action
    subject: str


RuleLike = Union[RequiredRule, dict]


def _as_required_rule(rule: RuleLike) -> RequiredRule:
    if isinstance(rule, RequiredRule):
        return rule
    return RequiredRule(**rule)


def check_permissions(*rules: RuleLike):
    """
    Decorator: attach required rules to an operation.

    The function itself is returned unchanged apart from the marker, so it
    can still be registered with a router.
    """
    required = tuple(_as_required_rule(r) for r in rules)

    def _mark(func):
        setattr(func, REQUIRED_PERMISSIONS_ATTR, required)
        return func

    return _mark


def required_rules_for(func: Any) -> List[RequiredRule]:
    """Read the rules attached by check_permissions (empty if none)."""
    if func is None:
        return []
    return list(getattr(func, REQUIRED_PERMISSIONS_ATTR, ()))


class AuthorizationGuard:
    """Single-shot allow/deny decision per call. Stateless apart from the cache."""

    def __init__(self, ability_builder: AbilityBuilder, principal_resolver: PrincipalResolver):
        self.ability_builder = ability_builder
        self.principal_resolver = principal_resolver

    def authorize(self, required_rules: Optional[Iterable[RuleLike]], context: Any) -> Optional[Principal]:
        """
        Allow the operation or raise.

        Returns the resolved principal, or None when no rules are required.

        Raises:
            IdentityMissingError: no principal in context
            ForbiddenError: a required rule does not hold
            PermissionCheckError: a required rule is malformed, or the ability
                could not be built or evaluated
        """
        required = list(required_rules or [])
        if not required:
            return None

        principal = self.principal_resolver(context)
        if principal is None:
            logger.warning("[GUARD] No authenticated principal in request context")
            raise IdentityMissingError()

        try:
            rules = [_as_required_rule(r) for r in required]
            ability = self.ability_builder.build(principal)
            failing = next(
                (rule for rule in rules if not ability.can(rule.action, rule.subject)),
                None
            )
        except Exception as e:
            logger.exception(
                f"[GUARD] Permission check failed for user {principal.id}: {type(e).__name__}: {e}"
            )
            raise PermissionCheckError() from e

        if failing is not None:
            matched = ability.relevant_rule_for(failing.action, failing.subject)
            logger.bind(audit_action="ACCESS_DENIED").warning(
                f"[GUARD] User {principal.id} denied {failing.action.value}:{failing.subject} "
                f"(reason: {matched.reason if matched else 'no matching rule'})"
            )
            raise ForbiddenError()

        logger.bind(audit_action="PERMISSION_CHECK").debug(
            f"[GUARD] User {principal.id} allowed "
            f"{', '.join(f'{r.action.value}:{r.subject}' for r in rules)}"
        )
        return principal

    def authorize_operation(self, operation: Any, context: Any) -> Optional[Principal]:
        """Authorize using the rules attached to `operation` by check_permissions."""
        return self.authorize(required_rules_for(operation), context)
