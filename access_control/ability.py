"""
Ability: the immutable decision object produced for a principal.

An Ability is an ordered list of grant/revoke rules. A query walks the
rules in application order and the last rule that matches decides the
outcome. No match means deny.

Matching:
  - action: rule action equals the queried action, or the rule action is MANAGE
  - subject: rule subject equals the queried subject, or the rule subject is "all"
  - condition: a rule without a condition matches any instance (or a bare
    subject-type check). A rule with a condition only matches when an
    instance is supplied and every condition field equals the instance field.

Example:
    >>> ability = Ability([AbilityRule(action=Action.READ, subject=ALL)])
    >>> ability.can(Action.READ, "Post")
    True
    >>> ability.can(Action.UPDATE, "Post")
    False
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

ALL = "all"

_MISSING = object()


class Action(str, Enum):
    """Actions that can be granted or revoked. MANAGE stands for any action."""
    MANAGE = "manage"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


ActionLike = Union[Action, str]


def action_value(action: ActionLike) -> str:
    """Normalize an Action or raw string to its stored value."""
    if isinstance(action, Action):
        return action.value
    return str(action).lower()


def _instance_field(instance: Any, key: str) -> Any:
    if isinstance(instance, Mapping):
        return instance.get(key, _MISSING)
    return getattr(instance, key, _MISSING)


@dataclass(frozen=True)
class AbilityRule:
    """
    A single grant (inverted=False) or revoke (inverted=True) entry.

    Attributes:
        action: Action value ("manage", "read", ...)
        subject: Resource type tag or "all"
        condition: Field/value pairs an instance must match, or None
        inverted: True for a revoke
        reason: Free text for diagnostics, no effect on matching
    """
    action: str
    subject: str
    condition: Optional[Mapping[str, Any]] = None
    inverted: bool = False
    reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "action", action_value(self.action))
        if self.condition is not None:
            object.__setattr__(self, "condition", MappingProxyType(dict(self.condition)))

    def matches_action(self, action: str) -> bool:
        return self.action == Action.MANAGE.value or self.action == action

    def matches_subject(self, subject: str) -> bool:
        return self.subject == ALL or self.subject == subject

    def matches_instance(self, instance: Any = None) -> bool:
        if self.condition is None:
            return True
        if instance is None:
            return False
        for key, expected in self.condition.items():
            if _instance_field(instance, key) != expected:
                return False
        return True

    def matches(self, action: str, subject: str, instance: Any = None) -> bool:
        return (
            self.matches_action(action)
            and self.matches_subject(subject)
            and self.matches_instance(instance)
        )


class Ability:
    """Queryable, immutable set of rules. Safe to share between threads."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[AbilityRule] = ()):
        object.__setattr__(self, "_rules", tuple(rules))

    def __setattr__(self, name, value):
        raise AttributeError("Ability is immutable")

    @property
    def rules(self) -> Tuple[AbilityRule, ...]:
        return self._rules

    def relevant_rule_for(
        self,
        action: ActionLike,
        subject: str,
        instance: Any = None
    ) -> Optional[AbilityRule]:
        """Return the last rule matching the query, or None."""
        wanted = action_value(action)
        for rule in reversed(self._rules):
            if rule.matches(wanted, subject, instance):
                return rule
        return None

    def can(self, action: ActionLike, subject: str, instance: Any = None) -> bool:
        rule = self.relevant_rule_for(action, subject, instance)
        if rule is None:
            return False
        return not rule.inverted

    def cannot(self, action: ActionLike, subject: str, instance: Any = None) -> bool:
        return not self.can(action, subject, instance)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"Ability(rules={len(self._rules)})"
