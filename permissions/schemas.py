"""
Pydantic schemas for principals and permission override rules.

These schemas handle:
1. The shape the ability builder reads (Principal, PermissionRule)
2. Request validation for the permission management endpoints
3. Response serialization
"""

import json
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from access_control.ability import Action


class Role(str, Enum):
    """User roles known to the baseline grant table"""
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    USER = "USER"


class Principal(BaseModel):
    """
    The authenticated identity making a request.

    Owned by the authentication layer; read-only here. Any role value
    outside the Role enum is treated as a standard user.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque user id")
    role: str = Field(Role.USER.value, description="ADMIN, EDITOR or USER")
    email: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, Role):
            return v.value
        return str(v).upper()


class PermissionRule(BaseModel):
    """
    A per-user override rule as stored.

    `condition` stays as the raw JSON text; the ability builder parses it.
    """
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    user_id: str
    action: str
    subject: str
    condition: Optional[str] = None
    inverted: bool = False
    reason: Optional[str] = None


def _condition_to_text(v: Union[str, Dict[str, Any], None]) -> Optional[str]:
    """Accept a dict or JSON text; store as JSON text. Must be a JSON object."""
    if v is None:
        return None
    if isinstance(v, dict):
        return json.dumps(v, sort_keys=True)
    try:
        parsed = json.loads(v)
    except (TypeError, ValueError):
        raise ValueError("condition must be valid JSON")
    if not isinstance(parsed, dict):
        raise ValueError("condition must be a JSON object")
    return json.dumps(parsed, sort_keys=True)


class CreatePermissionRequest(BaseModel):
    """
    Request to create an override rule for a user.

    Example:
        {
            "user_id": "u1",
            "action": "update",
            "subject": "User",
            "condition": {"id": "u1"},
            "inverted": false,
            "reason": "Can edit own profile"
        }
    """
    user_id: str = Field(..., min_length=1)
    action: Action
    subject: str = Field(..., min_length=1, max_length=100)
    condition: Optional[Union[Dict[str, Any], str]] = Field(
        None,
        description="JSON object narrowing the rule to matching instances"
    )
    inverted: bool = False
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v):
        return _condition_to_text(v)


class UpdatePermissionRequest(BaseModel):
    """
    Partial update; only provided fields change.

    condition and reason may be cleared with an explicit null. action,
    subject and inverted may be omitted but not set to null.
    """
    action: Optional[Action] = None
    subject: Optional[str] = Field(None, min_length=1, max_length=100)
    condition: Optional[Union[Dict[str, Any], str]] = None
    inverted: Optional[bool] = None
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("action", "subject", "inverted", mode="before")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v):
        return _condition_to_text(v)


class InvalidateCacheRequest(BaseModel):
    user_id: Optional[str] = Field(None, description="Omit to clear the whole cache")


class AbilityCheckResponse(BaseModel):
    action: str
    subject: str
    allowed: bool


class CacheStatsResponse(BaseModel):
    size: int
    ttl_ms: int
    sweep_interval_ms: int
