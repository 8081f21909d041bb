"""
Permission data models for the evaluator.
"""

import copy
from typing import Dict, Any, Optional, List, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


REASON_ALLOWED = "Allowed - Permission found in chain"
REASON_NOT_FOUND = "Permission is not allowed - Permission not found in chain"
REASON_CONDITIONS_FAILED = "Permission is not allowed - Permission removed due to failed conditions: {failure}"
UNKNOWN_CONDITION_FAILURE = "Unknown condition failure"


def _freeze(value: Any) -> Any:
    """Return a read-only deep copy of a condition payload."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    return copy.deepcopy(value)


class GrantedVia(str, Enum):
    """Provenance of a grant."""
    USER = "user"
    GROUP = "group"


class Grant(BaseModel):
    """One permission assignment, made directly to a user or through a group."""

    model_config = ConfigDict(frozen=True)

    permission_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("permission_id", "permissionId"),
        description="Opaque namespaced permission identifier"
    )
    conditions: Optional[Dict[str, Any]] = Field(
        None,
        description="Condition type name -> payload; None means unconditional. Stored read-only"
    )
    granted_via: GrantedVia = Field(
        GrantedVia.USER,
        validation_alias=AliasChoices("granted_via", "grantedVia", "byVirtueOf"),
        description="Provenance tag, informational only"
    )
    group_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("group_id", "groupId"),
        description="Group the grant was inherited from"
    )

    @field_validator("granted_via", mode="before")
    @classmethod
    def _normalize_provenance(cls, value: Any) -> Any:
        # Permission tables spell provenance as "user", "User" or "USER"
        if isinstance(value, str):
            return value.lower()
        return value

    @field_validator("conditions", mode="after")
    @classmethod
    def _freeze_conditions(cls, value: Optional[Dict[str, Any]]) -> Optional[Mapping[str, Any]]:
        # Detached from the caller's payload and read-only all the way down
        if value is None:
            return None
        return _freeze(value)

    @model_validator(mode="after")
    def _group_id_only_for_group_grants(self) -> "Grant":
        if self.group_id is not None and self.granted_via != GrantedVia.GROUP:
            raise ValueError("group_id is only valid on grants made via a group")
        return self

    @property
    def is_conditioned(self) -> bool:
        """Whether the grant carries a condition map (possibly empty)."""
        return self.conditions is not None

    @classmethod
    def for_user(cls, permission_id: str, conditions: Optional[Dict[str, Any]] = None) -> "Grant":
        return cls(permission_id=permission_id, conditions=conditions, granted_via=GrantedVia.USER)

    @classmethod
    def for_group(
        cls,
        permission_id: str,
        group_id: Optional[str] = None,
        conditions: Optional[Dict[str, Any]] = None
    ) -> "Grant":
        return cls(
            permission_id=permission_id,
            conditions=conditions,
            granted_via=GrantedVia.GROUP,
            group_id=group_id
        )


@dataclass(frozen=True)
class EvaluationContext:
    """Environment that conditions are evaluated against.

    ``current_time`` and ``current_date`` simulate the clock; when absent the
    wall clock is used. ``attributes`` is free-form caller data for custom
    condition evaluators.
    """
    current_time: Optional[str] = None
    current_date: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "EvaluationContext":
        """Build a context from caller data, accepting the ``{"context": {...}}`` envelope."""
        if not data:
            return cls()
        if isinstance(data.get("context"), Mapping):
            data = data["context"]
        known = {"currentTime", "current_time", "currentDate", "current_date"}
        return cls(
            current_time=data.get("currentTime", data.get("current_time")),
            current_date=data.get("currentDate", data.get("current_date")),
            attributes={k: v for k, v in data.items() if k not in known}
        )


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one condition evaluator."""
    passed: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ConditionResult":
        return cls(passed=True)

    @classmethod
    def fail(cls, reason: str) -> "ConditionResult":
        return cls(passed=False, reason=reason)


@dataclass
class EvaluationResult:
    """Result of a permission evaluation."""
    actor: str
    subject_permission: str
    is_allowed: bool
    reason: str
    evaluated_chain: List[str] = field(default_factory=list)
    failed_conditions: Dict[str, str] = field(default_factory=dict)
    evaluation_time_ms: float = field(default=0.0, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Audit record of the decision."""
        return {
            "actor": self.actor,
            "subjectPermission": self.subject_permission,
            "isAllowed": self.is_allowed,
            "reason": self.reason,
            "evaluatedChain": list(self.evaluated_chain),
        }
