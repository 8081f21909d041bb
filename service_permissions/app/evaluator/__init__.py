"""
Permission evaluator package.

Builds the effective permission chain for a user from direct and group
grants, filters it through time and date conditions, and returns an
allow/deny decision with a traceable reason.

Modules of interest:
- models: Grant, evaluation context and result types.
- chain: Deduplication of user and group grants into one chain.
- conditions: Built-in condition evaluators and the extensible registry.
- engine: The decision function.
- guard: Raising wrapper for callers that prefer exceptions.
"""

from .models import (
    GrantedVia, Grant, EvaluationContext, ConditionResult, EvaluationResult,
    REASON_ALLOWED, REASON_NOT_FOUND, REASON_CONDITIONS_FAILED, UNKNOWN_CONDITION_FAILURE
)
from .chain import ChainBuilder, build_effective_chain, resolve_duplicate_grant
from .conditions import (
    ConditionType, ConditionRegistry, create_default_registry,
    evaluate_time_window, evaluate_date_range
)
from .engine import ConditionEvaluator, evaluate_permission
from .guard import PermissionGuard

__all__ = [
    "GrantedVia",
    "Grant",
    "EvaluationContext",
    "ConditionResult",
    "EvaluationResult",
    "REASON_ALLOWED",
    "REASON_NOT_FOUND",
    "REASON_CONDITIONS_FAILED",
    "UNKNOWN_CONDITION_FAILURE",
    "ChainBuilder",
    "build_effective_chain",
    "resolve_duplicate_grant",
    "ConditionType",
    "ConditionRegistry",
    "create_default_registry",
    "evaluate_time_window",
    "evaluate_date_range",
    "ConditionEvaluator",
    "evaluate_permission",
    "PermissionGuard",
]
