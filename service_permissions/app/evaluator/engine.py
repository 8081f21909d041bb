"""
Permission evaluation engine.
"""

import time
from typing import Dict, Iterable, List, Optional, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .chain import ChainBuilder
from .conditions import ConditionRegistry, create_default_registry
from .models import (
    Grant, EvaluationContext, ConditionResult, EvaluationResult,
    REASON_ALLOWED, REASON_NOT_FOUND, REASON_CONDITIONS_FAILED, UNKNOWN_CONDITION_FAILURE
)


class ConditionEvaluator:
    """Decides whether an actor holds a permission given user and group grants.

    The evaluator holds no per-call state: the registry is read-only once
    evaluation starts and every chain is built fresh, so one instance can be
    shared across threads.
    """

    def __init__(
        self,
        registry: Optional[ConditionRegistry] = None,
        chain_builder: Optional[ChainBuilder] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.logger = get_logger("permissions.evaluator")
        self.registry = registry if registry is not None else create_default_registry().freeze()
        self.chain_builder = chain_builder or ChainBuilder()
        self.metrics = metrics

    def evaluate_conditions(self, grant: Grant, context: EvaluationContext) -> Tuple[ConditionResult, Optional[str]]:
        """Evaluate every condition on a grant, stopping at the first failure.

        Returns the result and the condition type that failed, if any.
        Condition types without a registered evaluator are skipped.
        """
        if not grant.conditions:
            return ConditionResult.ok(), None

        for condition_type, payload in grant.conditions.items():
            evaluator = self.registry.get(condition_type)
            if evaluator is None:
                self.logger.debug(
                    "Unknown condition type ignored",
                    permission=grant.permission_id,
                    condition_type=condition_type
                )
                continue

            try:
                result = evaluator(payload, context)
            except Exception as e:
                self.logger.error(
                    "Condition evaluator error",
                    permission=grant.permission_id,
                    condition_type=condition_type,
                    error=str(e)
                )
                if self.metrics:
                    self.metrics.record_error("condition_evaluator")
                result = ConditionResult.fail(f"Condition evaluator error in {condition_type}: {e}")

            if not isinstance(result, ConditionResult):
                self.logger.error(
                    "Condition evaluator returned invalid result",
                    permission=grant.permission_id,
                    condition_type=condition_type,
                    result_type=type(result).__name__
                )
                if self.metrics:
                    self.metrics.record_error("condition_evaluator")
                result = ConditionResult.fail(f"Condition evaluator error in {condition_type}: invalid result")

            if not result.passed:
                return result, condition_type

        return ConditionResult.ok(), None

    def _filter_chain(
        self,
        chain: List[Grant],
        context: EvaluationContext
    ) -> Tuple[List[Grant], Dict[str, str]]:
        valid_chain: List[Grant] = []
        failures: Dict[str, str] = {}

        for grant in chain:
            result, condition_type = self.evaluate_conditions(grant, context)
            if result.passed:
                valid_chain.append(grant)
                continue

            failures[grant.permission_id] = result.reason or UNKNOWN_CONDITION_FAILURE
            self.logger.debug(
                "Grant removed by failed condition",
                permission=grant.permission_id,
                condition_type=condition_type,
                reason=failures[grant.permission_id]
            )
            if self.metrics:
                self.metrics.record_condition_failure(condition_type or "unknown")

        return valid_chain, failures

    def evaluate(
        self,
        actor_id: str,
        permission_id: str,
        user_grants: Iterable[Grant],
        group_grants: Iterable[Grant] = (),
        context: Optional[EvaluationContext] = None
    ) -> EvaluationResult:
        """Evaluate whether ``actor_id`` holds ``permission_id``."""
        start_time = time.time()
        context = context or EvaluationContext()

        chain = self.chain_builder.build(user_grants, group_grants)
        valid_chain, failures = self._filter_chain(chain, context)

        is_allowed = any(g.permission_id == permission_id for g in valid_chain)
        if is_allowed:
            reason = REASON_ALLOWED
        elif any(g.permission_id == permission_id for g in chain):
            reason = REASON_CONDITIONS_FAILED.format(
                failure=failures.get(permission_id, UNKNOWN_CONDITION_FAILURE)
            )
        else:
            reason = REASON_NOT_FOUND

        duration = time.time() - start_time
        result = EvaluationResult(
            actor=actor_id,
            subject_permission=permission_id,
            is_allowed=is_allowed,
            reason=reason,
            evaluated_chain=[g.permission_id for g in valid_chain],
            failed_conditions=failures,
            evaluation_time_ms=duration * 1000
        )

        self.logger.debug(
            "Permission evaluation result",
            actor=actor_id,
            permission=permission_id,
            allowed=is_allowed,
            reason=reason
        )
        if self.metrics:
            self.metrics.record_permission_check(is_allowed, duration)

        return result

    def effective_permissions(
        self,
        user_grants: Iterable[Grant],
        group_grants: Iterable[Grant] = (),
        context: Optional[EvaluationContext] = None
    ) -> List[Grant]:
        """Grants of the effective chain that pass their conditions."""
        chain = self.chain_builder.build(user_grants, group_grants)
        valid_chain, _ = self._filter_chain(chain, context or EvaluationContext())
        return valid_chain

    def has_permission(
        self,
        actor_id: str,
        permission_id: str,
        user_grants: Iterable[Grant],
        group_grants: Iterable[Grant] = (),
        context: Optional[EvaluationContext] = None
    ) -> bool:
        return self.evaluate(actor_id, permission_id, user_grants, group_grants, context).is_allowed


def evaluate_permission(
    actor_id: str,
    permission_id: str,
    user_grants: Iterable[Grant],
    group_grants: Iterable[Grant] = (),
    context: Optional[EvaluationContext] = None,
    registry: Optional[ConditionRegistry] = None
) -> EvaluationResult:
    """Evaluate one permission with a fresh evaluator (default registry unless given)."""
    return ConditionEvaluator(registry=registry).evaluate(
        actor_id, permission_id, user_grants, group_grants, context
    )
