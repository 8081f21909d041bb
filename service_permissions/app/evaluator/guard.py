"""
Raising gate in front of the evaluator.
"""

from typing import Iterable, Optional

from shared.errors import AuthorizationError
from shared.logging import get_logger
from .engine import ConditionEvaluator
from .models import Grant, EvaluationContext, EvaluationResult


class PermissionGuard:
    """
    Deny-by-default gate for callers that want an exception on denial.

    The evaluator reports denial as a value; the guard turns it into an
    AuthorizationError carrying the audit record.
    """

    def __init__(self, evaluator: Optional[ConditionEvaluator] = None):
        self.logger = get_logger("permissions.guard")
        self._evaluator = evaluator or ConditionEvaluator()

    def require(
        self,
        actor_id: str,
        permission_id: str,
        user_grants: Iterable[Grant],
        group_grants: Iterable[Grant] = (),
        context: Optional[EvaluationContext] = None
    ) -> EvaluationResult:
        result = self._evaluator.evaluate(actor_id, permission_id, user_grants, group_grants, context)
        if not result.is_allowed:
            self.logger.info(
                "Permission denied",
                actor=actor_id,
                permission=permission_id,
                reason=result.reason
            )
            raise AuthorizationError(result.reason, details=result.to_dict())
        return result
