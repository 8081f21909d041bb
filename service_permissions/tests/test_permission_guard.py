"""
Unit tests for PermissionGuard.
"""

import pytest

from shared.errors import AuthorizationError
from service_permissions.app.evaluator.engine import ConditionEvaluator
from service_permissions.app.evaluator.guard import PermissionGuard
from service_permissions.app.evaluator.models import Grant, EvaluationContext


class TestPermissionGuard:
    """Test cases for PermissionGuard."""

    @pytest.fixture
    def guard(self):
        return PermissionGuard(ConditionEvaluator())

    def test_allowed_returns_result(self, guard):
        """Test an allowed permission returns the evaluation result."""
        result = guard.require("user-1", "chat:read", [Grant.for_user("chat:read")])

        assert result.is_allowed is True

    def test_denied_raises(self, guard):
        """Test a denied permission raises with the audit record."""
        with pytest.raises(AuthorizationError) as exc_info:
            guard.require("user-1", "chat:write", [Grant.for_user("chat:read")])

        error = exc_info.value
        assert error.code == "AUTHORIZATION_ERROR"
        assert error.message == "Permission is not allowed - Permission not found in chain"
        assert error.details["isAllowed"] is False
        assert error.details["evaluatedChain"] == ["chat:read"]

    def test_denied_by_condition_raises(self, guard):
        """Test a grant removed by its condition raises."""
        grant = Grant.for_user("chat:read", {"timeWindow": {"start": "09:00", "end": "17:00"}})

        with pytest.raises(AuthorizationError) as exc_info:
            guard.require("user-1", "chat:read", [grant], [], EvaluationContext(current_time="08:00"))

        assert "outside time window 09:00 - 17:00" in exc_info.value.message

    def test_error_response(self, guard):
        """Test the raised error converts to a response body."""
        with pytest.raises(AuthorizationError) as exc_info:
            guard.require("user-1", "chat:write", [])

        response = exc_info.value.to_response()
        assert response.code == "AUTHORIZATION_ERROR"
        assert response.details["subjectPermission"] == "chat:write"

    def test_default_evaluator(self):
        """Test the guard builds a default evaluator when none is given."""
        guard = PermissionGuard()

        assert guard.require("user-1", "chat:read", [Grant.for_user("chat:read")]).is_allowed
