"""
Integration tests for the permission evaluation flow.

Grant payloads are resolved from file-style permission tables the way an
upstream authorization service would, then evaluated end to end.
"""

import threading

import pytest
from prometheus_client import CollectorRegistry

from shared.config import get_config
from shared.errors import AuthorizationError
from shared.test_helpers import PermissionDataFactory
from service_permissions.app.evaluator import EvaluationContext, Grant, PermissionGuard
from service_permissions.app.main import create_evaluator


class TestPermissionFlow:
    """Integration tests for permission evaluation."""

    @pytest.fixture
    def tables(self):
        return PermissionDataFactory.create_permission_tables()

    @pytest.fixture
    def evaluator(self):
        return create_evaluator(get_config(json_logs=False), metrics_registry=CollectorRegistry())

    def grants_for(self, tables, user_id):
        user_payloads, group_payloads = PermissionDataFactory.resolve_grants(tables, user_id)
        return (
            [Grant.model_validate(p) for p in user_payloads],
            [Grant.model_validate(p) for p in group_payloads],
        )

    def test_direct_and_group_permissions(self, evaluator, tables):
        """Test a user with direct and group permissions."""
        user_grants, group_grants = self.grants_for(tables, "cx-agent:form-specialist")

        result = evaluator.evaluate("cx-agent:form-specialist", "dashboard:stats", user_grants, group_grants)

        assert result.is_allowed is True
        assert result.evaluated_chain == ["chat:read", "chat:write", "dashboard:stats"]

    @pytest.mark.parametrize("current_time,allowed", [("09:30", True), ("19:45", False)])
    def test_working_hours_permission(self, evaluator, tables, current_time, allowed):
        """Test the user's own time window outranks the unconditioned group grant."""
        user_grants, group_grants = self.grants_for(tables, "analyst-1")

        result = evaluator.evaluate(
            "analyst-1", "chat:read", user_grants, group_grants,
            EvaluationContext.from_dict({"context": {"currentTime": current_time}})
        )

        assert result.is_allowed is allowed

    def test_night_shift_group_window(self, evaluator, tables):
        """Test a group-only conditioned permission."""
        user_grants, group_grants = self.grants_for(tables, "analyst-1")

        night = evaluator.evaluate(
            "analyst-1", "chat:write", user_grants, group_grants, EvaluationContext(current_time="22:30")
        )
        day = evaluator.evaluate(
            "analyst-1", "chat:write", user_grants, group_grants, EvaluationContext(current_time="12:00")
        )

        assert night.is_allowed is True
        assert day.is_allowed is False
        assert day.reason == (
            "Permission is not allowed - Permission removed due to failed conditions: "
            "Permission not valid outside time window 22:00 - 23:59"
        )

    def test_expired_contractor(self, evaluator, tables):
        """Test an expired date range blocks the only grant a user has."""
        user_grants, group_grants = self.grants_for(tables, "contractor-1")

        result = evaluator.evaluate(
            "contractor-1", "admin:access", user_grants, group_grants,
            EvaluationContext(current_date="2024-06-01")
        )

        assert result.is_allowed is False
        assert result.evaluated_chain == []
        assert "Permission not valid outside date range 2020-01-01 - 2020-12-31" in result.reason

    def test_unknown_user(self, evaluator, tables):
        """Test a user absent from every table is denied."""
        user_grants, group_grants = self.grants_for(tables, "nobody")

        result = evaluator.evaluate("nobody", "chat:read", user_grants, group_grants)

        assert result.is_allowed is False
        assert result.reason == "Permission is not allowed - Permission not found in chain"

    def test_guard_flow(self, evaluator, tables):
        """Test the guard raises for a denied check."""
        guard = PermissionGuard(evaluator)
        user_grants, group_grants = self.grants_for(tables, "contractor-1")

        with pytest.raises(AuthorizationError) as exc_info:
            guard.require(
                "contractor-1", "admin:access", user_grants, group_grants,
                EvaluationContext(current_date="2024-06-01")
            )

        assert exc_info.value.details["actor"] == "contractor-1"

    def test_concurrent_evaluations(self, evaluator, tables):
        """Test one evaluator serves many threads with identical results."""
        user_grants, group_grants = self.grants_for(tables, "analyst-1")
        context = EvaluationContext(current_time="10:00", current_date="2024-06-01")
        expected = evaluator.evaluate("analyst-1", "chat:read", user_grants, group_grants, context)
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                result = evaluator.evaluate("analyst-1", "chat:read", user_grants, group_grants, context)
                with lock:
                    results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 400
        assert all(result == expected for result in results)
