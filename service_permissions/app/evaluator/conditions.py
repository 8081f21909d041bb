"""
Condition evaluators and the registry that maps condition types to them.

A condition evaluator takes the condition payload stored on a grant and the
evaluation context, and returns a ConditionResult. Built-in evaluators fail
closed on payloads they cannot parse.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from datetime import date, datetime, time, timezone
from enum import Enum

from pydantic import BaseModel, ValidationError, field_validator

from shared.errors import ConditionRegistryError
from shared.logging import get_logger
from .models import ConditionResult, EvaluationContext


ConditionFunc = Callable[[Any, EvaluationContext], ConditionResult]

# Time-of-day comparisons happen on this date so only hour and minute matter
_FIXED_DATE = date(2000, 1, 1)


class ConditionType(str, Enum):
    """Built-in condition types."""
    TIME_WINDOW = "timeWindow"
    DATE_RANGE = "dateRange"


def _parse_clock(value: str) -> time:
    # Zero-padded HH:MM only; strptime alone would accept "9:0"
    if len(value) != 5 or value[2] != ":" or not (value[:2] + value[3:]).isdigit():
        raise ValueError(f"'{value}' is not an HH:MM time")
    return datetime.strptime(value, "%H:%M").time()


def _parse_instant(value: str) -> Tuple[datetime, bool]:
    """Parse an ISO date or datetime; the flag is True for a bare date."""
    try:
        return datetime.combine(date.fromisoformat(value), time()), True
    except ValueError:
        pass
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value), False


class TimeWindow(BaseModel):
    """Payload of a timeWindow condition: ``{"start": "HH:MM", "end": "HH:MM"}``."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        _parse_clock(value)
        return value

    def contains(self, moment: time) -> bool:
        # Windows crossing midnight (start > end) never match
        current = datetime.combine(_FIXED_DATE, time(moment.hour, moment.minute))
        start = datetime.combine(_FIXED_DATE, _parse_clock(self.start))
        end = datetime.combine(_FIXED_DATE, _parse_clock(self.end))
        return start <= current <= end


class DateRange(BaseModel):
    """Payload of a dateRange condition: ``{"start": ISO date, "end": ISO date}``."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_instant(cls, value: str) -> str:
        _parse_instant(value)
        return value

    def contains(self, moment: datetime) -> bool:
        return (
            _compare(_parse_instant(self.start), moment) <= 0
            and _compare(_parse_instant(self.end), moment) >= 0
        )


def _compare(bound: Tuple[datetime, bool], moment: datetime) -> int:
    """Return -1, 0 or 1 as the bound is before, equal to, or after the moment."""
    value, date_only = bound
    if date_only:
        left, right = value.date(), moment.date()
    else:
        left, right = value, moment
        # Naive values are read as UTC when the other side is aware
        if left.tzinfo is None and right.tzinfo is not None:
            left = left.replace(tzinfo=timezone.utc)
        elif right.tzinfo is None and left.tzinfo is not None:
            right = right.replace(tzinfo=timezone.utc)
    return (left > right) - (left < right)


def _current_time(context: EvaluationContext) -> time:
    value = context.current_time
    if not value:
        return datetime.now().time()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    return _parse_instant(value)[0].time()


def _current_moment(context: EvaluationContext) -> datetime:
    if not context.current_date:
        return datetime.now()
    return _parse_instant(context.current_date)[0]


def _as_dict(payload: Any) -> Any:
    # Grants store payloads as read-only mappings
    if isinstance(payload, Mapping):
        return dict(payload)
    return payload


def _invalid_payload(condition_type: ConditionType, exc: ValidationError) -> ConditionResult:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    detail = f"{location}: {error['msg']}" if location else error["msg"]
    return ConditionResult.fail(f"Invalid {condition_type.value} condition: {detail}")


def evaluate_time_window(payload: Any, context: EvaluationContext) -> ConditionResult:
    """Pass when the current hour:minute lies within [start, end]."""
    try:
        window = TimeWindow.model_validate(_as_dict(payload))
    except ValidationError as exc:
        return _invalid_payload(ConditionType.TIME_WINDOW, exc)

    try:
        now = _current_time(context)
    except ValueError:
        return ConditionResult.fail(
            f"Invalid evaluation context: current time '{context.current_time}' is not a time"
        )

    if not window.contains(now):
        return ConditionResult.fail(
            f"Permission not valid outside time window {window.start} - {window.end}"
        )
    return ConditionResult.ok()


def evaluate_date_range(payload: Any, context: EvaluationContext) -> ConditionResult:
    """Pass when the current date lies within [start, end]."""
    try:
        date_range = DateRange.model_validate(_as_dict(payload))
    except ValidationError as exc:
        return _invalid_payload(ConditionType.DATE_RANGE, exc)

    try:
        now = _current_moment(context)
    except ValueError:
        return ConditionResult.fail(
            f"Invalid evaluation context: current date '{context.current_date}' is not a date"
        )

    if not date_range.contains(now):
        return ConditionResult.fail(
            f"Permission not valid outside date range {date_range.start} - {date_range.end}"
        )
    return ConditionResult.ok()


def _type_name(name: Any) -> Any:
    return name.value if isinstance(name, ConditionType) else name


class ConditionRegistry:
    """Mapping from condition type name to its evaluator."""

    def __init__(self, evaluators: Optional[Dict[str, ConditionFunc]] = None):
        self.logger = get_logger("permissions.conditions")
        self._evaluators: Dict[str, ConditionFunc] = {}
        self._frozen = False
        for name, func in (evaluators or {}).items():
            self.register(name, func)

    def register(self, name: str, func: ConditionFunc, replace: bool = False) -> None:
        """Register an evaluator for a condition type."""
        self._check_mutable()
        name = _type_name(name)
        if not isinstance(name, str) or not name:
            raise ConditionRegistryError("Condition type name must be a non-empty string")
        if not callable(func):
            raise ConditionRegistryError(
                f"Evaluator for condition type '{name}' is not callable",
                details={"condition_type": name}
            )
        if name in self._evaluators and not replace:
            raise ConditionRegistryError(
                f"Condition type '{name}' is already registered",
                details={"condition_type": name}
            )
        self._evaluators[name] = func
        self.logger.debug("Condition evaluator registered", condition_type=name)

    def unregister(self, name: str) -> bool:
        """Remove an evaluator; returns False when the type was not registered."""
        self._check_mutable()
        return self._evaluators.pop(_type_name(name), None) is not None

    def get(self, name: str) -> Optional[ConditionFunc]:
        return self._evaluators.get(_type_name(name))

    def names(self) -> List[str]:
        return list(self._evaluators)

    def freeze(self) -> "ConditionRegistry":
        """Make the registry read-only; evaluation-time mutation is a bug."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def copy(self) -> "ConditionRegistry":
        """Return an unfrozen copy that can be extended independently."""
        return ConditionRegistry(dict(self._evaluators))

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConditionRegistryError("Condition registry is frozen")

    def __contains__(self, name: object) -> bool:
        return _type_name(name) in self._evaluators

    def __len__(self) -> int:
        return len(self._evaluators)


def create_default_registry() -> ConditionRegistry:
    """Create a registry seeded with the built-in condition types."""
    return ConditionRegistry({
        ConditionType.TIME_WINDOW.value: evaluate_time_window,
        ConditionType.DATE_RANGE.value: evaluate_date_range,
    })
