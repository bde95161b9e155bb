"""
Unit Tests for Exceptions, Error Formatting and Input Validation
================================================================

Purpose
-------
Test the domain exception hierarchy, its mapping to HTTP responses and the
InputValidator conversions every service relies on.
"""

import pytest

from src.api.errors import format_error
from src.core.exceptions import DatabaseError
from src.core.validation.input_validator import InputValidator
from src.domain.models.base import DomainValidationError, validate_positive
from src.modules.shared.exceptions import (
    DuplicateCompletionError,
    ErrorSeverity,
    InsufficientEnergyError,
    InvalidOperationError,
    InvalidUncompleteError,
    NotFoundError,
    TaskNotFoundError,
    UnauthorizedError,
    ValidationError,
    http_status_for,
    should_alert,
)

pytestmark = pytest.mark.unit


# ============================================================================
# EXCEPTION HIERARCHY
# ============================================================================


class TestDomainExceptions:
    def test_insufficient_energy(self):
        error = InsufficientEnergyError(required=4, current=2)

        assert error.message == "能量球不足: 需要 4 个, 当前 2 个"
        assert error.error_code == "INSUFFICIENT_ENERGY"
        assert error.details["deficit"] == 2
        assert error.status_code == 400

    def test_not_found(self):
        error = NotFoundError("Goal", 9)

        assert error.error_code == "GOAL_NOT_FOUND"
        assert error.status_code == 404
        assert TaskNotFoundError(3).message == "任务未找到"

    def test_validation_error(self):
        error = ValidationError("title", "Value is required")

        assert error.field == "title"
        assert error.validation_message == "Value is required"
        assert error.error_code == "VALIDATION_TITLE"
        assert "title" in str(error)

    def test_domain_validation_error_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_positive(0, "amount")

        error = exc_info.value
        assert isinstance(error, DomainValidationError)
        assert error.field == "amount"
        assert "amount must be positive" in str(error)

    def test_to_dict(self):
        data = DuplicateCompletionError(5).to_dict()

        assert data["error_code"] == "DUPLICATE_COMPLETION"
        assert data["details"] == {"task_id": 5}
        assert data["severity"] == "debug"

    @pytest.mark.parametrize(
        "error,alert",
        [
            (InvalidUncompleteError(1), False),
            (UnauthorizedError(), False),
            (DatabaseError("flush", RuntimeError("gone")), True),
            (RuntimeError("unexpected"), True),
        ],
    )
    def test_should_alert(self, error, alert):
        assert should_alert(error) is alert

    def test_http_status_for_unknown_errors(self):
        assert http_status_for(KeyError("x")) == 500
        assert UnauthorizedError().status_code == 401
        assert UnauthorizedError().severity is ErrorSeverity.WARNING


# ============================================================================
# HTTP FORMATTING
# ============================================================================


class TestFormatError:
    @pytest.mark.parametrize(
        "error,status,message",
        [
            (ValidationError("title", "任务标题是必需的"), 400, "任务标题是必需的"),
            (InvalidOperationError("complete_goal", "Goal is already completed"), 400, "Goal is already completed"),
            (TaskNotFoundError(1), 404, "任务未找到"),
            (UnauthorizedError("expired_token", "令牌已过期"), 401, "令牌已过期"),
            (InsufficientEnergyError(5, 1), 400, "能量球不足: 需要 5 个, 当前 1 个"),
        ],
    )
    def test_domain_errors(self, error, status, message):
        code, body = format_error(error)

        assert code == status
        assert body == {"message": message, "code": error.error_code}

    def test_infrastructure_error(self):
        code, body = format_error(DatabaseError("commit", RuntimeError("connection lost")))

        assert code == 503
        assert "connection lost" not in body["message"]

    def test_unexpected_error_hides_details(self):
        code, body = format_error(ZeroDivisionError("secret internals"))

        assert code == 500
        assert body == {"message": "服务器内部错误"}


# ============================================================================
# INPUT VALIDATION
# ============================================================================


class TestInputValidator:
    @pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (7.0, 7)])
    def test_integer_conversion(self, value, expected):
        assert InputValidator.validate_integer(value, "n") == expected

    @pytest.mark.parametrize(
        "value,message",
        [
            (None, "Value is required"),
            (True, "Must be a whole number"),
            ("abc", "Must be a whole number, got 'abc'"),
        ],
    )
    def test_integer_rejections(self, value, message):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(value, "n")

        assert exc_info.value.validation_message == message

    def test_integer_bounds(self):
        with pytest.raises(ValidationError) as low:
            InputValidator.validate_integer(0, "minutes", min_value=1)
        with pytest.raises(ValidationError) as high:
            InputValidator.validate_integer(300, "minutes", max_value=240)

        assert low.value.validation_message == "Must be at least 1, got 0"
        assert high.value.validation_message == "Cannot exceed 240, got 300"

    @pytest.mark.parametrize("value", [None, ""])
    def test_optional_integer_passes_empty(self, value):
        assert InputValidator.validate_optional_integer(value, "n") is None

    def test_string_strips_and_limits(self):
        assert InputValidator.validate_string("  hi  ", "title", min_length=1) == "hi"

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_string("   ", "title", min_length=1)

        assert exc_info.value.validation_message == "Must be at least 1 characters"

    def test_email(self):
        assert InputValidator.validate_email(" Player@Example.COM ") == "player@example.com"

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_email("player@localhost")

        assert exc_info.value.validation_message == "Invalid email address"

    def test_choice(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_choice("teleport", "action", ["task_complete"])

    def test_string_list_dedupes(self):
        assert InputValidator.validate_string_list(["a", " a ", "b"], "tags") == ["a", "b"]
        assert InputValidator.validate_string_list(None, "tags") == []

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_string_list("a,b", "tags")

        assert exc_info.value.validation_message == "Must be a list"

    def test_entity_id_from_path_string(self):
        assert InputValidator.validate_entity_id("42", "task_id") == 42

        with pytest.raises(ValidationError):
            InputValidator.validate_entity_id("0", "task_id")
