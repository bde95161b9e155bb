"""
Input Validation Layer

Purpose
-------
Centralized validation for request inputs that reach the services: ids,
integers with bounds, strings with length limits, choices and e-mail
addresses. Every validator returns the converted value or raises the
domain `ValidationError`, which the HTTP layer answers with a 400.

Responsibilities
----------------
- Convert loosely-typed JSON values (strings, floats, bools) to the types
  the services expect
- Enforce bounds and length limits
- Log every failure at debug level with the field and raw value

Non-Responsibilities
--------------------
- Business rules (energy balance, streak state): the progression engine
- Ownership checks: the data store filters by user id
"""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence, NoReturn

from src.modules.shared.exceptions import ValidationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError for `field_name`."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validators.

    All methods return the validated value and raise ValidationError on
    failure; none of them fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Convert `value` to int and check bounds.

        Booleans are rejected even though `int(True)` works; a JSON `true`
        sent as a duration is a client bug.

        Raises:
            ValidationError: Missing, non-numeric or out of bounds
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got '{value}'",
            )

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(value, field_name, min_value=1, max_value=max_value)

    @staticmethod
    def validate_optional_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> Optional[int]:
        """Like `validate_integer`, but `None` and "" pass through as None."""
        if value is None or value == "":
            return None
        return InputValidator.validate_integer(value, field_name, min_value, max_value)

    # =========================================================================
    # ID VALIDATION
    # =========================================================================

    @staticmethod
    def validate_entity_id(value: Any, field_name: str = "id") -> int:
        """Database ids are positive integers; path params arrive as strings."""
        return InputValidator.validate_positive_integer(value, field_name, max_value=2**31 - 1)

    @staticmethod
    def validate_user_id(value: Any, field_name: str = "user_id") -> str:
        """User ids are opaque non-empty strings (JWT `userId` claim)."""
        return InputValidator.validate_string(value, field_name, min_length=1, max_length=64)

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        """
        Strip and length-check a string.

        Raises:
            ValidationError: Missing, too short or too long
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        return str_value

    @staticmethod
    def validate_optional_string(
        value: Any,
        field_name: str,
        max_length: Optional[int] = None,
    ) -> Optional[str]:
        if value is None:
            return None
        return InputValidator.validate_string(value, field_name, max_length=max_length)

    @staticmethod
    def validate_email(value: Any, field_name: str = "email") -> str:
        """Lower-cased address with a plausible `local@domain.tld` shape."""
        email = InputValidator.validate_string(value, field_name, min_length=3, max_length=255).lower()
        if not _EMAIL_PATTERN.match(email):
            _raise_validation_error(field_name, email, "Invalid email address")
        return email

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """
        Case-insensitive membership check.

        Returns:
            Lowercased validated choice
        """
        str_value = str(value).lower().strip()
        normalized_choices = {choice.lower() for choice in valid_choices}

        if str_value not in normalized_choices:
            choices_str = ", ".join(sorted(valid_choices))
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {choices_str}",
            )

        return str_value

    @staticmethod
    def validate_string_list(
        values: Any,
        field_name: str,
        max_items: int = 50,
        max_length: int = 100,
    ) -> list:
        """Tags and skill tags: a list of short non-empty strings, deduplicated in order."""
        if values is None:
            return []
        if not isinstance(values, (list, tuple)):
            _raise_validation_error(field_name, values, "Must be a list")
        if len(values) > max_items:
            _raise_validation_error(field_name, values, f"Cannot contain more than {max_items} items")

        result: list = []
        for item in values:
            text = InputValidator.validate_string(item, field_name, min_length=1, max_length=max_length)
            if text not in result:
                result.append(text)
        return result
