"""
Validation Package

Canonical import surface for request input validation (`InputValidator`).
Business rules are enforced by the services and the progression engine,
not here.
"""

from src.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
