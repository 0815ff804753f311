"""Domain exceptions and their normalized error payloads.

Every exception carries an upper-snake error code as ``args[0]`` so outer
layers (scripts, an HTTP adapter, a scheduler) can map it without string
matching on messages.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError


class ConfigNotFound(KeyError):
    def __init__(self, entity_type: str) -> None:
        super().__init__("CONFIG_NOT_FOUND")
        self.entity_type = entity_type


class RuleNotFound(KeyError):
    def __init__(self, rule_id: str) -> None:
        super().__init__("RULE_NOT_FOUND")
        self.rule_id = rule_id


class EntityNotFound(KeyError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__("ENTITY_NOT_FOUND")
        self.entity_type = entity_type
        self.entity_id = entity_id


class FieldOverlap(ValueError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__("FIELD_OVERLAP")
        self.fields = fields


class InvalidRuleConfig(ValueError):
    def __init__(self, detail: str) -> None:
        super().__init__("INVALID_RULE_CONFIG")
        self.detail = detail


class RuleEvaluationError(RuntimeError):
    """Raised by a single rule evaluator; contained by the validator."""

    def __init__(self, rule_name: str, detail: str) -> None:
        super().__init__("RULE_EVALUATION_FAILED")
        self.rule_name = rule_name
        self.detail = detail


_DOMAIN_ERRORS: dict[str, tuple[str, bool]] = {
    "CONFIG_NOT_FOUND": ("Completeness configuration not found", False),
    "RULE_NOT_FOUND": ("Business rule not found", False),
    "ENTITY_NOT_FOUND": ("Entity not found", False),
    "FIELD_OVERLAP": ("Fields cannot be both required and optional", False),
    "INVALID_RULE_CONFIG": ("Rule configuration does not match rule type", False),
    "RULE_EVALUATION_FAILED": ("Rule evaluation failed", False),
    "INVALID_PAGE_SIZE": ("Page size must be a positive integer", False),
}


def normalize_exception(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, SQLAlchemyError):
        return {
            "code": "DB_ERROR",
            "message": "Database operation failed",
            "retryable": False,
        }
    if isinstance(exc, ValidationError):
        return {
            "code": "INVALID_PAYLOAD",
            "message": "Payload failed schema validation",
            "retryable": False,
        }

    token = exc.args[0] if exc.args else str(exc)
    token_str = str(token)
    if token_str in _DOMAIN_ERRORS:
        message, retryable = _DOMAIN_ERRORS[token_str]
        return {
            "code": token_str,
            "message": message,
            "retryable": retryable,
        }

    return {
        "code": "INVARIANT_VIOLATION",
        "message": "Operation failed due to invalid state",
        "retryable": False,
    }
