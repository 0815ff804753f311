"""Business-rule evaluation.

Rules are evaluated in the order given (callers pass them highest priority
first).  A rule that fails adds exactly one ``"<field>: <message>"`` entry to
``errors``; a rule whose evaluator raises is contained to that rule.
"""
from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import AnyUrl, TypeAdapter, ValidationError

from dataquality.errors import InvalidRuleConfig, RuleEvaluationError
from dataquality.logging import get_logger, log_with_context
from dataquality.models import RuleType
from dataquality.rules import primitives
from dataquality.schemas import (
    CustomRuleConfig,
    FormatRuleConfig,
    RangeRuleConfig,
    RequiredRuleConfig,
    RuleConfig,
    parse_rule_config,
)

logger = get_logger(__name__)

REQUIRED_MESSAGE = "This field is required"
FORMAT_INVALID_MESSAGE = "Format is invalid"
NOT_A_NUMBER_MESSAGE = "Value must be a number"
UNKNOWN_VALIDATOR_MESSAGE = "Unknown custom validator"
EVALUATION_FAILED_MESSAGE = "Rule evaluation failed"
MISSING_FIELD_LABEL = "<no field>"

_RULE_TYPES = frozenset(member.value for member in RuleType)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class RuleOutcome:
    is_valid: bool
    message: str | None = None


PASS = RuleOutcome(is_valid=True)


def _fail(message: str) -> RuleOutcome:
    return RuleOutcome(is_valid=False, message=message)


# ---------------------------------------------------------------------------
# Custom validators
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CustomValidator:
    predicate: Callable[[Any], bool]
    message: str


_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_RE = re.compile(r"[+]?[1-9][0-9]{0,15}")
_WHITESPACE_RE = re.compile(r"\s")
_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


def is_email(value: Any) -> bool:
    return _EMAIL_RE.fullmatch(primitives.as_text(value)) is not None


def is_phone(value: Any) -> bool:
    compact = _WHITESPACE_RE.sub("", primitives.as_text(value))
    return _PHONE_RE.fullmatch(compact) is not None


def is_url(value: Any) -> bool:
    try:
        _URL_ADAPTER.validate_python(primitives.as_text(value))
    except ValidationError:
        return False
    return True


BUILTIN_CUSTOM_VALIDATORS: dict[str, CustomValidator] = {
    "email": CustomValidator(is_email, "Invalid email format"),
    "phone": CustomValidator(is_phone, "Invalid phone number format"),
    "url": CustomValidator(is_url, "Invalid URL format"),
}


def _strict_from_env() -> bool:
    return os.getenv("DATAQUALITY_STRICT_CUSTOM_VALIDATORS", "").lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class BusinessRuleValidator:
    """Evaluate entity payloads against ordered business rules.

    ``strict_custom_validators`` controls what happens when a CUSTOM rule names
    a validator that is not registered: by default the rule passes, in strict
    mode it fails with ``"Unknown custom validator"``.

    CUSTOM checks run on absent values too (``None`` is checked as the text
    ``"undefined"``), so a missing email fails the email check.  Pass
    ``skip_absent_custom_values=True`` to treat absent values as a pass.
    """

    def __init__(
        self,
        custom_validators: Mapping[str, CustomValidator] | None = None,
        *,
        strict_custom_validators: bool | None = None,
        skip_absent_custom_values: bool = False,
    ) -> None:
        self.custom_validators: dict[str, CustomValidator] = dict(
            BUILTIN_CUSTOM_VALIDATORS if custom_validators is None else custom_validators
        )
        self.strict_custom_validators = (
            _strict_from_env() if strict_custom_validators is None else strict_custom_validators
        )
        self.skip_absent_custom_values = skip_absent_custom_values

    def register_custom_validator(
        self, name: str, predicate: Callable[[Any], bool], message: str
    ) -> None:
        self.custom_validators[name] = CustomValidator(predicate, message)

    def validate(self, rules: Iterable[Mapping[str, Any]], payload: Mapping[str, Any]) -> ValidationResult:
        errors: list[str] = []
        for rule in rules:
            if not rule.get("is_active", True):
                continue
            rule_field = rule.get("field")
            try:
                if not rule_field:
                    raise RuleEvaluationError(str(rule.get("name") or rule.get("id")), "rule has no field")
                outcome = self.evaluate_rule(rule, payload.get(rule_field))
            except Exception as exc:  # noqa: BLE001
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Rule evaluation failed",
                    rule_id=rule.get("id"),
                    rule_name=rule.get("name"),
                    field=rule_field,
                    error=getattr(exc, "detail", str(exc)),
                )
                outcome = _fail(EVALUATION_FAILED_MESSAGE)
            if not outcome.is_valid:
                errors.append(f"{rule_field or MISSING_FIELD_LABEL}: {outcome.message}")
        return ValidationResult(is_valid=not errors, errors=errors, warnings=[])

    def evaluate_rule(self, rule: Mapping[str, Any], value: Any) -> RuleOutcome:
        name = str(rule.get("name") or rule.get("id") or rule.get("field"))
        rule_type = rule.get("rule_type")
        rule_type = str(getattr(rule_type, "value", rule_type))
        if rule_type not in _RULE_TYPES:
            return PASS
        try:
            config = parse_rule_config(rule_type, rule.get("rule_config"))
        except InvalidRuleConfig as exc:
            raise RuleEvaluationError(name, exc.detail) from exc
        return self.evaluate(config, value, rule_name=name)

    def evaluate(self, config: RuleConfig, value: Any, *, rule_name: str = "") -> RuleOutcome:
        if isinstance(config, RequiredRuleConfig):
            return self.validate_required(value, config)
        if isinstance(config, FormatRuleConfig):
            return self.validate_format(value, config, rule_name=rule_name)
        if isinstance(config, RangeRuleConfig):
            return self.validate_range(value, config)
        if isinstance(config, CustomRuleConfig):
            return self.validate_custom(value, config, rule_name=rule_name)
        return PASS

    def validate_required(self, value: Any, config: RequiredRuleConfig) -> RuleOutcome:
        if config.required and not primitives.has_value(value):
            return _fail(REQUIRED_MESSAGE)
        return PASS

    def validate_format(self, value: Any, config: FormatRuleConfig, *, rule_name: str = "") -> RuleOutcome:
        if not primitives.has_value(value):
            return PASS

        text = primitives.as_text(value)
        if config.min_length is not None and len(text) < config.min_length:
            return _fail(f"Minimum length is {config.min_length} characters")
        if config.max_length is not None and len(text) > config.max_length:
            return _fail(f"Maximum length is {config.max_length} characters")
        if config.pattern:
            try:
                compiled = re.compile(config.pattern)
            except re.error as exc:
                raise RuleEvaluationError(rule_name, f"invalid pattern: {exc}") from exc
            if compiled.search(text) is None:
                return _fail(FORMAT_INVALID_MESSAGE)
        return PASS

    def validate_range(self, value: Any, config: RangeRuleConfig) -> RuleOutcome:
        if not primitives.has_value(value):
            return PASS

        number = primitives.to_number(value)
        if number is None:
            return _fail(NOT_A_NUMBER_MESSAGE)
        if config.min_value is not None and number < config.min_value:
            return _fail(f"Minimum value is {primitives.format_number(config.min_value)}")
        if config.max_value is not None and number > config.max_value:
            return _fail(f"Maximum value is {primitives.format_number(config.max_value)}")
        return PASS

    def validate_custom(
        self, value: Any, config: CustomRuleConfig | Mapping[str, Any], *, rule_name: str = ""
    ) -> RuleOutcome:
        if not isinstance(config, CustomRuleConfig):
            config = CustomRuleConfig.model_validate(dict(config))
        if not config.custom_validator:
            return PASS
        if self.skip_absent_custom_values and not primitives.has_value(value):
            return PASS

        validator = self.custom_validators.get(config.custom_validator)
        if validator is None:
            if self.strict_custom_validators:
                return _fail(UNKNOWN_VALIDATOR_MESSAGE)
            return PASS
        try:
            valid = validator.predicate(value)
        except Exception as exc:  # noqa: BLE001
            raise RuleEvaluationError(rule_name, f"{config.custom_validator}: {exc}") from exc
        if not valid:
            return _fail(validator.message)
        return PASS


VALIDATOR = BusinessRuleValidator()
