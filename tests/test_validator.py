from __future__ import annotations

import pytest

from dataquality import service
from dataquality.rules.validator import VALIDATOR, BusinessRuleValidator


def _rule(field: str, rule_type: str, rule_config: dict, **extra) -> dict:
    return {"name": f"{field}-{rule_type}", "field": field, "rule_type": rule_type, "rule_config": rule_config, **extra}


class TestCustomValidators:
    @pytest.mark.parametrize(
        ("value", "name", "expected"),
        [
            ("not-an-email", "email", False),
            ("a@b.co", "email", True),
            ("a b@c.io", "email", False),
            ("+1 555 123 4567", "phone", True),
            ("15551234567", "phone", True),
            ("0123", "phone", False),
            ("+1-555-123", "phone", False),
            ("https://example.com", "url", True),
            ("ht!tp://bad", "url", False),
            ("example", "url", False),
        ],
    )
    def test_builtin_validators(self, value, name, expected) -> None:
        outcome = VALIDATOR.validate_custom(value, {"customValidator": name})

        assert outcome.is_valid is expected

    def test_failure_messages(self) -> None:
        assert VALIDATOR.validate_custom("nope", {"custom_validator": "email"}).message == "Invalid email format"
        assert VALIDATOR.validate_custom("nope", {"custom_validator": "phone"}).message == "Invalid phone number format"
        assert VALIDATOR.validate_custom("nope", {"custom_validator": "url"}).message == "Invalid URL format"

    def test_missing_validator_name_passes(self) -> None:
        assert VALIDATOR.validate_custom("anything", {}).is_valid is True

    def test_absent_value_fails_the_check(self) -> None:
        missing_email = VALIDATOR.validate_custom(None, {"custom_validator": "email"})
        blank_phone = VALIDATOR.validate_custom("  ", {"custom_validator": "phone"})
        missing_url = VALIDATOR.validate_custom(None, {"custom_validator": "url"})

        assert missing_email.is_valid is False
        assert missing_email.message == "Invalid email format"
        assert blank_phone.message == "Invalid phone number format"
        assert missing_url.message == "Invalid URL format"

    def test_absent_values_can_be_skipped_explicitly(self) -> None:
        validator = BusinessRuleValidator(skip_absent_custom_values=True)

        assert validator.validate_custom(None, {"custom_validator": "email"}).is_valid is True
        assert validator.validate_custom("  ", {"custom_validator": "phone"}).is_valid is True
        assert validator.validate_custom("nope", {"custom_validator": "email"}).is_valid is False

    def test_unknown_validator_passes_by_default(self) -> None:
        validator = BusinessRuleValidator(strict_custom_validators=False)

        assert validator.validate_custom("x", {"custom_validator": "iban"}).is_valid is True

    def test_unknown_validator_fails_in_strict_mode(self) -> None:
        validator = BusinessRuleValidator(strict_custom_validators=True)

        outcome = validator.validate_custom("x", {"custom_validator": "iban"})

        assert outcome.is_valid is False
        assert outcome.message == "Unknown custom validator"

    def test_strict_mode_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("DATAQUALITY_STRICT_CUSTOM_VALIDATORS", "1")

        assert BusinessRuleValidator().strict_custom_validators is True

    def test_registered_validator_is_used(self) -> None:
        validator = BusinessRuleValidator()
        validator.register_custom_validator("upper", lambda value: str(value).isupper(), "Must be upper case")

        result = validator.validate([_rule("code", "CUSTOM", {"custom_validator": "upper"})], {"code": "abc"})

        assert result.errors == ["code: Must be upper case"]
        assert "upper" not in VALIDATOR.custom_validators


class TestRuleTypes:
    def test_required_fails_on_absent_value(self) -> None:
        rules = [_rule("email", "REQUIRED", {"required": True})]

        for payload in ({}, {"email": None}, {"email": "   "}, {"email": []}):
            result = VALIDATOR.validate(rules, payload)
            assert result.is_valid is False
            assert result.errors == ["email: This field is required"]

    def test_required_false_always_passes(self) -> None:
        result = VALIDATOR.validate([_rule("email", "REQUIRED", {"required": False})], {})

        assert result.is_valid is True

    def test_required_accepts_falsy_values(self) -> None:
        rules = [_rule("count", "REQUIRED", {"required": True})]

        assert VALIDATOR.validate(rules, {"count": 0}).is_valid is True
        assert VALIDATOR.validate(rules, {"count": False}).is_valid is True

    def test_format_skips_absent_value(self) -> None:
        rules = [_rule("code", "FORMAT", {"minLength": 3, "pattern": "^[A-Z]+$"})]

        assert VALIDATOR.validate(rules, {}).is_valid is True
        assert VALIDATOR.validate(rules, {"code": ""}).is_valid is True

    def test_format_checks_in_order(self) -> None:
        rules = [_rule("code", "FORMAT", {"min_length": 3, "max_length": 5, "pattern": "^[A-Z]+$"})]

        assert VALIDATOR.validate(rules, {"code": "ab"}).errors == ["code: Minimum length is 3 characters"]
        assert VALIDATOR.validate(rules, {"code": "ABCDEF"}).errors == ["code: Maximum length is 5 characters"]
        assert VALIDATOR.validate(rules, {"code": "abcd"}).errors == ["code: Format is invalid"]
        assert VALIDATOR.validate(rules, {"code": "ABCD"}).is_valid is True

    def test_format_pattern_is_a_search(self) -> None:
        rules = [_rule("code", "FORMAT", {"pattern": "[0-9]"})]

        assert VALIDATOR.validate(rules, {"code": "abc1def"}).is_valid is True

    def test_range_skips_absent_value(self) -> None:
        rules = [_rule("age", "RANGE", {"minValue": 18})]

        assert VALIDATOR.validate(rules, {"age": None}).is_valid is True

    def test_range_messages(self) -> None:
        rules = [_rule("age", "RANGE", {"min_value": 18, "max_value": 99})]

        assert VALIDATOR.validate(rules, {"age": "abc"}).errors == ["age: Value must be a number"]
        assert VALIDATOR.validate(rules, {"age": 5}).errors == ["age: Minimum value is 18"]
        assert VALIDATOR.validate(rules, {"age": 120.5}).errors == ["age: Maximum value is 99"]
        assert VALIDATOR.validate(rules, {"age": "42"}).is_valid is True

    def test_range_with_fractional_bound(self) -> None:
        rules = [_rule("rating", "RANGE", {"max_value": 4.5})]

        assert VALIDATOR.validate(rules, {"rating": 5}).errors == ["rating: Maximum value is 4.5"]


class TestValidate:
    def test_inactive_rules_are_ignored(self) -> None:
        rules = [_rule("email", "REQUIRED", {"required": True}, is_active=False)]

        assert VALIDATOR.validate(rules, {}).is_valid is True

    def test_warnings_are_empty(self) -> None:
        result = VALIDATOR.validate([_rule("email", "REQUIRED", {"required": True})], {})

        assert result.warnings == []
        assert result.to_dict() == {
            "is_valid": False,
            "errors": ["email: This field is required"],
            "warnings": [],
        }

    def test_malformed_pattern_is_isolated(self) -> None:
        rules = [
            _rule("code", "FORMAT", {"pattern": "["}),
            _rule("email", "REQUIRED", {"required": True}),
        ]

        result = VALIDATOR.validate(rules, {"code": "abc"})

        assert result.errors == ["code: Rule evaluation failed", "email: This field is required"]

    def test_unparsable_config_is_isolated(self) -> None:
        rules = [_rule("age", "RANGE", {"min_value": "lots"})]

        result = VALIDATOR.validate(rules, {"age": 3})

        assert result.errors == ["age: Rule evaluation failed"]

    def test_raising_predicate_is_isolated(self) -> None:
        validator = BusinessRuleValidator()

        def explode(value):
            raise RuntimeError("boom")

        validator.register_custom_validator("explode", explode, "never")
        rules = [
            _rule("a", "CUSTOM", {"custom_validator": "explode"}),
            _rule("b", "CUSTOM", {"custom_validator": "email"}),
        ]

        result = validator.validate(rules, {"a": "x", "b": "bad"})

        assert result.errors == ["a: Rule evaluation failed", "b: Invalid email format"]

    def test_unknown_rule_type_passes(self) -> None:
        rules = [
            _rule("code", "LOOKUP", {}),
            _rule("code", "lookup", {"table": "codes"}),
        ]

        result = VALIDATOR.validate(rules, {"code": "abc"})

        assert result.is_valid is True
        assert result.errors == []

    def test_rule_without_field_is_isolated(self) -> None:
        rules = [
            {"name": "Broken", "rule_type": "REQUIRED", "rule_config": {"required": True}},
            _rule("email", "REQUIRED", {"required": True}),
        ]

        result = VALIDATOR.validate(rules, {})

        assert result.errors == ["<no field>: Rule evaluation failed", "email: This field is required"]


class TestValidateEntity:
    def test_errors_follow_priority_order(self) -> None:
        service.create_rule(
            name="Low",
            entity_type="Guest",
            field="email",
            rule_type="CUSTOM",
            rule_config={"custom_validator": "email"},
            priority=50,
        )
        service.create_rule(
            name="High",
            entity_type="Guest",
            field="email",
            rule_type="FORMAT",
            rule_config={"min_length": 10},
            priority=100,
        )

        result = service.validate_entity("Guest", {"email": "bad"})

        assert result.errors == [
            "email: Minimum length is 10 characters",
            "email: Invalid email format",
        ]

    def test_only_active_rules_of_the_type_apply(self) -> None:
        service.create_rule(
            name="Guest email",
            entity_type="Guest",
            field="email",
            rule_type="REQUIRED",
            rule_config={"required": True},
            is_active=False,
        )
        service.create_rule(
            name="Vendor name",
            entity_type="Vendor",
            field="name",
            rule_type="REQUIRED",
            rule_config={"required": True},
        )

        assert service.validate_entity("Guest", {}).is_valid is True
        assert service.validate_entity("Vendor", {}).errors == ["name: This field is required"]

    def test_seeded_rules_flag_missing_contact_fields(self) -> None:
        service.seed_defaults()

        result = service.validate_entity("User", {})

        assert result.errors == [
            "email: This field is required",
            "email: Invalid email format",
            "firstName: This field is required",
            "phone: Invalid phone number format",
        ]

    def test_seeded_rules_accept_complete_contact_fields(self) -> None:
        service.seed_defaults()

        result = service.validate_entity(
            "Guest", {"email": "a@b.co", "firstName": "Ann", "phone": "+44 20 7946 0958"}
        )

        assert result.is_valid is True

    def test_seeded_rules_flag_bad_values(self) -> None:
        service.seed_defaults()

        result = service.validate_entity(
            "Vendor",
            {"name": "Acme", "contactPerson": "Bo", "email": "nope", "phone": "+15551234567", "website": "ht!tp://bad"},
        )

        assert result.errors == ["email: Invalid email format", "website: Invalid URL format"]
