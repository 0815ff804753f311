from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from dataquality.errors import InvalidRuleConfig


RuleTypeName = Literal["REQUIRED", "FORMAT", "RANGE", "CUSTOM"]


# ---------------------------------------------------------------------------
# Rule configuration variants (tagged by rule_type)
# ---------------------------------------------------------------------------
# Stored configs use snake_case keys; camelCase keys are accepted on input.


class _RuleConfigBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class RequiredRuleConfig(_RuleConfigBase):
    rule_type: Literal["REQUIRED"] = "REQUIRED"
    required: bool = False


class FormatRuleConfig(_RuleConfigBase):
    rule_type: Literal["FORMAT"] = "FORMAT"
    min_length: int | None = Field(default=None, ge=0, alias="minLength")
    max_length: int | None = Field(default=None, ge=0, alias="maxLength")
    pattern: str | None = None


class RangeRuleConfig(_RuleConfigBase):
    rule_type: Literal["RANGE"] = "RANGE"
    min_value: int | float | None = Field(default=None, alias="minValue")
    max_value: int | float | None = Field(default=None, alias="maxValue")


class CustomRuleConfig(_RuleConfigBase):
    rule_type: Literal["CUSTOM"] = "CUSTOM"
    custom_validator: str | None = Field(default=None, alias="customValidator")


RuleConfig = Annotated[
    Union[RequiredRuleConfig, FormatRuleConfig, RangeRuleConfig, CustomRuleConfig],
    Field(discriminator="rule_type"),
]

_RULE_CONFIG_ADAPTER: TypeAdapter[RuleConfig] = TypeAdapter(RuleConfig)


def parse_rule_config(rule_type: str, raw: dict[str, Any] | None) -> RuleConfig:
    payload = dict(raw or {})
    payload["rule_type"] = rule_type
    try:
        return _RULE_CONFIG_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidRuleConfig(str(exc)) from exc


def dump_rule_config(config: RuleConfig) -> dict[str, Any]:
    return config.model_dump(exclude={"rule_type"}, exclude_none=True)


# ---------------------------------------------------------------------------
# Input payloads
# ---------------------------------------------------------------------------


class CompletenessConfigUpdate(BaseModel):
    field_weights: dict[str, Annotated[int, Field(ge=0, le=100)]] = Field(default_factory=dict)
    required_fields: list[str] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)

    def overlapping_fields(self) -> list[str]:
        optional = set(self.optional_fields)
        return [name for name in self.required_fields if name in optional]


class BusinessRuleCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    entity_type: str = Field(min_length=1)
    field: str = Field(min_length=1)
    rule_type: RuleTypeName
    rule_config: dict[str, Any]
    is_active: bool = True
    priority: int = 0


class BusinessRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    entity_type: str | None = Field(default=None, min_length=1)
    field: str | None = Field(default=None, min_length=1)
    rule_type: RuleTypeName | None = None
    rule_config: dict[str, Any] | None = None
    is_active: bool | None = None
    priority: int | None = None
