from __future__ import annotations

import logging
import threading
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from dataquality.logging import get_logger, log_with_context
from dataquality.rules import completeness
from dataquality.rules.completeness import CompletenessResult
from dataquality.rules.defaults import DEFAULT_RULES, ENTITY_TYPES, RULE_TYPE_DESCRIPTIONS
from dataquality.rules.validator import VALIDATOR, BusinessRuleValidator, ValidationResult
from dataquality.schemas import BusinessRuleCreate, BusinessRuleUpdate
from dataquality.store import STORE, SqlStore

logger = get_logger(__name__)


def _store(s: SqlStore | None) -> SqlStore:
    return s or STORE


def _validator(v: BusinessRuleValidator | None) -> BusinessRuleValidator:
    return v or VALIDATOR


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


def calculate_completeness(
    entity_type: str, instance: dict[str, Any], store: SqlStore | None = None
) -> CompletenessResult:
    config = _store(store).get_config(entity_type)
    return completeness.calculate(instance, config)


def refresh_entity_completeness(
    entity_type: str, entity_id: str, store: SqlStore | None = None
) -> dict[str, Any]:
    entity = _store(store).get_entity(entity_type, entity_id)
    result = calculate_completeness(entity_type, entity["data"], store=store)
    return _store(store).save_completeness(entity_type, entity_id, result)


def recommendations(entity_type: str, entity_id: str, store: SqlStore | None = None) -> dict[str, Any]:
    entity = _store(store).get_entity(entity_type, entity_id)
    result = calculate_completeness(entity_type, entity["data"], store=store)
    return {
        "entity_id": entity_id,
        "entity_type": entity_type,
        "score": result.score,
        "gaps": list(result.gaps),
        "missing_optional": list(result.missing_optional),
        "recommendations": completeness.recommendations_for_fields(
            [*result.gaps, *result.missing_optional]
        ),
    }


def completeness_statistics(entity_type: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).completeness_statistics(entity_type)


def recompute_all(
    entity_types: list[str] | None = None,
    page_size: int | None = None,
    cancel_event: threading.Event | None = None,
    store: SqlStore | None = None,
) -> dict[str, Any]:
    from dataquality.jobs import RUNNER

    return RUNNER.recompute_all(
        entity_types=entity_types,
        page_size=page_size,
        cancel_event=cancel_event,
        store=store,
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def get_config(entity_type: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).get_config(entity_type)


def upsert_config(
    entity_type: str,
    *,
    field_weights: dict[str, int],
    required_fields: list[str],
    optional_fields: list[str],
    store: SqlStore | None = None,
) -> dict[str, Any]:
    return _store(store).upsert_config(
        entity_type,
        field_weights=field_weights,
        required_fields=required_fields,
        optional_fields=optional_fields,
    )


def entity_types() -> list[dict[str, str]]:
    return [dict(item) for item in ENTITY_TYPES]


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------


def validate_entity(
    entity_type: str,
    payload: dict[str, Any],
    store: SqlStore | None = None,
    validator: BusinessRuleValidator | None = None,
) -> ValidationResult:
    rules = _store(store).list_active_rules(entity_type)
    return _validator(validator).validate(rules, payload)


def list_rules(
    entity_type: str | None = None,
    is_active: bool | None = None,
    store: SqlStore | None = None,
) -> list[dict[str, Any]]:
    return _store(store).list_rules(entity_type=entity_type, is_active=is_active)


def list_rules_for_entity(entity_type: str, store: SqlStore | None = None) -> list[dict[str, Any]]:
    return _store(store).list_rules_for_entity(entity_type)


def create_rule(
    *,
    name: str,
    entity_type: str,
    field: str,
    rule_type: str,
    rule_config: dict[str, Any],
    description: str | None = None,
    is_active: bool = True,
    priority: int = 0,
    store: SqlStore | None = None,
) -> dict[str, Any]:
    payload = BusinessRuleCreate(
        name=name,
        description=description,
        entity_type=entity_type,
        field=field,
        rule_type=rule_type,
        rule_config=rule_config,
        is_active=is_active,
        priority=priority,
    )
    return _store(store).create_rule(payload.model_dump())


def get_rule(rule_id: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).get_rule(rule_id)


def update_rule(rule_id: str, changes: dict[str, Any], store: SqlStore | None = None) -> dict[str, Any]:
    update = BusinessRuleUpdate.model_validate(changes)
    # Only description may be cleared; None elsewhere means "unchanged".
    fields = {
        key: value
        for key, value in update.model_dump(exclude_unset=True).items()
        if value is not None or key == "description"
    }
    return _store(store).update_rule(rule_id, fields)


def delete_rule(rule_id: str, store: SqlStore | None = None) -> None:
    _store(store).delete_rule(rule_id)


def seed_defaults(store: SqlStore | None = None) -> dict[str, int]:
    created = 0
    skipped = 0
    for rule in DEFAULT_RULES:
        if _store(store).rule_name_exists(rule["name"]):
            log_with_context(logger, logging.INFO, "Business rule already exists", rule_name=rule["name"])
            skipped += 1
            continue
        try:
            _store(store).create_rule(rule)
        except SQLAlchemyError as exc:
            log_with_context(
                logger,
                logging.ERROR,
                "Failed to create business rule",
                rule_name=rule["name"],
                error=str(exc),
            )
            skipped += 1
            continue
        log_with_context(logger, logging.INFO, "Created business rule", rule_name=rule["name"])
        created += 1
    return {"created": created, "skipped": skipped}


def rule_statistics(store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).rule_statistics()


def rule_types() -> list[dict[str, str]]:
    return [
        {"value": value, "label": value.capitalize(), "description": description}
        for value, description in RULE_TYPE_DESCRIPTIONS.items()
    ]


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------


def ingest_entity(
    entity_type: str,
    data: dict[str, Any],
    entity_id: str | None = None,
    store: SqlStore | None = None,
    validator: BusinessRuleValidator | None = None,
) -> dict[str, Any]:
    """Validate, persist, then score one incoming record.

    A record that fails validation is not written; the returned sync result
    carries the rule errors instead.
    """
    operation = "update" if entity_id else "create"
    result: dict[str, Any] = {
        "success": False,
        "entity_id": entity_id,
        "entity_type": entity_type,
        "operation": operation,
        "errors": [],
        "warnings": [],
        "completeness_score": None,
        "data_gaps": [],
    }

    if entity_id:
        # Partial updates are validated against the merged record.
        existing = _store(store).get_entity(entity_type, entity_id)
        candidate = {**existing["data"], **data}
    else:
        candidate = dict(data)

    validation = validate_entity(entity_type, candidate, store=store, validator=validator)
    result["warnings"] = list(validation.warnings)
    if not validation.is_valid:
        result["errors"] = list(validation.errors)
        log_with_context(
            logger,
            logging.WARNING,
            "Entity rejected by business rules",
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            errors=len(validation.errors),
        )
        return result

    config = _store(store).get_config(entity_type)
    if entity_id:
        entity = _store(store).update_entity(entity_type, entity_id, data)
    else:
        entity = _store(store).create_entity(entity_type, data)

    scored = completeness.calculate(entity["data"], config)
    entity = _store(store).save_completeness(entity_type, entity["id"], scored)

    result.update(
        success=True,
        entity_id=entity["id"],
        completeness_score=entity["profile_completeness"],
        data_gaps=list(entity["data_gaps"]),
    )
    log_with_context(
        logger,
        logging.INFO,
        "Entity ingested",
        entity_type=entity_type,
        entity_id=entity["id"],
        operation=operation,
        completeness_score=scored.score,
    )
    return result
