from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from dataquality.db import SessionLocal, init_db, reset_db
from dataquality.errors import ConfigNotFound, EntityNotFound, FieldOverlap, RuleNotFound
from dataquality.logging import get_logger, log_with_context
from dataquality.models import (
    BusinessRuleModel,
    CompletenessConfigModel,
    CompletenessRunModel,
    CompletenessRunStatus,
    EntityRecordModel,
    RuleType,
)
from dataquality.rules.completeness import CompletenessResult
from dataquality.rules.defaults import (
    COMPLETE_PROFILE_THRESHOLD,
    DEFAULT_CONFIGS,
    LOW_COMPLETENESS_THRESHOLD,
)
from dataquality.schemas import CompletenessConfigUpdate, dump_rule_config, parse_rule_config

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def _config_to_dict(model: CompletenessConfigModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "entity_type": model.entity_type,
        "field_weights": dict(model.field_weights or {}),
        "required_fields": list(model.required_fields or []),
        "optional_fields": list(model.optional_fields or []),
        "created_at": _iso(model.created_at),
        "updated_at": _iso(model.updated_at),
    }


def _rule_to_dict(model: BusinessRuleModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "name": model.name,
        "description": model.description,
        "entity_type": model.entity_type,
        "field": model.field,
        "rule_type": model.rule_type.value,
        "rule_config": dict(model.rule_config or {}),
        "is_active": model.is_active,
        "priority": model.priority,
        "created_at": _iso(model.created_at),
        "updated_at": _iso(model.updated_at),
    }


def _entity_to_dict(model: EntityRecordModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "entity_type": model.entity_type,
        "data": dict(model.data or {}),
        "profile_completeness": model.profile_completeness,
        "data_gaps": list(model.data_gaps or []),
        "last_completeness_check": _iso(model.last_completeness_check),
        "created_at": _iso(model.created_at),
        "updated_at": _iso(model.updated_at),
    }


def _run_to_dict(model: CompletenessRunModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "status": model.status.value,
        "entity_types": list(model.entity_types or []),
        "page_size": model.page_size,
        "processed": model.processed,
        "failed": model.failed,
        "report": list(model.report or []),
        "started_at": _iso(model.started_at),
        "completed_at": _iso(model.completed_at),
    }


def _rule_ordering():
    return (
        BusinessRuleModel.priority.desc(),
        BusinessRuleModel.name.asc(),
        BusinessRuleModel.id.asc(),
    )


class SqlStore:
    def __init__(self) -> None:
        init_db()

    def reset(self) -> None:
        reset_db()

    # -----------------------------------------------------------------
    # Entity records
    # -----------------------------------------------------------------

    def create_entity(self, entity_type: str, data: dict[str, Any]) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            record = EntityRecordModel(entity_type=entity_type, data=dict(data), data_gaps=[])
            session.add(record)
            session.flush()
            return _entity_to_dict(record)

    def _get_record(self, session, entity_type: str, entity_id: str) -> EntityRecordModel:
        record = session.get(EntityRecordModel, entity_id)
        if record is None or record.entity_type != entity_type:
            raise EntityNotFound(entity_type, entity_id)
        return record

    def get_entity(self, entity_type: str, entity_id: str) -> dict[str, Any]:
        with SessionLocal() as session:
            return _entity_to_dict(self._get_record(session, entity_type, entity_id))

    def list_entities(self, entity_type: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in self.iter_entity_pages(entity_type):
            items.extend(page)
        return items

    def iter_entity_pages(
        self, entity_type: str, page_size: int = 500
    ) -> Iterator[list[dict[str, Any]]]:
        if page_size < 1:
            raise ValueError("INVALID_PAGE_SIZE")
        last_id: str | None = None
        while True:
            with SessionLocal() as session:
                query = select(EntityRecordModel).where(EntityRecordModel.entity_type == entity_type)
                if last_id is not None:
                    query = query.where(EntityRecordModel.id > last_id)
                rows = (
                    session.execute(query.order_by(EntityRecordModel.id.asc()).limit(page_size))
                    .scalars()
                    .all()
                )
                page = [_entity_to_dict(row) for row in rows]
            if not page:
                return
            yield page
            if len(page) < page_size:
                return
            last_id = page[-1]["id"]

    def iter_entities(self, entity_type: str, page_size: int = 500) -> Iterator[dict[str, Any]]:
        for page in self.iter_entity_pages(entity_type, page_size=page_size):
            yield from page

    def update_entity(self, entity_type: str, entity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            record = self._get_record(session, entity_type, entity_id)
            merged = dict(record.data or {})
            merged.update(fields)
            record.data = merged
            record.updated_at = _now()
            session.flush()
            return _entity_to_dict(record)

    def save_completeness(
        self, entity_type: str, entity_id: str, result: CompletenessResult
    ) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            record = self._get_record(session, entity_type, entity_id)
            record.profile_completeness = result.score
            record.data_gaps = list(result.gaps)
            record.last_completeness_check = result.last_check
            session.flush()
            return _entity_to_dict(record)

    def entity_types_with_records(self) -> list[str]:
        with SessionLocal() as session:
            rows = session.execute(
                select(EntityRecordModel.entity_type).distinct().order_by(EntityRecordModel.entity_type)
            ).all()
            return [row[0] for row in rows]

    def completeness_statistics(self, entity_type: str) -> dict[str, Any]:
        with SessionLocal() as session:
            base = select(EntityRecordModel).where(EntityRecordModel.entity_type == entity_type)
            total = session.execute(
                select(func.count()).select_from(base.subquery())
            ).scalar_one()
            avg_score, min_score, max_score, scored = session.execute(
                select(
                    func.avg(EntityRecordModel.profile_completeness),
                    func.min(EntityRecordModel.profile_completeness),
                    func.max(EntityRecordModel.profile_completeness),
                    func.count(EntityRecordModel.profile_completeness),
                ).where(EntityRecordModel.entity_type == entity_type)
            ).one()
            complete = session.execute(
                select(func.count()).where(
                    EntityRecordModel.entity_type == entity_type,
                    EntityRecordModel.profile_completeness >= COMPLETE_PROFILE_THRESHOLD,
                )
            ).scalar_one()
            low = session.execute(
                select(func.count()).where(
                    EntityRecordModel.entity_type == entity_type,
                    EntityRecordModel.profile_completeness < LOW_COMPLETENESS_THRESHOLD,
                )
            ).scalar_one()
            gap_rows = session.execute(
                select(EntityRecordModel.data_gaps).where(EntityRecordModel.entity_type == entity_type)
            ).all()

        gap_counts: Counter[str] = Counter()
        for (gaps,) in gap_rows:
            gap_counts.update(gaps or [])

        return {
            "entity_type": entity_type,
            "total": int(total),
            "scored": int(scored),
            "average": int(math.floor(float(avg_score) + 0.5)) if avg_score is not None else 0,
            "minimum": int(min_score) if min_score is not None else 0,
            "maximum": int(max_score) if max_score is not None else 0,
            "complete": int(complete),
            "incomplete": int(total) - int(complete),
            "low_completeness": int(low),
            "top_gaps": [
                {"field": name, "count": count}
                for name, count in sorted(gap_counts.items(), key=lambda item: (-item[1], item[0]))
            ],
        }

    # -----------------------------------------------------------------
    # Completeness configuration
    # -----------------------------------------------------------------

    def get_stored_config(self, entity_type: str) -> dict[str, Any] | None:
        with SessionLocal() as session:
            config = session.execute(
                select(CompletenessConfigModel).where(CompletenessConfigModel.entity_type == entity_type)
            ).scalar_one_or_none()
            if config is None:
                return None
            return _config_to_dict(config)

    def get_config(self, entity_type: str) -> dict[str, Any]:
        stored = self.get_stored_config(entity_type)
        if stored is not None:
            return stored

        default = DEFAULT_CONFIGS.get(entity_type)
        if default is None:
            raise ConfigNotFound(entity_type)

        try:
            with SessionLocal.begin() as session:
                config = CompletenessConfigModel(
                    entity_type=entity_type,
                    field_weights=dict(default["field_weights"]),
                    required_fields=list(default["required_fields"]),
                    optional_fields=list(default["optional_fields"]),
                )
                session.add(config)
                session.flush()
                created = _config_to_dict(config)
        except IntegrityError:
            # Seeded concurrently by another caller; read theirs.
            stored = self.get_stored_config(entity_type)
            if stored is None:
                raise
            return stored

        log_with_context(logger, logging.INFO, "Seeded default completeness config", entity_type=entity_type)
        return created

    def upsert_config(
        self,
        entity_type: str,
        field_weights: dict[str, int],
        required_fields: list[str],
        optional_fields: list[str],
    ) -> dict[str, Any]:
        payload = CompletenessConfigUpdate(
            field_weights=field_weights,
            required_fields=required_fields,
            optional_fields=optional_fields,
        )
        overlap = payload.overlapping_fields()
        if overlap:
            raise FieldOverlap(overlap)

        with SessionLocal.begin() as session:
            config = session.execute(
                select(CompletenessConfigModel).where(CompletenessConfigModel.entity_type == entity_type)
            ).scalar_one_or_none()
            if config is None:
                config = CompletenessConfigModel(entity_type=entity_type)
                session.add(config)
            config.field_weights = dict(payload.field_weights)
            config.required_fields = list(payload.required_fields)
            config.optional_fields = list(payload.optional_fields)
            config.updated_at = _now()
            session.flush()
            return _config_to_dict(config)

    def list_configured_entity_types(self) -> list[str]:
        with SessionLocal() as session:
            rows = session.execute(
                select(CompletenessConfigModel.entity_type).order_by(CompletenessConfigModel.entity_type)
            ).all()
            return [row[0] for row in rows]

    # -----------------------------------------------------------------
    # Business rules
    # -----------------------------------------------------------------

    def create_rule(self, payload: dict[str, Any]) -> dict[str, Any]:
        rule_type = RuleType(payload["rule_type"])
        config = parse_rule_config(rule_type.value, payload.get("rule_config"))
        with SessionLocal.begin() as session:
            rule = BusinessRuleModel(
                name=payload["name"],
                description=payload.get("description"),
                entity_type=payload["entity_type"],
                field=payload["field"],
                rule_type=rule_type,
                rule_config=dump_rule_config(config),
                is_active=payload.get("is_active", True),
                priority=payload.get("priority", 0),
            )
            session.add(rule)
            session.flush()
            return _rule_to_dict(rule)

    def get_rule(self, rule_id: str) -> dict[str, Any]:
        with SessionLocal() as session:
            rule = session.get(BusinessRuleModel, rule_id)
            if rule is None:
                raise RuleNotFound(rule_id)
            return _rule_to_dict(rule)

    def update_rule(self, rule_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            rule = session.get(BusinessRuleModel, rule_id)
            if rule is None:
                raise RuleNotFound(rule_id)

            if "rule_type" in changes or "rule_config" in changes:
                rule_type = RuleType(changes.get("rule_type", rule.rule_type))
                raw_config = changes.get("rule_config")
                if raw_config is None:
                    raw_config = rule.rule_config
                config = parse_rule_config(rule_type.value, raw_config)
                rule.rule_type = rule_type
                rule.rule_config = dump_rule_config(config)

            for key in ("name", "description", "entity_type", "field", "is_active", "priority"):
                if key in changes:
                    setattr(rule, key, changes[key])
            rule.updated_at = _now()
            session.flush()
            return _rule_to_dict(rule)

    def delete_rule(self, rule_id: str) -> None:
        with SessionLocal.begin() as session:
            rule = session.get(BusinessRuleModel, rule_id)
            if rule is None:
                raise RuleNotFound(rule_id)
            session.delete(rule)

    def rule_name_exists(self, name: str) -> bool:
        with SessionLocal() as session:
            return (
                session.execute(select(BusinessRuleModel.id).where(BusinessRuleModel.name == name)).first()
                is not None
            )

    def list_rules_for_entity(self, entity_type: str) -> list[dict[str, Any]]:
        with SessionLocal() as session:
            rows = (
                session.execute(
                    select(BusinessRuleModel)
                    .where(BusinessRuleModel.entity_type == entity_type)
                    .order_by(*_rule_ordering())
                )
                .scalars()
                .all()
            )
            return [_rule_to_dict(row) for row in rows]

    def list_active_rules(self, entity_type: str) -> list[dict[str, Any]]:
        with SessionLocal() as session:
            rows = (
                session.execute(
                    select(BusinessRuleModel)
                    .where(
                        BusinessRuleModel.entity_type == entity_type,
                        BusinessRuleModel.is_active.is_(True),
                    )
                    .order_by(*_rule_ordering())
                )
                .scalars()
                .all()
            )
            return [_rule_to_dict(row) for row in rows]

    def list_rules(
        self, entity_type: str | None = None, is_active: bool | None = None
    ) -> list[dict[str, Any]]:
        query = select(BusinessRuleModel)
        if entity_type is not None:
            query = query.where(BusinessRuleModel.entity_type == entity_type)
        if is_active is not None:
            query = query.where(BusinessRuleModel.is_active.is_(is_active))
        query = query.order_by(BusinessRuleModel.entity_type.asc(), *_rule_ordering())
        with SessionLocal() as session:
            return [_rule_to_dict(row) for row in session.execute(query).scalars().all()]

    def rule_statistics(self) -> dict[str, Any]:
        with SessionLocal() as session:
            total = session.execute(select(func.count(BusinessRuleModel.id))).scalar_one()
            active = session.execute(
                select(func.count(BusinessRuleModel.id)).where(BusinessRuleModel.is_active.is_(True))
            ).scalar_one()
            by_entity = session.execute(
                select(BusinessRuleModel.entity_type, func.count(BusinessRuleModel.id))
                .group_by(BusinessRuleModel.entity_type)
                .order_by(BusinessRuleModel.entity_type)
            ).all()
            by_type = session.execute(
                select(BusinessRuleModel.rule_type, func.count(BusinessRuleModel.id))
                .group_by(BusinessRuleModel.rule_type)
            ).all()
        return {
            "total": int(total),
            "active": int(active),
            "inactive": int(total) - int(active),
            "by_entity_type": {entity_type: int(count) for entity_type, count in by_entity},
            "by_rule_type": {rule_type.value: int(count) for rule_type, count in by_type},
        }

    # -----------------------------------------------------------------
    # Recompute runs
    # -----------------------------------------------------------------

    def start_completeness_run(self, entity_types: list[str], page_size: int) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            run = CompletenessRunModel(
                status=CompletenessRunStatus.RUNNING,
                entity_types=list(entity_types),
                page_size=page_size,
                processed=0,
                failed=0,
                report=[],
            )
            session.add(run)
            session.flush()
            return _run_to_dict(run)

    def finish_completeness_run(
        self,
        run_id: str,
        *,
        status: CompletenessRunStatus,
        processed: int,
        failed: int,
        report: list[dict[str, Any]],
    ) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            run = session.get(CompletenessRunModel, run_id)
            if run is None:
                raise KeyError("RUN_NOT_FOUND")
            run.status = status
            run.processed = processed
            run.failed = failed
            run.report = report
            run.completed_at = _now()
            session.flush()
            return _run_to_dict(run)

    def get_completeness_run(self, run_id: str) -> dict[str, Any] | None:
        with SessionLocal() as session:
            run = session.get(CompletenessRunModel, run_id)
            if run is None:
                return None
            return _run_to_dict(run)

    def list_completeness_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        with SessionLocal() as session:
            rows = (
                session.execute(
                    select(CompletenessRunModel)
                    .order_by(CompletenessRunModel.started_at.desc())
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return [_run_to_dict(row) for row in rows]


STORE = SqlStore()
