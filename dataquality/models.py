from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, Enum as SAEnum, Index, Integer, JSON, Text, Uuid
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class RuleType(str, Enum):
    REQUIRED = "REQUIRED"
    FORMAT = "FORMAT"
    RANGE = "RANGE"
    CUSTOM = "CUSTOM"


class CompletenessRunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    FAILED = "failed"


UUID_TEXT = Uuid(as_uuid=False)
TEXT_LIST = JSON().with_variant(ARRAY(Text), "postgresql")
JSON_DOC = JSON().with_variant(JSONB, "postgresql")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class CompletenessConfigModel(Base):
    __tablename__ = "completeness_config"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    field_weights: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    required_fields: Mapped[list[str]] = mapped_column(TEXT_LIST, nullable=False, default=list)
    optional_fields: Mapped[list[str]] = mapped_column(TEXT_LIST, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class BusinessRuleModel(Base):
    __tablename__ = "business_rule"
    __table_args__ = (Index("ix_business_rule_entity_type_priority", "entity_type", "priority"),)

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    field: Mapped[str] = mapped_column(Text, nullable=False)
    rule_type: Mapped[RuleType] = mapped_column(
        SAEnum(RuleType, values_callable=_enum_values), nullable=False
    )
    rule_config: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class EntityRecordModel(Base):
    __tablename__ = "entity_record"
    __table_args__ = (Index("ix_entity_record_entity_type_id", "entity_type", "id"),)

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    profile_completeness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data_gaps: Mapped[list[str]] = mapped_column(TEXT_LIST, nullable=False, default=list)
    last_completeness_check: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class CompletenessRunModel(Base):
    __tablename__ = "completeness_run"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    status: Mapped[CompletenessRunStatus] = mapped_column(
        SAEnum(CompletenessRunStatus, values_callable=_enum_values),
        nullable=False,
        default=CompletenessRunStatus.RUNNING,
    )
    entity_types: Mapped[list[str]] = mapped_column(TEXT_LIST, nullable=False, default=list)
    page_size: Mapped[int] = mapped_column(Integer, nullable=False)
    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    report: Mapped[list[dict]] = mapped_column(JSON_DOC, nullable=False, default=list)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
