from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from dataquality.models import (
    BusinessRuleModel,
    CompletenessConfigModel,
    CompletenessRunModel,
    EntityRecordModel,
)


def test_field_list_columns_map_to_postgres_text_arrays():
    pg = postgresql.dialect()
    array_columns = [
        CompletenessConfigModel.__table__.c.required_fields,
        CompletenessConfigModel.__table__.c.optional_fields,
        EntityRecordModel.__table__.c.data_gaps,
        CompletenessRunModel.__table__.c.entity_types,
    ]
    assert all(isinstance(column.type.dialect_impl(pg), ARRAY) for column in array_columns)


def test_document_columns_map_to_postgres_jsonb():
    pg = postgresql.dialect()
    jsonb_columns = [
        CompletenessConfigModel.__table__.c.field_weights,
        BusinessRuleModel.__table__.c.rule_config,
        EntityRecordModel.__table__.c.data,
        CompletenessRunModel.__table__.c.report,
    ]
    assert all(isinstance(column.type.dialect_impl(pg), JSONB) for column in jsonb_columns)


def test_model_enums_use_value_variants():
    assert BusinessRuleModel.__table__.c.rule_type.type.enums == ["REQUIRED", "FORMAT", "RANGE", "CUSTOM"]
    assert CompletenessRunModel.__table__.c.status.type.enums == [
        "running",
        "succeeded",
        "partial",
        "cancelled",
        "failed",
    ]
