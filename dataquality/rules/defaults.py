from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Built-in completeness configurations
# ---------------------------------------------------------------------------
# Seeded lazily the first time an entity type is scored without a stored
# configuration.  Entity types not listed here must be configured explicitly.

DEFAULT_CONFIGS: dict[str, dict[str, Any]] = {
    "User": {
        "field_weights": {
            "email": 20,
            "firstName": 15,
            "lastName": 15,
            "phone": 10,
            "addressLine1": 8,
            "city": 8,
            "country": 8,
            "preferences": 6,
            "notes": 5,
            "bio": 5,
        },
        "required_fields": ["email", "firstName", "lastName"],
        "optional_fields": ["phone", "addressLine1", "city", "country", "preferences", "notes", "bio"],
    },
    "Guest": {
        "field_weights": {
            "email": 20,
            "firstName": 15,
            "lastName": 15,
            "phone": 12,
            "dateOfBirth": 10,
            "addressLine1": 8,
            "city": 8,
            "country": 8,
            "preferences": 4,
        },
        "required_fields": ["email", "firstName", "lastName"],
        "optional_fields": ["phone", "dateOfBirth", "addressLine1", "city", "country", "preferences"],
    },
    "Vendor": {
        "field_weights": {
            "name": 25,
            "contactPerson": 20,
            "phone": 15,
            "email": 15,
            "category": 10,
            "servicesOffered": 10,
            "website": 5,
        },
        "required_fields": ["name", "contactPerson"],
        "optional_fields": ["phone", "email", "category", "servicesOffered", "website"],
    },
}


ENTITY_TYPES: list[dict[str, str]] = [
    {"value": "User", "label": "User", "description": "Staff and admin users"},
    {"value": "Guest", "label": "Guest", "description": "Hotel guests and customers"},
    {"value": "Vendor", "label": "Vendor", "description": "Service providers and vendors"},
]


# ---------------------------------------------------------------------------
# Default business rules
# ---------------------------------------------------------------------------
# Installed by seed_defaults(); rules are matched by name when re-seeding.

def _required(entity_type: str, name: str, description: str, field: str, priority: int) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "entity_type": entity_type,
        "field": field,
        "rule_type": "REQUIRED",
        "rule_config": {"required": True},
        "priority": priority,
    }


def _custom(
    entity_type: str, name: str, description: str, field: str, validator: str, priority: int
) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "entity_type": entity_type,
        "field": field,
        "rule_type": "CUSTOM",
        "rule_config": {"custom_validator": validator},
        "priority": priority,
    }


DEFAULT_RULES: list[dict[str, Any]] = [
    _required("User", "User Email Required", "User email is required and must be valid", "email", 100),
    _custom("User", "User Email Format", "User email must be in valid format", "email", "email", 90),
    _required("User", "User Name Required", "User first and last name are required", "firstName", 80),
    _custom("User", "User Phone Format", "User phone number must be in valid format", "phone", "phone", 70),
    _required("Guest", "Guest Email Required", "Guest email is required and must be valid", "email", 100),
    _custom("Guest", "Guest Email Format", "Guest email must be in valid format", "email", "email", 90),
    _required("Guest", "Guest Name Required", "Guest first and last name are required", "firstName", 80),
    _custom("Guest", "Guest Phone Format", "Guest phone number must be in valid format", "phone", "phone", 70),
    _required("Vendor", "Vendor Name Required", "Vendor name is required", "name", 100),
    _required("Vendor", "Vendor Contact Required", "Vendor contact person is required", "contactPerson", 90),
    _custom("Vendor", "Vendor Email Format", "Vendor email must be in valid format", "email", "email", 70),
    _custom("Vendor", "Vendor Phone Format", "Vendor phone number must be in valid format", "phone", "phone", 60),
    _custom("Vendor", "Vendor Website Format", "Vendor website must be in valid URL format", "website", "url", 50),
]


RULE_TYPE_DESCRIPTIONS: dict[str, str] = {
    "REQUIRED": "Field must have a value",
    "FORMAT": "Field must match specific format (length, pattern)",
    "RANGE": "Field must be within specified numeric range",
    "CUSTOM": "Custom validation logic (email, phone, URL, etc.)",
}


# ---------------------------------------------------------------------------
# Statistics thresholds and gap recommendations
# ---------------------------------------------------------------------------

COMPLETE_PROFILE_THRESHOLD = 90
LOW_COMPLETENESS_THRESHOLD = 50

# Ordered: (gap fields that trigger it, recommendation).
GAP_RECOMMENDATIONS: list[tuple[frozenset[str], str]] = [
    (frozenset({"phone"}), "Add phone number for better guest communication"),
    (frozenset({"dateOfBirth"}), "Add date of birth for personalized birthday services"),
    (frozenset({"addressLine1"}), "Add address information for billing and delivery services"),
    (frozenset({"preferences"}), "Add guest preferences for personalized service recommendations"),
    (frozenset({"city", "country"}), "Add location information for local service recommendations"),
]
