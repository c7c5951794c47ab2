"""Validation and parsing of generic per-server configuration values.

Public exports
- validate_server_id(guild_id) -> None
- validate_config_key(key) -> None
- validate_config_value(value, value_type) -> None
- parse_config_input(raw, value_type) -> Any
- ConfigUpdateDto.from_payload(payload) -> ConfigUpdateDto

Every validator raises :class:`ConfigValidationError` with a readable message.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from taskcord.datatypes.config_datatypes import ConfigValueType
from taskcord.errors import ConfigValidationError

MAX_KEY_LENGTH = 64
KEY_PATTERN = r"^[a-z0-9._]+$"
SERVER_ID_PATTERN = r"^[0-9]{17,19}$"

_TRUE_WORDS = {"true", "yes", "1", "on"}
_FALSE_WORDS = {"false", "no", "0", "off"}

key_schema = {
    "type": "string",
    "minLength": 1,
    "maxLength": MAX_KEY_LENGTH,
    "pattern": KEY_PATTERN,
}

value_schemas: Dict[ConfigValueType, dict] = {
    ConfigValueType.STRING: {"type": "string", "maxLength": 2000},
    ConfigValueType.NUMBER: {"type": "number"},
    ConfigValueType.BOOLEAN: {"type": "boolean"},
    ConfigValueType.ARRAY: {"type": "array"},
    ConfigValueType.OBJECT: {"type": "object"},
}

config_update_schema = {
    "type": "object",
    "properties": {
        "guild_id": {"type": "string", "pattern": SERVER_ID_PATTERN},
        "updated_by": {"type": "string", "pattern": "^[0-9]+$"},
        "values": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "key": key_schema,
                    "type": {"type": "string", "enum": [t.value for t in ConfigValueType]},
                    "value": {},
                },
                "required": ["key", "type", "value"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["guild_id", "updated_by", "values"],
    "additionalProperties": False,
}

_key_validator = Draft7Validator(key_schema)
_value_validators = {t: Draft7Validator(s) for t, s in value_schemas.items()}
_update_validator = Draft7Validator(config_update_schema)


def validate_server_id(guild_id: Any) -> None:
    if not re.match(SERVER_ID_PATTERN, str(guild_id)):
        raise ConfigValidationError(f"Invalid server id: {guild_id}")


def validate_config_key(key: Any) -> None:
    errors = list(_key_validator.iter_errors(key))
    if errors:
        raise ConfigValidationError(
            f"Invalid config key '{key}': use 1-{MAX_KEY_LENGTH} lowercase letters, digits, '.' or '_'"
        )
    if key.startswith(".") or key.endswith("."):
        raise ConfigValidationError(f"Invalid config key '{key}': cannot start or end with '.'")


def validate_config_value(value: Any, value_type: ConfigValueType) -> None:
    error = next(iter(_value_validators[value_type].iter_errors(value)), None)
    if error is not None:
        raise ConfigValidationError(f"Value does not match type {value_type.value}: {error.message}")


def parse_config_input(raw: str, value_type: ConfigValueType) -> Any:
    """Convert a slash-command string into a typed config value."""
    text = raw.strip()
    if value_type is ConfigValueType.STRING:
        return raw
    if value_type is ConfigValueType.NUMBER:
        try:
            number = float(text)
        except ValueError:
            raise ConfigValidationError(f"'{raw}' is not a number") from None
        return int(number) if number.is_integer() and "." not in text else number
    if value_type is ConfigValueType.BOOLEAN:
        lowered = text.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ConfigValidationError(f"'{raw}' is not a boolean (use true/false)")

    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(f"Invalid JSON for {value_type.value}: {exc.msg}") from None
    validate_config_value(value, value_type)
    return value


@dataclass(slots=True)
class ConfigUpdateItem:
    key: str
    type: ConfigValueType
    value: Any


@dataclass(slots=True)
class ConfigUpdateDto:
    """A batch of config writes for one server, validated as a whole."""

    guild_id: str
    updated_by: str
    values: List[ConfigUpdateItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ConfigUpdateDto":
        errors = sorted(_update_validator.iter_errors(payload), key=lambda e: list(e.path))
        if errors:
            messages = [
                f"{'.'.join(str(p) for p in e.path) or 'payload'}: {e.message}" for e in errors
            ]
            raise ConfigValidationError("; ".join(messages))

        items = []
        for raw in payload["values"]:
            item = ConfigUpdateItem(key=raw["key"], type=ConfigValueType(raw["type"]), value=raw["value"])
            validate_config_key(item.key)
            validate_config_value(item.value, item.type)
            items.append(item)
        return cls(guild_id=payload["guild_id"], updated_by=payload["updated_by"], values=items)
