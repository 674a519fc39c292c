"""Encoding of plan variables into the engine wire format.

Two separate concerns live here:

- `encode_variables` is what the compiler uses. It never parses values:
  text the operator typed goes out unchanged with its type tag, and Object /
  Json values get serialization metadata.
- `coerce_variable_value` is the display-time reader. It parses a value as
  its declared type and raises `VariableValueError` when it cannot.
"""

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from planner.models.mapping import MigrationVariable, VariableScope
from planner.models.plan import PlanVariable, VariableType

logger = logging.getLogger(__name__)

JSON_VALUE_INFO = {
    "serializationDataFormat": "application/json",
    "objectTypeName": "java.lang.Object",
}

_INTEGER_RANGE = (-(2**31), 2**31 - 1)
_LONG_RANGE = (-(2**63), 2**63 - 1)


class VariableValueError(ValueError):
    """A variable value cannot be read as its declared type."""

    def __init__(self, name: str, var_type: VariableType, value: str, reason: str):
        super().__init__(f"Variable '{name}' is not a valid {var_type.value}: {reason}")
        self.name = name
        self.type = var_type
        self.value = value


def named_variables(variables: Iterable[PlanVariable]) -> list[PlanVariable]:
    """Drop variables whose name is blank after trimming."""
    return [v for v in variables if v.is_named]


def encode_variable(variable: PlanVariable) -> dict[str, Any]:
    """Wire form of one variable. The value is passed through as entered."""
    if variable.type in (VariableType.OBJECT, VariableType.JSON):
        return {
            "value": variable.value,
            "type": variable.type.value,
            "valueInfo": dict(JSON_VALUE_INFO),
        }
    return {"value": variable.value, "type": variable.type.value}


def encode_variables(variables: Iterable[PlanVariable]) -> dict[str, dict[str, Any]] | None:
    """Wire form of a variable list, keyed by trimmed name.

    Returns None when no named variable remains.
    """
    named = named_variables(variables)
    if not named:
        return None
    return {v.name.strip(): encode_variable(v) for v in named}


def _parse_int(variable: PlanVariable, bounds: tuple[int, int]) -> int:
    try:
        number = int(variable.value.strip())
    except ValueError:
        raise VariableValueError(variable.name, variable.type, variable.value, "not a whole number")
    low, high = bounds
    if not low <= number <= high:
        raise VariableValueError(variable.name, variable.type, variable.value, "out of range")
    return number


def coerce_variable_value(variable: PlanVariable) -> Any:
    """Parse a variable's text as its declared type.

    Raises:
        VariableValueError: If the text is not a valid value of the type.
    """
    text = variable.value
    var_type = variable.type

    if var_type == VariableType.STRING:
        return text
    if var_type == VariableType.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        raise VariableValueError(variable.name, var_type, text, "expected true or false")
    if var_type == VariableType.INTEGER:
        return _parse_int(variable, _INTEGER_RANGE)
    if var_type == VariableType.LONG:
        return _parse_int(variable, _LONG_RANGE)
    if var_type == VariableType.DOUBLE:
        try:
            return float(text.strip())
        except ValueError:
            raise VariableValueError(variable.name, var_type, text, "not a number")
    if var_type in (VariableType.OBJECT, VariableType.JSON):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise VariableValueError(variable.name, var_type, text, f"invalid JSON ({e.msg})")
    if var_type == VariableType.DATE:
        try:
            return datetime.fromisoformat(text.strip())
        except ValueError:
            raise VariableValueError(variable.name, var_type, text, "expected an ISO-8601 date")
    raise VariableValueError(variable.name, var_type, text, "unsupported type")


def preview_variable(variable: PlanVariable) -> dict[str, Any]:
    """Preview entry for one variable: parsed value or the parse error."""
    entry: dict[str, Any] = {
        "name": variable.name,
        "type": variable.type.value,
        "value": variable.value,
    }
    try:
        parsed = coerce_variable_value(variable)
    except VariableValueError as e:
        entry["error"] = str(e)
    else:
        entry["parsed"] = parsed.isoformat() if isinstance(parsed, datetime) else parsed
    return entry


def encode_migration_variables(
    variables: Iterable[MigrationVariable],
) -> dict[str, dict[str, Any]] | None:
    """Wire form of run-level migration variables.

    Booleans, numbers and JSON are parsed when possible; a value that does
    not parse is sent as entered.
    """
    out: dict[str, dict[str, Any]] = {}
    for variable in named_variables(variables):
        value: Any = variable.value
        if variable.type in (
            VariableType.BOOLEAN,
            VariableType.LONG,
            VariableType.DOUBLE,
            VariableType.JSON,
        ):
            try:
                value = coerce_variable_value(variable)
            except VariableValueError as e:
                logger.debug(f"Sending migration variable as entered: {e}")
        entry: dict[str, Any] = {"value": value, "type": variable.type.value}
        if getattr(variable, "scope", VariableScope.GLOBAL) == VariableScope.LOCAL:
            entry["local"] = True
        out[variable.name.strip()] = entry
    return out or None
