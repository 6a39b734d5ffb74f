from __future__ import annotations

from typing import Any, Mapping

from .errors import ValidationError
from .schema import ParameterSpec


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_kind(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if _is_number(a) or _is_number(b):
        return _is_number(a) and _is_number(b)
    return type(a) is type(b)


def _in_enum(value: Any, members: tuple) -> bool:
    # 1 == True and "1" != 1 in Python; compare kind first so only exact members pass.
    return any(_same_kind(member, value) and member == value for member in members)


def _matches_type(expected: str, value: Any) -> bool:
    if expected == "integer":
        if isinstance(value, float):
            return value.is_integer()
        return isinstance(value, int) and not isinstance(value, bool)
    if expected in ("float", "number"):
        return _is_number(value)
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, dict)
    # Types the engine does not know are left unchecked.
    return True


class ParameterValidator:
    """Generic rule engine for schema-declared parameter constraints.

    Parameters without a constraint record are accepted as-is; schemas are not
    closed vocabularies.
    """

    def __init__(self, parameters: Mapping[str, ParameterSpec]):
        self._parameters = parameters

    def validate(self, key: str, value: Any) -> None:
        if value is None:
            raise ValidationError(f"Parameter '{key}' cannot be null")

        spec = self._parameters.get(key)
        if spec is None:
            return

        if isinstance(value, str) and spec.max_length is not None:
            if len(value) > spec.max_length:
                raise ValidationError(
                    f"Parameter '{key}' exceeds maximum length of {spec.max_length}"
                )

        if spec.enum is not None and not _in_enum(value, spec.enum):
            raise ValidationError(
                f"Parameter '{key}' has invalid value {value!r}; "
                f"expected one of {list(spec.enum)!r}"
            )

        if spec.type and not _matches_type(spec.type, value):
            raise ValidationError(f"Parameter '{key}' must be a {spec.type}")

        if isinstance(value, (list, tuple)) and spec.max_items is not None:
            if len(value) > spec.max_items:
                raise ValidationError(
                    f"Parameter '{key}' exceeds maximum of {spec.max_items} items"
                )

        if _is_number(value):
            # Negated inclusive bounds: NaN fails both.
            if spec.min is not None and not spec.min <= value:
                raise ValidationError(f"Parameter '{key}' must be >= {spec.min}")
            if spec.max is not None and not value <= spec.max:
                raise ValidationError(f"Parameter '{key}' must be <= {spec.max}")
