"""Schema adapter.

The engine never compiles schemas itself. It accepts anything that can
validate a value and wraps it in a `Schema`:

- a pydantic model class, or any type pydantic understands (`int`,
  `dict[str, int]`, a `TypedDict`, ...), validated through `TypeAdapter`
- a ready-made `pydantic.TypeAdapter`
- any object exposing `validate(value)` that returns the normalized value and
  raises `ValueError` when the value is invalid
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from motif_flow.errors import SchemaValidationError


@runtime_checkable
class SupportsValidate(Protocol):
    def validate(self, value: Any) -> Any: ...


class Schema:
    """Uniform validate/json_schema surface over a user-supplied schema."""

    __slots__ = ("source", "_adapter", "_validator")

    def __init__(self, source: Any) -> None:
        self.source = source
        self._adapter: TypeAdapter[Any] | None = None
        if isinstance(source, TypeAdapter):
            self._adapter = source
        elif isinstance(source, type) or not isinstance(source, SupportsValidate):
            self._adapter = TypeAdapter(source)

        if self._adapter is not None:
            self._validator = self._validate_with_adapter
        else:
            self._validator = source.validate

    def _validate_with_adapter(self, value: Any) -> Any:
        assert self._adapter is not None
        if isinstance(value, BaseModel):
            # Outputs of one step are often models of another; retry on their fields.
            try:
                return self._adapter.validate_python(value)
            except ValidationError:
                value = value.model_dump()
        return self._adapter.validate_python(value)

    def validate(self, value: Any, *, label: str = "value") -> Any:
        """Return the normalized value or raise `SchemaValidationError`."""

        try:
            return self._validator(value)
        except SchemaValidationError:
            raise
        except ValidationError as e:
            raise SchemaValidationError(
                f"Invalid {label}: {e.error_count()} validation error(s)",
                errors=e.errors(include_url=False),
            ) from e
        except (TypeError, ValueError) as e:
            raise SchemaValidationError(
                f"Invalid {label}: {e}", errors=[{"type": "value_error", "msg": str(e)}]
            ) from e

    def is_valid(self, value: Any) -> bool:
        try:
            self.validate(value)
        except SchemaValidationError:
            return False
        return True

    def json_schema(self) -> dict[str, Any] | None:
        if self._adapter is None:
            return None
        try:
            return self._adapter.json_schema()
        except Exception:  # noqa: BLE001 (not every type has a JSON schema)
            return None

    def __repr__(self) -> str:
        return f"Schema({self.source!r})"


def as_schema(source: Any) -> Schema | None:
    """Wrap `source` in a `Schema`; `None` means "no schema declared"."""

    if source is None:
        return None
    if isinstance(source, Schema):
        return source
    return Schema(source)
