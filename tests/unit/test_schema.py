"""Unit tests for the schema adapter."""

from __future__ import annotations

import pytest
from pydantic import BaseModel, TypeAdapter, ValidationError

from motif_flow.errors import SchemaValidationError
from motif_flow.schema import Schema, as_schema


class Email(BaseModel):
    email: str


class Signup(BaseModel):
    email: str
    newsletter: bool = False


class Even:
    """Hand-written validator exposing `validate`."""

    def validate(self, value):
        if not isinstance(value, int) or value % 2:
            raise ValueError(f"{value!r} is not an even integer")
        return value


def test_as_schema_none_means_no_schema() -> None:
    assert as_schema(None) is None


def test_as_schema_reuses_existing_schema() -> None:
    schema = Schema(int)
    assert as_schema(schema) is schema


def test_model_schema_normalises_dicts() -> None:
    value = as_schema(Email).validate({"email": "ada@example.com"})
    assert isinstance(value, Email)
    assert value.email == "ada@example.com"


def test_model_schema_accepts_instances_of_other_models() -> None:
    value = as_schema(Email).validate(Signup(email="ada@example.com", newsletter=True))
    assert isinstance(value, Email)
    assert value.email == "ada@example.com"


def test_plain_types_and_type_adapters() -> None:
    assert as_schema(int).validate("3") == 3
    assert as_schema(TypeAdapter(list[int])).validate(["1", 2]) == [1, 2]


def test_validation_failure_is_wrapped() -> None:
    with pytest.raises(SchemaValidationError) as excinfo:
        as_schema(Email).validate({"mail": "x"}, label="input of step 'a'")

    err = excinfo.value
    assert "input of step 'a'" in str(err)
    assert err.errors and err.errors[0]["loc"] == ("email",)
    assert isinstance(err.__cause__, ValidationError)
    assert isinstance(err, ValueError)


def test_custom_validator_objects() -> None:
    schema = as_schema(Even())

    assert schema.validate(4) == 4
    assert schema.is_valid(3) is False
    assert schema.json_schema() is None
    with pytest.raises(SchemaValidationError, match="not an even integer"):
        schema.validate(3)


def test_json_schema_for_models() -> None:
    schema = as_schema(Email).json_schema()
    assert schema is not None
    assert "email" in schema["properties"]
