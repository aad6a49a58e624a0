"""Contracts - Pydantic-based validation for tool inputs and agent input/output."""

from __future__ import annotations

from typing import Any, get_origin

from jsonschema import Draft7Validator
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..types import ToolSchema


class PydanticSchema:
    """ToolSchema implementation backed by a Pydantic model or any type a TypeAdapter accepts."""

    def __init__(self, model: Any) -> None:
        self._model = model
        # Parameterized generics such as list[int] pass isinstance(..., type) on 3.10.
        self._is_model = (
            get_origin(model) is None and isinstance(model, type) and issubclass(model, BaseModel)
        )
        self._adapter = None if self._is_model else TypeAdapter(model)

    @property
    def model(self) -> Any:
        return self._model

    @property
    def name(self) -> str:
        return getattr(self._model, "__name__", None) or str(self._model)

    def parse(self, raw: Any) -> Any:
        try:
            if self._is_model:
                if isinstance(raw, str):
                    return self._model.model_validate_json(raw)
                return self._model.model_validate(raw)
            return self._adapter.validate_python(raw)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Value does not match {self.name}: {e}", errors=e.errors(), cause=e
            ) from e

    def is_valid(self, raw: Any) -> bool:
        try:
            self.parse(raw)
        except ValidationError:
            return False
        return True

    def to_json_schema(self) -> dict:
        if self._is_model:
            return self._model.model_json_schema()
        return self._adapter.json_schema()

    def field_names(self) -> list[str]:
        if self._is_model:
            return list(self._model.model_fields)
        return []

    def __repr__(self) -> str:
        return f"PydanticSchema({self.name})"


class DictSchema:
    """ToolSchema backed by a raw JSON Schema dict, for contracts described outside Python."""

    def __init__(self, schema: dict[str, Any], name: str = "object") -> None:
        self._schema = schema
        self.name = schema.get("title", name)
        self._validator = Draft7Validator(schema)

    def parse(self, raw: Any) -> Any:
        # Omitted tool arguments stand for an empty object.
        if raw is None and self._schema.get("type") == "object":
            raw = {}
        errors = sorted(self._validator.iter_errors(raw), key=lambda item: list(item.path))
        if not errors:
            return raw
        details = [
            {"loc": tuple(error.path), "msg": error.message, "type": error.validator}
            for error in errors
        ]
        raise ValidationError(
            f"Value does not match {self.name}: "
            + "; ".join(f"{'.'.join(str(p) for p in d['loc']) or '$'}: {d['msg']}" for d in details),
            errors=details,
        )

    def is_valid(self, raw: Any) -> bool:
        try:
            self.parse(raw)
        except ValidationError:
            return False
        return True

    def to_json_schema(self) -> dict:
        return self._schema

    def field_names(self) -> list[str]:
        return list(self._schema.get("properties", {}))


def as_schema(contract: Any) -> ToolSchema | None:
    """Coerce a model class, type, JSON Schema dict or ToolSchema into a ToolSchema."""
    if contract is None:
        return None
    if isinstance(contract, (PydanticSchema, DictSchema)):
        return contract
    if isinstance(contract, dict):
        return DictSchema(contract)
    if isinstance(contract, ToolSchema) and not isinstance(contract, type):
        return contract
    return PydanticSchema(contract)


def dump_value(value: Any) -> Any:
    """Plain-data form of a validated value (models become dicts)."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [dump_value(item) for item in value]
    if isinstance(value, dict):
        return {key: dump_value(item) for key, item in value.items()}
    return value
