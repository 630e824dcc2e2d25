from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NoReturn, Self

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from pagewalk.utils.exceptions import ImmutableError, MalformedResponse
from pagewalk.utils.types import RecordData


def _freeze(value: Any) -> Any:
    """Nested JSON objects become Records and arrays become tuples."""
    if isinstance(value, BaseModel):
        return value
    if isinstance(value, Mapping):
        return Record.model_validate(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class Record(BaseModel):
    """Read-only wrapper around one decoded JSON object.

    Fields are readable as attributes (``record.name``) or by key
    (``record["name"]``). Keys that collide with method names (``items``,
    ``keys``, ``get``...) are only reachable by key. Subclasses may declare
    typed fields, which are validated when the record is decoded.

    Immutability is deep: nested objects are Records and nested arrays are
    tuples. ``to_dict`` gives the plain JSON shape back.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    @model_validator(mode="after")
    def freeze_nested_values(self) -> Self:
        # __setattr__ is refused; write through __dict__
        for name in type(self).model_fields:
            self.__dict__[name] = _freeze(self.__dict__[name])
        extra = self.__pydantic_extra__ or {}
        for name, value in extra.items():
            extra[name] = _freeze(value)
        return self

    @classmethod
    def from_json(cls, item: Any) -> Self:
        """Decode one JSON object into a record.

        Raises:
            MalformedResponse: If the item is not an object or fails validation
        """
        if not isinstance(item, Mapping):
            raise MalformedResponse(
                f"Expected a JSON object, got {type(item).__name__}"
            )
        try:
            return cls.model_validate(item)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid {cls.__name__} data: {e}") from e

    # --- Read access ---

    def _fields(self) -> RecordData:
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(self.__pydantic_extra__ or {})
        return data

    def __getitem__(self, key: str) -> Any:
        return self._fields()[key]

    def __contains__(self, key: object) -> bool:
        return key in self._fields()

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields().get(key, default)

    def keys(self) -> list[str]:
        return list(self._fields())

    def values(self) -> list[Any]:
        return list(self._fields().values())

    def items(self) -> list[tuple[str, Any]]:
        return list(self._fields().items())

    def to_dict(self) -> RecordData:
        """Return the record's data as a plain dict of dicts and lists."""
        return {key: _thaw(value) for key, value in self._fields().items()}

    # --- Mutation is refused ---

    def _refuse(self) -> NoReturn:
        raise ImmutableError(f"{type(self).__name__} records are immutable")

    def __setattr__(self, name: str, value: Any) -> None:
        self._refuse()

    def __delattr__(self, name: str) -> None:
        self._refuse()

    def __setitem__(self, key: str, value: Any) -> None:
        self._refuse()

    def __delitem__(self, key: str) -> None:
        self._refuse()

    def set(self, key: str, value: Any) -> NoReturn:
        self._refuse()

    def unset(self, key: str) -> NoReturn:
        self._refuse()
