"""
Shared pieces of the MongoDB document models.

Documents are read and written as plain dicts by the repositories; the models
exist to give those dicts types. ``PyObjectId`` lets pydantic accept BSON
ObjectIds (or their hex strings) and ``MongoBaseModel`` maps ``_id`` to ``id``.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

ModelT = TypeVar("ModelT", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    """ObjectId field type. Stays an ObjectId in python dumps, a string in JSON."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, value: Any) -> ObjectId:
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        raise ValueError(f"Invalid ObjectId: {value!r}")


class MongoBaseModel(BaseModel):
    """Base for document models; ``id`` is stored as ``_id``."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Dump for insert. An unset ``id`` is left out so the server assigns one."""
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: type[ModelT], data: Optional[dict]) -> Optional[ModelT]:
        """Validate a raw document; ``None`` (nothing found) passes through."""
        if data is None:
            return None
        return cls.model_validate(data)
