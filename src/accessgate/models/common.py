"""Shared model types."""

from typing import Any

from bson import ObjectId


class PyObjectId(ObjectId):
    """Custom ObjectId type for Pydantic v2."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        """Define Pydantic schema for ObjectId."""
        from pydantic_core import core_schema

        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(ObjectId),
                core_schema.chain_schema(
                    [
                        core_schema.str_schema(),
                        core_schema.no_info_plain_validator_function(cls.validate),
                    ]
                ),
            ],
            # ObjectIds stay native in documents written to Mongo
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda x: str(x),
                when_used="json",
            ),
        )

    @classmethod
    def validate(cls, v: Any) -> ObjectId:
        """Validate and convert to ObjectId."""
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str):
            try:
                return ObjectId(v)
            except Exception as e:
                raise ValueError(f"Invalid ObjectId: {v}") from e
        raise ValueError(f"Invalid ObjectId type: {type(v)}")


def parse_object_id(value: str) -> ObjectId:
    """Parse a path or query string into an ObjectId.

    Raises:
        ValueError: If the string is not a valid ObjectId
    """
    if not ObjectId.is_valid(value):
        raise ValueError(f"Invalid ObjectId: {value}")
    return ObjectId(value)
