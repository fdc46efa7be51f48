from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    # a plain dict carries the empty-shaped payload of an insufficient-data result
    data: T | dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
