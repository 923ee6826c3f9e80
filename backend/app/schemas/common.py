"""
Shared schema building blocks.

JSON payloads use camelCase keys; money travels as a two-decimal string.
"""

from decimal import Decimal
from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")

Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: f"{value:.2f}", return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(CamelModel):
    """Offset pagination metadata."""
    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope for every ledger endpoint."""
    success: bool = True
    data: T


