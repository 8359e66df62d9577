"""Response envelope shared by every route."""

from typing import Generic, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Successful payloads arrive as ``{"data": ...}``; errors keep FastAPI's ``{"detail": ...}``."""

    data: DataT
