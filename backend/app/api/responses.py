from collections.abc import Callable
import logging
from typing import Any, TypeVar

from fastapi import HTTPException, status

from app.schemas.common import Envelope
from app.services.results import EngineResult, InsufficientData, Ok


logger = logging.getLogger("fintrack.api")

T = TypeVar("T")


def unwrap(result: EngineResult[Any], render: Callable[[Any], T]) -> Envelope[T]:
    """Render an engine result as a response envelope.

    Insufficient data is still a successful response: the empty-shaped payload
    goes out with the reason under ``message``.
    """
    if isinstance(result, Ok):
        return Envelope(data=render(result.data))
    if isinstance(result, InsufficientData):
        return Envelope(data={**result.data, "message": result.reason})
    logger.error("Analytics failure: %s", result.cause)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.cause)
