"""
Response envelope builders.

Every endpoint answers with the same shape:

    {success, data?, error?: {message, code, details?},
     metadata: {timestamp, next_step?, recommendation?, ...}}
"""

from datetime import datetime, timezone
from typing import Any

from checkout.api.schemas import ApiResponse, ErrorBody, ResponseMetadata


def _metadata(next_step: str | None, recommendation: str | None, extra: dict[str, Any]) -> ResponseMetadata:
    return ResponseMetadata(
        timestamp=datetime.now(timezone.utc),
        next_step=next_step,
        recommendation=recommendation,
        **extra,
    )


def success(
    data: Any,
    next_step: str = "CONTINUE",
    recommendation: str = "Operation completed successfully",
    **extra: Any,
) -> ApiResponse:
    return ApiResponse(
        success=True,
        data=data,
        metadata=_metadata(next_step, recommendation, extra),
    )


def failure(
    message: str,
    code: str,
    details: dict[str, Any] | None = None,
    next_step: str = "RETRY_LATER",
    recommendation: str = "Please try again later or contact support",
    **extra: Any,
) -> ApiResponse:
    return ApiResponse(
        success=False,
        error=ErrorBody(message=message, code=code, details=details or None),
        metadata=_metadata(next_step, recommendation, extra),
    )
