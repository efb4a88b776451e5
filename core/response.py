"""
Error response body shared by every handler.

Success bodies are endpoint specific (see application.dtos); failures all
share this shape so clients can rely on `error` carrying the message.
"""
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_serializer


class ErrorBody(BaseModel):
    error: str
    code: int
    type: str = "BusinessError"
    field: Optional[str] = None
    details: Optional[dict] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> ErrorBody:
    """
    Build an error body.

    Args:
        code: business code
        message: human readable message, returned verbatim as `error`
        error_type: exception family
        details: extra context
        field: offending input field
        request_id: correlation id
    """
    return ErrorBody(
        error=message,
        code=code,
        type=error_type,
        details=details,
        field=field,
        request_id=request_id,
    )
