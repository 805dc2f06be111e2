"""The JSON envelope every HTTP endpoint returns.

    {"code": 0, "message": "success", "data": ..., "timestamp": ..., "request_id": ...}

`code` is 0 on success and an AppError code otherwise. On input errors
`data` is `{"errors": [{"field": ..., "message": ...}, ...]}`.
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request

from src.qc_common.datetime_utils import to_iso, utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: to_iso(utc_now()))
    request_id: str = Field(default_factory=new_request_id)


def request_id_of(request: Request) -> str:
    """The id RequestLogMiddleware stored on the request, or a fresh one."""
    return getattr(request.state, "request_id", None) or new_request_id()


def success_response(
    request: Request, data: Any = None, message: str = "success"
) -> ApiResponse:
    return ApiResponse(data=data, message=message, request_id=request_id_of(request))


def error_response(request: Request, code: int, message: str, data: Any = None) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=data, request_id=request_id_of(request))
