"""Success/error envelopes shared by the credit and company routers."""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from services.errors import CreditServiceError


def success_response(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return payload


async def credit_service_error_handler(request: Request, exc: CreditServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
