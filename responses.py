from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from models import utcnow


def envelope(success: bool, message: str, data=None, error: str | None = None) -> dict:
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if error:
        body["error"] = error
    body["timestamp"] = utcnow().isoformat()
    return body


def success_response(message: str, data=None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(True, message, data))


def error_response(status_code: int, message: str, error: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(False, message, error=error), headers=headers)
