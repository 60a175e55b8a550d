from fastapi import HTTPException

from app.services.progression.errors import ProgressionError


def error_detail(exc: ProgressionError):
    # locked sections carry a message the frontend shows as is
    if exc.detail is None:
        return exc.code
    return {"code": exc.code, "message": exc.detail}


def as_http_exception(exc: ProgressionError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=error_detail(exc))
