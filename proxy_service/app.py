"""
FastAPI MongoDB request proxy.

One endpoint accepts a JSON description of a MongoDB operation, runs it
against the caller-supplied connection string and returns the result:

- CORS headers on every response, 204 for preflight
- 405 for anything but POST / OPTIONS
- request validation and database-name resolution before connecting
- one dedicated client per request, always closed
- 500 for downstream failures, details hidden in production
"""

from fastapi import Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import HOST, PORT, PROXY_PATH, VERSION, Settings, get_settings
from db_executor import run_operation
from logger import logger
from request_validator import (
    InvalidRequest,
    parse_body,
    resolve_database_name,
    validate_request,
)
from response_formatter import error_envelope, success_envelope

INTERNAL_ERROR = "Internal Server Error processing MongoDB request"

ALLOWED_METHODS = "POST, OPTIONS"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
    "Access-Control-Allow-Headers": "Content-Type",
}


app = FastAPI(title="MongoDB Request Proxy", version=VERSION)


@app.middleware("http")
async def add_cors_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed(request: Request, exc: StarletteHTTPException):
    """Any method other than POST / OPTIONS on the proxy path gets a 405 envelope."""
    if exc.status_code != 405 or request.url.path != PROXY_PATH:
        return await http_exception_handler(request, exc)
    return JSONResponse(
        status_code=405,
        content=error_envelope(f"Method {request.method} Not Allowed"),
        headers={"Allow": ALLOWED_METHODS},
    )


# ---------------------- ENDPOINTS ----------------------


@app.options(PROXY_PATH)
def preflight():
    return Response(status_code=204)


@app.post(PROXY_PATH)
async def proxy(request: Request, settings: Settings = Depends(get_settings)):
    """validate → resolve database → connect → dispatch → respond → close."""
    try:
        payload = parse_body(await request.body())
        proxy_request = validate_request(payload)
        database_name = resolve_database_name(
            proxy_request.target_uri,
            proxy_request.database_name,
        )
        # pymongo blocks; keep it off the event loop
        result = await run_in_threadpool(
            run_operation, proxy_request, database_name, settings,
        )
        return JSONResponse(content=success_envelope(result))
    except InvalidRequest as e:
        logger.warning("Rejected proxy request: %s", e)
        return JSONResponse(status_code=400, content=error_envelope(str(e)))
    except Exception as e:
        logger.exception("MongoDB operation failed: %s", e)
        details = None if settings.is_production else str(e)
        return JSONResponse(
            status_code=500,
            content=error_envelope(INTERNAL_ERROR, details),
        )


@app.get("/health")
def health_check():
    return {"status": "ok", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)
