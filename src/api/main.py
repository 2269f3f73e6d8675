import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api import state
from api.metrics import REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS
from api.routers import ai, auth, calendar, contexts, ops, tasks
from auth.provider import AuthError
from export.csv_utils import CsvFormatError
from llm.errors import LLMError
from smart_todo.errors import ApiError, UnauthenticatedError, ValidationFailed

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Smart Todo Dashboard")

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(contexts.router)
app.include_router(ai.router)
app.include_router(calendar.router)
app.include_router(ops.router)


@app.on_event("startup")
async def startup() -> None:
    state.init_session_store()


@app.on_event("shutdown")
async def shutdown() -> None:
    state.teardown_session_store()


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)

    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=str(response.status_code)).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)
    return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message or "An internal server error occurred."}, status_code=status_code)


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return _error(400, f"Invalid {field or 'request'}: {first.get('msg', 'bad value')}")


@app.exception_handler(ValidationFailed)
async def validation_failed(request: Request, exc: ValidationFailed) -> JSONResponse:
    return _error(400, exc.message)


@app.exception_handler(CsvFormatError)
async def csv_format_error(request: Request, exc: CsvFormatError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(UnauthenticatedError)
async def unauthenticated(request: Request, exc: UnauthenticatedError) -> JSONResponse:
    return _error(401, exc.message)


@app.exception_handler(AuthError)
async def auth_error(request: Request, exc: AuthError) -> JSONResponse:
    return _error(401 if exc.status_code in (401, 403) else 500, exc.message)


@app.exception_handler(ApiError)
async def api_error(request: Request, exc: ApiError) -> JSONResponse:
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 500
    return _error(status, exc.message)


@app.exception_handler(LLMError)
async def llm_error(request: Request, exc: LLMError) -> JSONResponse:
    logger.error(f"Model relay failed: {exc.message}")
    return _error(500, exc.message)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "An internal server error occurred.")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
