from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from guarded_fetch import __version__
from guarded_fetch.api.v1.api import api_router
from guarded_fetch.core.config import get_settings
from guarded_fetch.core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from guarded_fetch.core.middleware import CorrelationIdMiddleware


setup_logging()

app = FastAPI(
    title=f"{get_settings().APP_NAME} API",
    description="Fetch public HTTPS pages as bounded plain text, with SSRF guards",
    version=__version__,
)

# Registered last so it runs first and sets the ID before any handler logs
app.add_middleware(ExceptionNormalizationMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.add_exception_handler(StarletteHTTPException, global_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, global_exception_handler)  # type: ignore[arg-type]

app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("guarded_fetch.main:app", host="127.0.0.1", port=8000, reload=True)
