"""HTTP endpoint exposing the fetchurl tool."""

from functools import lru_cache
from typing import Annotated
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.core.error_handler import StructuredLogger
from guarded_fetch.schemas.api import ApiResponse
from guarded_fetch.schemas.fetch import FetchUrlRequest, FetchUrlResponse, is_error_result
from guarded_fetch.tools.fetch_url import FetchUrlTool


router = APIRouter(prefix="/fetch", tags=["fetch"])

logger = StructuredLogger(__name__)


@lru_cache
def get_fetch_tool() -> FetchUrlTool:
    return FetchUrlTool(FetchConfig.from_settings())


@router.post("", response_model=ApiResponse[FetchUrlResponse])
async def fetch_url(
    body: FetchUrlRequest,
    tool: Annotated[FetchUrlTool, Depends(get_fetch_tool)],
) -> ApiResponse[FetchUrlResponse]:
    """Fetch a public HTTPS page and return its text.

    Always answers 200: a failed fetch is reported through ``is_error`` and an
    ``Error: ...`` result string, the same contract the tool gives an agent.
    """
    result = await tool({"url": body.url})
    is_error = is_error_result(result)

    try:
        host = urlsplit(body.url).hostname or ""
    except ValueError:
        host = ""
    logger.info("fetchurl request", host=host, is_error=is_error, chars=len(result))

    return ApiResponse(
        success=not is_error,
        data=FetchUrlResponse(url=body.url, result=result, is_error=is_error),
        message="Fetch failed" if is_error else "Fetch completed",
    )
