from fastapi import APIRouter, Depends, Request

from jiji.core.config import settings
from jiji.core.logging import get_request_id
from jiji.core.query_validation import extract_query, is_json_content_type, read_body_limited
from jiji.core.rate_limit import enforce_rate_limit
from jiji.schemas.ask import AskRequest, AskResponse, ErrorResponse
from jiji.services.ask_service import AskService

router = APIRouter(tags=["Ask"])


def get_ask_service(request: Request) -> AskService:
    return request.app.state.ask_service


@router.post(
    "/ask-jiji",
    response_model=AskResponse,
    dependencies=[Depends(enforce_rate_limit)],
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": AskRequest.model_json_schema()}},
        }
    },
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query"},
        401: {"model": ErrorResponse, "description": "Missing or invalid credential"},
        413: {"model": ErrorResponse, "description": "Request body too large"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Misconfiguration or upstream failure"},
        504: {"model": ErrorResponse, "description": "Upstream timeout"},
    },
)
async def ask_jiji(
    request: Request,
    service: AskService = Depends(get_ask_service),
) -> AskResponse:
    """Answer a free-text query with related learning resources.

    The body is read here rather than declared as a model so that malformed
    JSON and non-string queries produce the standard ``{"error": ...}`` body
    instead of FastAPI's 422, and only after the rate check has run. Bodies
    that are not declared as JSON are left unread and treated as carrying no
    query.

    Returns:
        AskResponse: requestId, templated answer and up to five resources.
    """
    raw_query = None
    if is_json_content_type(request.headers.get("content-type")):
        body = await read_body_limited(request, max_bytes=settings.app.max_body_bytes)
        raw_query = extract_query(body)

    request_id = getattr(request.state, "request_id", None) or get_request_id() or ""
    return await service.ask(
        raw_query,
        authorization=request.headers.get("authorization"),
        request_id=request_id,
    )
