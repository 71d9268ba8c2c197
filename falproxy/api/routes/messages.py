"""Anthropic-compatible Messages endpoint."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from falproxy.api.dependencies import APIKeyDep, MessagesServiceDep
from falproxy.core.logging import get_logger
from falproxy.models.messages import MessageResponse
from falproxy.models.requests import MessageCreateParams


logger = get_logger(__name__)
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.post("/messages", response_model=None)
async def create_message(
    request: MessageCreateParams,
    api_key: APIKeyDep,
    service: MessagesServiceDep,
) -> MessageResponse | StreamingResponse:
    """
    Create a message through the fal.ai backend.

    The backend reply is received in full before anything is sent, so
    backend failures are reported as JSON errors in both modes.

    Args:
        request: Message request matching Anthropic's Messages API format
        api_key: Caller's fal.ai key, forwarded to the backend
        service: Request orchestration service

    Returns:
        Message response or an SSE stream of message events
    """
    completion = await service.complete(request, api_key)

    if request.stream:
        return StreamingResponse(
            service.stream_message(completion),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return service.build_message(completion)
