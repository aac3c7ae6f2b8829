"""API route for chat prompts.

Uses /api/v1/chat prefix.
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import (
    get_conversation_service,
    get_llm_client,
    get_news_client,
    get_owner,
    get_timezone_client,
    get_weather_client,
)
from src.api.schemas import ChatRequest, ChatResponse
from src.config import AppConfig, get_config
from src.services.chat_service import ChatService
from src.services.conversation_service import ConversationService
from src.services.identity import Owner
from src.services.llm_client import CompletionClient
from src.services.utility_clients import NewsClient, TimezoneClient, WeatherClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _get_service(
    conversations: ConversationService = Depends(get_conversation_service),
    llm: CompletionClient = Depends(get_llm_client),
    weather: WeatherClient = Depends(get_weather_client),
    news: NewsClient = Depends(get_news_client),
    timezone: TimezoneClient = Depends(get_timezone_client),
    config: AppConfig = Depends(get_config),
) -> ChatService:
    """Dependency injector for ChatService."""
    return ChatService(
        conversations,
        llm,
        weather,
        news,
        timezone,
        history_window=config.chat.history_window,
    )


@router.post("", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    owner: Owner | None = Depends(get_owner),
    service: ChatService = Depends(_get_service),
) -> ChatResponse:
    """Answer a prompt and store the turn for the caller.

    Anonymous callers get a response with ``conversation_id: null``.

    Raises:
        ValidationError: Empty prompt (400).
        ForbiddenError / NotFoundError: conversation_id not usable (403/404).
        UpstreamUnavailableError: LLM failure (502).
    """
    result = await service.chat(payload.prompt, owner, payload.conversation_id)
    return ChatResponse(
        response=result.response,
        conversation_id=result.conversation_id,
        title=result.title,
        intents=result.intents,
        direct=result.direct,
    )
