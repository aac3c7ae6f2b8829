"""Chat orchestration: route, gather live context, call the LLM, persist.

Utility lookups only enrich the prompt. Any failure there is logged and
skipped, and the request falls back to a plain LLM call. Anonymous
requests (no owner) get an answer but nothing is stored.

ConversationService is synchronous; store calls run in worker threads
through asyncio.to_thread, never on the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass

from src.db.models import Sender, utc_now_iso
from src.errors.domain import DomainError, ValidationError
from src.services import prompt_router
from src.services.conversation_service import ConversationService
from src.services.identity import Owner
from src.services.llm_client import CompletionClient, to_llm_messages
from src.services.prompt_router import Intent
from src.services.utility_clients import NewsClient, TimezoneClient, WeatherClient

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 8000


@dataclass
class ChatResult:
    """Response to a single chat prompt."""

    response: str
    conversation_id: str | None
    title: str | None
    intents: list[str]
    direct: bool = False


class ChatService:
    """Answer a prompt and record the turn for its owner.

    Args:
        conversations: Conversation store for history and persistence.
        llm: Completion client.
        weather: Weather lookup client.
        news: News lookup client.
        timezone: Timezone helper.
        history_window: Prior messages sent to the LLM.
    """

    def __init__(
        self,
        conversations: ConversationService,
        llm: CompletionClient,
        weather: WeatherClient,
        news: NewsClient,
        timezone: TimezoneClient,
        history_window: int = 10,
    ) -> None:
        self._conversations = conversations
        self._llm = llm
        self._weather = weather
        self._news = news
        self._timezone = timezone
        self._history_window = history_window

    async def chat(
        self,
        prompt: str,
        owner: Owner | None,
        conversation_id: str | None = None,
    ) -> ChatResult:
        """Answer a prompt, creating or continuing the owner's conversation.

        Raises:
            ValidationError: Empty or oversized prompt.
            NotFoundError / ForbiddenError: conversation_id not usable by owner.
            UpstreamUnavailableError: LLM failure.
            StoreUnavailableError: Persistence failure.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required.")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise ValidationError(f"Prompt exceeds {MAX_PROMPT_LENGTH} characters.")

        # Continuing requires an owner; anonymous callers always start fresh.
        existing_id = None
        if owner is not None and conversation_id:
            existing_id = await asyncio.to_thread(
                self._owned_conversation_id, conversation_id, owner
            )

        decision = prompt_router.route(prompt)
        if decision.direct_time:
            response = prompt_router.direct_time_response(self._timezone.primary_time())
        else:
            context = await self._gather_context(decision)
            history = []
            if existing_id is not None:
                history = await asyncio.to_thread(
                    self._conversations.recent_messages, existing_id, self._history_window
                )
            response = await self._llm.complete(
                prompt_router.build_system_prompt(context),
                to_llm_messages(history, prompt),
            )

        intents = sorted(i.value for i in decision.intents)
        if owner is None:
            return ChatResult(
                response=response,
                conversation_id=None,
                title=None,
                intents=intents,
                direct=decision.direct_time,
            )

        turn = [
            {"text": prompt, "sender": Sender.user.value, "timestamp": utc_now_iso()},
            {"text": response, "sender": Sender.ai.value, "timestamp": utc_now_iso()},
        ]
        stored_id, title = await asyncio.to_thread(self._store_turn, owner, existing_id, turn)

        return ChatResult(
            response=response,
            conversation_id=stored_id,
            title=title,
            intents=intents,
            direct=decision.direct_time,
        )

    def _owned_conversation_id(self, conversation_id: str, owner: Owner) -> str:
        conversation = self._conversations.get_for_owner(
            conversation_id, owner, action="continue this conversation"
        )
        return conversation.id

    def _store_turn(
        self, owner: Owner, existing_id: str | None, turn: list[dict]
    ) -> tuple[str, str | None]:
        if existing_id is not None:
            conversation = self._conversations.append_turn(existing_id, turn)
        else:
            conversation = self._conversations.create(owner, turn)
        return conversation.id, conversation.title

    async def _gather_context(self, decision: prompt_router.RouteDecision) -> list[str]:
        blocks: list[str] = []
        if decision.wants(Intent.time):
            blocks.append(prompt_router.time_context(self._timezone.primary_time()))
        if decision.wants(Intent.weather) and decision.city:
            try:
                weather = await self._weather.current(decision.city)
                blocks.append(prompt_router.weather_context(weather))
            except DomainError as e:
                logger.info("Skipping weather context for %r: %s", decision.city, e.message)
        if decision.wants(Intent.news):
            try:
                news = await self._news.headlines()
                blocks.append(prompt_router.news_context(news))
            except DomainError as e:
                logger.info("Skipping news context: %s", e.message)
        return blocks
