"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the chatbridge REST API:
guest sessions, conversation history, share snapshots, chat, utility
lookups and feedback. Field aliases keep the camelCase names the web
front end sends (guestToken, expiresDays, ...).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# Guest session schemas


class GuestCreateResponse(BaseModel):
    """Response schema for a newly issued guest session."""

    token: str
    id: str
    expires_at: str


class GuestVerifyRequest(BaseModel):
    """Request schema for verifying a guest token."""

    token: str = Field(..., min_length=1)


class GuestVerifyResponse(BaseModel):
    """Response schema for a verified guest token."""

    valid: bool
    id: str
    expires_at: str
    chat_title: str | None = None


class GuestMigrateRequest(BaseModel):
    """Request schema for moving guest conversations to a user."""

    model_config = ConfigDict(populate_by_name=True)

    guest_token: str = Field(..., min_length=1, alias="guestToken")
    user_email: str | None = Field(None, alias="userEmail")


class GuestMigrateResponse(BaseModel):
    """Response schema for a completed migration."""

    migrated: int


# Conversation schemas


class MessageSchema(BaseModel):
    """One message of a conversation or snapshot."""

    text: str
    sender: Literal["user", "ai"]
    timestamp: str


class ConversationSummary(BaseModel):
    """Listing entry for a conversation."""

    id: str
    title: str
    snippet: str
    pinned: bool
    message_count: int
    created_at: str
    updated_at: str
    last_message_at: str | None = None


class ConversationListResponse(BaseModel):
    """Response schema for the history listing (pinned first)."""

    conversations: list[ConversationSummary]
    total: int


class ConversationUpdate(BaseModel):
    """Request schema for rename / pin / soft delete."""

    title: str | None = Field(None, max_length=255)
    pinned: bool | None = None
    is_deleted: bool | None = None


class ConversationResponse(BaseModel):
    """Response schema for a conversation record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    pinned: bool
    is_deleted: bool
    deleted_at: str | None = None
    created_at: str
    updated_at: str


class ConversationDetailResponse(BaseModel):
    """Response schema for a conversation with its messages."""

    id: str
    title: str
    pinned: bool
    created_at: str
    updated_at: str
    messages: list[MessageSchema]


# Share schemas


class ShareCreateRequest(BaseModel):
    """Request schema for creating a share snapshot.

    Either ``messages`` (a client-side copy, repaired leniently) or
    ``conversationId`` (a stored conversation the caller owns) is required.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Any] | None = None
    conversation_id: str | None = Field(None, alias="conversationId")
    title: str | None = Field(None, max_length=255)
    expires_days: int | None = Field(None, alias="expiresDays")
    is_public: bool = Field(True, alias="isPublic")


class ShareCreateResponse(BaseModel):
    """Response schema for a created snapshot."""

    id: str
    token: str
    expires_at: str
    is_public: bool


class ShareSnapshotResponse(BaseModel):
    """Response schema for reading a snapshot."""

    id: str
    title: str
    messages: list[MessageSchema]
    created_at: str
    expires_at: str
    is_public: bool
    view_count: int


# Chat schemas


class ChatRequest(BaseModel):
    """Request schema for a chat prompt."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    conversation_id: str | None = Field(None, alias="conversationId")


class ChatResponse(BaseModel):
    """Response schema for a chat prompt.

    ``conversation_id`` is null for anonymous requests (nothing stored).
    """

    response: str
    conversation_id: str | None = None
    title: str | None = None
    intents: list[str] = []
    direct: bool = False


# Utility schemas


class WeatherResponse(BaseModel):
    """Current weather for a city."""

    city: str
    temp: float
    desc: str
    icon: str


class NewsArticle(BaseModel):
    """Normalized news article."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    source: str = "Unknown"
    publishedAt: str | None = None
    urlToImage: str | None = None


class NewsResponse(BaseModel):
    """News lookup result."""

    success: bool
    articles: list[NewsArticle]
    totalResults: int
    query: str
    timestamp: str


class NewsSearchRequest(BaseModel):
    """Request schema for an article search."""

    model_config = ConfigDict(populate_by_name=True)

    query: str | None = None
    from_date: str | None = Field(None, alias="from")
    to_date: str | None = Field(None, alias="to")
    sources: str | None = None
    language: str = "en"
    sort_by: str = Field("publishedAt", alias="sortBy")
    page_size: int = Field(20, ge=1, le=100, alias="pageSize")


# Feedback schemas


class FeedbackCreate(BaseModel):
    """Request schema for submitting feedback."""

    feedback: str = Field(..., max_length=5000)


class FeedbackResponse(BaseModel):
    """Response schema for a feedback entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_email: str
    feedback: str
    status: str
    created_at: str


class FeedbackListResponse(BaseModel):
    """Response schema for the admin feedback listing."""

    feedback: list[FeedbackResponse]
    total: int
