"""Shared Pydantic data models for the sales messaging gateway."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class MessageKind(str, Enum):
    TEXT = "text"
    CAPTION = "caption"
    BUTTON = "button"


class Intent(str, Enum):
    DATA_REQUEST = "data_request"
    HELP = "help"
    CANCEL = "cancel"
    SELECTION_REPLY = "selection_reply"
    UNRECOGNIZED = "unrecognized"


class SessionState(str, Enum):
    AWAITING_SELECTION = "awaiting_selection"


class StatusToken(str, Enum):
    """Textual result of handling one webhook delivery.

    Every token is returned with HTTP 200 so the provider never redelivers.
    """

    MESSAGE_PROCESSED = "MESSAGE_PROCESSED"
    STATUS_PROCESSED = "STATUS_PROCESSED"
    ACK_PROCESSED = "ACK_PROCESSED"
    ERROR_PROCESSED = "ERROR_PROCESSED"
    UNHANDLED_TYPE = "UNHANDLED_TYPE"
    NO_DATA = "NO_DATA"
    INVALID_JSON = "INVALID_JSON"
    UNAUTHORIZED = "UNAUTHORIZED"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class ConversationOutcome(str, Enum):
    REGISTRATION_REQUIRED = "registration_required"
    RATE_LIMITED = "rate_limited"
    NO_ITEMS = "no_items"
    OPTIONS_LISTED = "options_listed"
    OPTION_SELECTED = "option_selected"
    SELECTION_RETRY = "selection_retry"
    CANCELLED = "cancelled"
    HELP = "help"
    UNRECOGNIZED = "unrecognized"
    SESSION_EXPIRED = "session_expired"
    ERROR = "error"


class AuditEventType(str, Enum):
    MESSAGE_RECEIVED = "message_received"
    RATE_LIMITED = "rate_limited"
    UNREGISTERED_SENDER = "unregistered_sender"
    OPTION_ACCESSED = "option_accessed"
    WEBHOOK_REJECTED = "webhook_rejected"
    PROVIDER_STATUS = "provider_status"
    PROVIDER_ERROR = "provider_error"
    SEND_FAILURE = "send_failure"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Directory Models ---


class Identity(BaseModel):
    """A registered person, as returned by the identity directory."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    role: str
    contact_handle: str  # canonical sender id
    email: str | None = None


class Option(BaseModel):
    """One selectable item offered to a sender."""

    model_config = ConfigDict(frozen=True)

    display_label: str
    record_count: int = Field(default=0, ge=0)
    last_updated_at: datetime | None = None
    access_uri: str
    ordinal_position: int = Field(default=0, ge=0)


# --- Conversation Models ---


def _now() -> datetime:
    return datetime.now(UTC)


class InboundEvent(BaseModel):
    """Normalized inbound chat message extracted from a provider webhook."""

    model_config = ConfigDict(frozen=True)

    raw_sender_id: str
    text: str
    message_kind: MessageKind = MessageKind.TEXT
    external_message_id: str | None = None
    received_at: datetime = Field(default_factory=_now)
    provider_metadata: dict[str, object] = Field(default_factory=dict)


class RateWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender_id: str
    window_started_at: float  # epoch seconds
    count: int = Field(ge=0)


class ConversationSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender_id: str
    state: SessionState = SessionState.AWAITING_SELECTION
    options: list[Option] = Field(min_length=1)
    created_at: float  # epoch seconds


class OutboundReply(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_sender_id: str
    body: str
    was_sent: bool
    outcome: ConversationOutcome


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    sender_id: str | None = None
    identity_id: str | None = None
    action: str
    result: str  # "success" | "failure" | "blocked" | "ignored"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
