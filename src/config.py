"""Immutable gateway configuration.

Configuration is built once at startup (usually via ``GatewayConfig.from_env``)
and passed explicitly into the rate limiter, session store, classifier,
dispatcher and ingestion layer. Nothing reads the environment after that.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
)

DEFAULT_COMMANDS_PATH = "config/commands.json"

_HTTP_URL = TypeAdapter(HttpUrl)


class ConfigError(Exception):
    """Raised when gateway configuration is missing or invalid."""


class RetryConfig(BaseModel):
    """Outbound retry policy. Zero retries keeps sends single-shot."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=0, ge=0, le=5)
    backoff_cap_seconds: float = Field(default=30.0, gt=0)


class CommandVocabulary(BaseModel):
    """Keyword sets used to classify inbound text, plus the option alias table."""

    model_config = ConfigDict(frozen=True)

    data_request_phrases: tuple[str, ...] = (
        "need to see data",
        "show me data",
        "my data",
        "data sheets",
        "sheets",
        "show sheets",
        "view data",
        "access data",
        "see my sheets",
        "get data",
        "data access",
        "personal data",
        "my sheets",
    )
    data_request_exact: tuple[str, ...] = ("data",)
    help_keywords: tuple[str, ...] = ("help", "assist", "commands", "what can you do")
    cancel_keywords: tuple[str, ...] = ("cancel",)
    aliases: dict[str, str] = Field(default_factory=lambda: {
        "order": "orders",
        "visit": "visits",
        "site": "site prescriptions",
        "prescription": "site prescriptions",
        "ihb": "ihb registrations",
        "partner": "partner updates",
        "demand": "demand generation",
    })

    @classmethod
    def from_file(cls, path: str) -> CommandVocabulary:
        """Load a vocabulary from a JSON file.

        Raises:
            ConfigError: If the file is missing, not JSON, or has bad fields.
        """
        file = Path(path)
        if not file.exists():
            raise ConfigError(f"Command vocabulary not found: {path}")
        try:
            raw = json.loads(file.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in command vocabulary: {e}") from e
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid command vocabulary: {e}") from e


class GatewayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Webhook source validation
    expected_product_id: str
    expected_phone_id: str

    # Outbound provider
    send_url: str
    api_key: str
    provider_api_base: str = "https://api.maytapi.com/api"
    send_timeout_seconds: float = Field(default=30.0, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    # Rate limiting and sessions
    max_messages_per_window: int = Field(default=10, ge=1)
    window_length_seconds: int = Field(default=300, ge=1)
    session_ttl_seconds: int = Field(default=600, ge=1)
    dedupe_ttl_seconds: int = Field(default=600, ge=0)  # 0 disables

    commands: CommandVocabulary = Field(default_factory=CommandVocabulary)

    # Reply content; empty values leave the line out of replies
    support_contact: str = ""
    forms_url: str = ""
    admin_contacts: tuple[str, ...] = ()

    @field_validator("send_url", "provider_api_base")
    @classmethod
    def _check_http_url(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as e:
            raise ValueError(f"not a valid http(s) URL: {value!r}") from e
        return value

    @classmethod
    def from_env(cls) -> GatewayConfig:
        """Build configuration from environment variables.

        ``MAYTAPI_PRODUCT_ID``, ``MAYTAPI_PHONE_ID``, ``MAYTAPI_API_KEY`` and
        ``MAYTAPI_SEND_URL`` are required. The command vocabulary is read from
        ``COMMANDS_PATH`` when that file exists.
        """
        env = os.environ
        missing = [
            name for name in (
                "MAYTAPI_PRODUCT_ID", "MAYTAPI_PHONE_ID",
                "MAYTAPI_API_KEY", "MAYTAPI_SEND_URL",
            )
            if not env.get(name)
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {missing}")

        commands_path = env.get("COMMANDS_PATH", DEFAULT_COMMANDS_PATH)
        commands = (
            CommandVocabulary.from_file(commands_path)
            if os.path.exists(commands_path)
            else CommandVocabulary()
        )
        admin_contacts = tuple(
            c.strip() for c in env.get("ADMIN_CONTACTS", "").split(",") if c.strip()
        )

        overrides: dict[str, object] = {}
        for field_name, var in (
            ("max_messages_per_window", "RATE_LIMIT_MAX_MESSAGES"),
            ("window_length_seconds", "RATE_LIMIT_WINDOW_SECONDS"),
            ("session_ttl_seconds", "SESSION_TTL_SECONDS"),
            ("dedupe_ttl_seconds", "DEDUPE_TTL_SECONDS"),
            ("send_timeout_seconds", "SEND_TIMEOUT_SECONDS"),
            ("support_contact", "SUPPORT_CONTACT"),
            ("forms_url", "FORMS_URL"),
            ("provider_api_base", "MAYTAPI_API_BASE"),
        ):
            if env.get(var):
                overrides[field_name] = env[var]

        try:
            return cls(
                expected_product_id=env["MAYTAPI_PRODUCT_ID"],
                expected_phone_id=env["MAYTAPI_PHONE_ID"],
                api_key=env["MAYTAPI_API_KEY"],
                send_url=env["MAYTAPI_SEND_URL"],
                retry=RetryConfig(
                    max_retries=int(env.get("SEND_MAX_RETRIES", "0")),
                ),
                commands=commands,
                admin_contacts=admin_contacts,
                **overrides,  # type: ignore[arg-type]
            )
        except (ValidationError, ValueError) as e:
            raise ConfigError(f"Invalid gateway configuration: {e}") from e
