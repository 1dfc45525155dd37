"""Reply texts sent back to senders."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from src.models import Identity, Option

DATA_REQUEST_HINT = "need to see data"

FORM_TYPES = (
    "Orders",
    "Visit reports",
    "Site prescriptions",
    "IHB registrations",
    "Partner updates",
    "Demand generation",
)


def _date(value: datetime | None) -> str:
    return value.strftime("%b %d, %Y") if value else "Unknown"


def _support_line(support_contact: str) -> str:
    return f"\n\n📞 Support: {support_contact}" if support_contact else ""


def registration_required(support_contact: str) -> str:
    return (
        "❌ Your WhatsApp number is not registered in our system.\n\n"
        "Please contact your supervisor to register your WhatsApp number."
        f"{_support_line(support_contact)}"
    )


def rate_limited() -> str:
    return (
        "⚠️ You're sending messages too quickly. "
        "Please wait a moment before trying again."
    )


def no_items(identity: Identity, forms_url: str) -> str:
    form_lines = "\n".join(f"• {name}" for name in FORM_TYPES)
    return (
        f"📭 Hi {identity.display_name}!\n\n"
        "You don't have any data submissions yet. Once you submit forms through "
        "our system, your personal data sheets will be created automatically.\n\n"
        f"📝 Available form types:\n{form_lines}"
        + (f"\n\n🔗 Access forms: {forms_url}" if forms_url else "")
    )


def option_list(identity: Identity, options: Sequence[Option]) -> str:
    lines = [f"📄 Hi {identity.display_name}!\n\nHere are your available data sheets:\n"]
    for option in options:
        lines.append(
            f"{option.ordinal_position}. {option.display_label}\n"
            f"   📅 Last updated: {_date(option.last_updated_at)}\n"
            f"   📊 Records: {option.record_count}\n"
        )
    lines.append(
        "📝 Reply with the number or name of the sheet you want to access.\n"
        "💡 Example: Reply '1' or 'Orders'\n"
        "🚫 Send 'cancel' to stop"
    )
    return "\n".join(lines)


def option_selected(option: Option) -> str:
    return (
        f"✅ Here is your requested {option.display_label} sheet:\n\n"
        f"🔗 {option.access_uri}\n\n"
        f"📅 Last updated: {_date(option.last_updated_at)}\n"
        f"📈 Records: {option.record_count}\n\n"
        "💡 Tips:\n"
        "• Bookmark this link for easy access\n"
        f"• Send \"{DATA_REQUEST_HINT}\" anytime for sheet list\n"
        "• Send \"help\" for available commands"
    )


def selection_retry(reply: str, options: Sequence[Option]) -> str:
    listing = "\n".join(f"{o.ordinal_position}. {o.display_label}" for o in options)
    return (
        f"❌ I couldn't understand your selection: \"{reply}\"\n\n"
        "Please reply with the number or exact name from this list:\n\n"
        f"{listing}\n\n"
        "💡 Or send \"cancel\" to start over."
    )


def cancelled() -> str:
    return f"✅ Cancelled. Send '{DATA_REQUEST_HINT}' anytime to access your sheets."


def session_expired() -> str:
    return (
        "⌛ Your selection has expired. "
        f"Please send '{DATA_REQUEST_HINT}' again to get your sheet list."
    )


def help_text(identity: Identity, support_contact: str) -> str:
    return (
        f"👋 Hi {identity.display_name}!\n\n"
        "🤖 I'm your personal data assistant. Here's what I can help you with:\n\n"
        f"📊 Send \"{DATA_REQUEST_HINT}\" - Get your personal data sheets\n"
        "📋 Send \"help\" - See this help message\n"
        "🚫 Send \"cancel\" - Cancel current operation\n\n"
        "💡 Your personal sheets are automatically created when you submit forms."
        f"{_support_line(support_contact)}"
    )


def unrecognized(identity: Identity, text: str) -> str:
    lowered = text.lower()
    suggestion = ""
    if any(word in lowered for word in ("sheet", "data", "report")):
        suggestion = f"\n💡 Did you mean to say '{DATA_REQUEST_HINT}'?"
    elif "help" in lowered or "command" in lowered:
        suggestion = "\n💡 Send 'help' to see available commands."
    return (
        f"👋 Hi {identity.display_name}!\n\n"
        f"I didn't understand: \"{text}\"{suggestion}\n\n"
        "🔤 Try these commands:\n"
        f"📊 \"{DATA_REQUEST_HINT}\" - Access your sheets\n"
        "📋 \"help\" - Get help\n\n"
        "💬 I can help you access your personal data sheets and reports."
    )


def processing_error() -> str:
    return "❌ Sorry, there was an error processing your request. Please try again later."
