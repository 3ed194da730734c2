import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from coldcall.errors import ConfigurationError
from coldcall.personas import (
    ASSISTANT_IDS,
    DEFAULT_LINE,
    DEFAULT_PERSONA,
    PHONE_NUMBERS,
)

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "1"
LOCAL_NUMBER_DIGITS = 10

_FORMATTING = re.compile(r"[\s\-().]")


@dataclass
class LaunchResult:
    call_id: str
    status: str
    customer_number: str = ""
    persona_key: str = ""
    line_key: str = ""

    def to_dict(self) -> dict:
        return {
            "callId": self.call_id,
            "status": self.status,
            "customerNumber": self.customer_number,
            "persona": self.persona_key,
            "line": self.line_key,
        }


def normalize_number(number: str) -> str:
    """Return the number in E.164-style form.

    Ten bare digits are treated as a local number and get the default country
    code; other bare numbers only get the "+" marker.
    """
    if not isinstance(number, str):
        raise ConfigurationError(f"Invalid phone number: {number!r}")
    stripped = _FORMATTING.sub("", number)
    has_plus = stripped.startswith("+")
    digits = stripped.lstrip("+")
    if not digits.isdigit():
        raise ConfigurationError(f"Invalid phone number: {number!r}")
    if has_plus:
        return f"+{digits}"
    if len(digits) == LOCAL_NUMBER_DIGITS:
        return f"+{DEFAULT_COUNTRY_CODE}{digits}"
    return f"+{digits}"


def resolve_persona(persona_key: str) -> str:
    try:
        return ASSISTANT_IDS[persona_key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown assistant key: {persona_key} (available: {', '.join(ASSISTANT_IDS)})"
        ) from None


def resolve_line(line_key: str) -> dict:
    try:
        return PHONE_NUMBERS[line_key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown phone key: {line_key} (available: {', '.join(PHONE_NUMBERS)})"
        ) from None


async def launch(
    client,
    counterpart_number: str,
    persona_key: Optional[str] = None,
    line_key: Optional[str] = None,
    scheduled_at: Optional[datetime] = None,
) -> LaunchResult:
    """Start an outbound call.

    The registry is not touched: the call shows up there once the platform
    sends its first webhook event.
    """
    persona_key = persona_key or DEFAULT_PERSONA
    line_key = line_key or DEFAULT_LINE
    assistant_id = resolve_persona(persona_key)
    line = resolve_line(line_key)
    number = normalize_number(counterpart_number)

    logger.info("Launching call to %s with %s from %s", number, persona_key, line["number"])
    call = await client.create_call(
        assistant_id=assistant_id,
        phone_number_id=line["id"],
        customer_number=number,
        scheduled_at=scheduled_at,
    )
    return LaunchResult(
        call_id=str(call.get("id", "")),
        status=str(call.get("status", "unknown")),
        customer_number=number,
        persona_key=persona_key,
        line_key=line_key,
    )
