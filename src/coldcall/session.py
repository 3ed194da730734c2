from dataclasses import dataclass, field
from typing import Any, Optional

from coldcall.states import Phase, Role

UNKNOWN_NUMBER = "Unknown"
DEFAULT_ASSISTANT_NAME = "Joey"


class _Unset:
    """Marker for CallUpdate fields the event did not carry."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def _ms(timestamp: Optional[float]) -> Optional[int]:
    if timestamp is None:
        return None
    return int(timestamp * 1000)


@dataclass
class CallMessage:
    role: Role
    content: str
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": _ms(self.timestamp),
        }


@dataclass
class CallAnalysis:
    summary: Optional[str] = None
    success_evaluation: Optional[float] = None
    structured_data: Optional[dict] = None

    @property
    def overall_score(self) -> Optional[float]:
        data = self.structured_data or {}
        score = data.get("overall_score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            return float(score)
        if isinstance(self.success_evaluation, (int, float)) and not isinstance(self.success_evaluation, bool):
            return float(self.success_evaluation)
        return None

    @property
    def meeting_qualified(self) -> bool:
        return bool((self.structured_data or {}).get("meeting_qualified", False))

    @property
    def is_empty(self) -> bool:
        return self.summary is None and self.success_evaluation is None and not self.structured_data

    def to_dict(self) -> dict:
        result = {}
        if self.summary is not None:
            result["summary"] = self.summary
        if self.success_evaluation is not None:
            result["successEvaluation"] = self.success_evaluation
        if self.structured_data is not None:
            result["structuredData"] = self.structured_data
        return result


@dataclass
class CallState:
    id: str
    started_at: float
    phase: Phase = Phase.RINGING
    customer_number: str = UNKNOWN_NUMBER
    assistant_name: str = DEFAULT_ASSISTANT_NAME

    ended_at: Optional[float] = None
    ended_reason: Optional[str] = None
    transcript: Optional[str] = None
    messages: list = field(default_factory=list)
    analysis: Optional[CallAnalysis] = None

    @property
    def is_ended(self) -> bool:
        return self.phase.is_terminal

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return max(0.0, self.ended_at - self.started_at)

    def to_dict(self) -> dict:
        """Wire shape pushed to dashboard subscribers."""
        payload = {
            "id": self.id,
            "status": self.phase.value,
            "customerNumber": self.customer_number,
            "assistantName": self.assistant_name,
            "startedAt": _ms(self.started_at),
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.ended_at is not None:
            payload["endedAt"] = _ms(self.ended_at)
        if self.ended_reason is not None:
            payload["endedReason"] = self.ended_reason
        if self.transcript is not None:
            payload["transcript"] = self.transcript
        if self.analysis is not None:
            payload["analysis"] = self.analysis.to_dict()
        return payload


@dataclass
class CallUpdate:
    """Partial update for one call. Fields left UNSET are not touched.

    end_of_call marks updates built from an end-of-call report, the only
    event allowed to create a call that is already ended.
    """

    phase: Any = UNSET
    customer_number: Any = UNSET
    assistant_name: Any = UNSET
    ended_at: Any = UNSET
    ended_reason: Any = UNSET
    transcript: Any = UNSET
    analysis: Any = UNSET
    end_of_call: bool = False

    def fields(self) -> dict:
        return {
            name: value
            for name, value in vars(self).items()
            if value is not UNSET and name != "end_of_call"
        }
