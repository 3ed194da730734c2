from enum import Enum

# Platform call statuses grouped by the phase they represent.
RINGING_STATUSES = {"queued", "scheduled", "ringing"}
IN_PROGRESS_STATUSES = {"in-progress", "forwarding"}
ENDED_STATUSES = {"ended"}


class Phase(Enum):
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    ENDED = "ended"

    @property
    def is_terminal(self) -> bool:
        return self is Phase.ENDED

    @classmethod
    def parse(cls, status):
        """Map a platform status string to a Phase, or None if unrecognized."""
        if not isinstance(status, str):
            return None
        status = status.strip().lower()
        if status in RINGING_STATUSES:
            return cls.RINGING
        if status in IN_PROGRESS_STATUSES:
            return cls.IN_PROGRESS
        if status in ENDED_STATUSES:
            return cls.ENDED
        return None


class Role(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"

    @classmethod
    def parse(cls, value):
        """Map platform speaker labels to a Role. System and tool turns return None."""
        if not isinstance(value, str):
            return None
        value = value.strip().lower()
        if value in ("assistant", "bot"):
            return cls.ASSISTANT
        if value in ("user", "customer"):
            return cls.USER
        return None
