class ColdCallError(Exception):
    """Base class for errors surfaced to the CLI and dashboard routes."""


class ConfigurationError(ColdCallError):
    """Missing credential or unknown persona/line key. Raised before any network call."""


class PlatformError(ColdCallError):
    """Outbound request to the voice platform failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CallNotFoundError(PlatformError):
    def __init__(self, call_id: str):
        super().__init__(f"Call not found: {call_id}", status_code=404)
        self.call_id = call_id


class AnalysisTimeoutError(ColdCallError):
    """Analysis was still missing when the polling budget ran out."""

    def __init__(self, call_id: str, max_wait: float):
        super().__init__(f"Analysis not ready after {max_wait:g}s for call {call_id}")
        self.call_id = call_id
        self.max_wait = max_wait
