"""Pydantic models for voice-platform webhook payloads."""

from pydantic import BaseModel, ConfigDict, Field

EVENT_KINDS = {
    "call.started": "started",
    "call.ended": "ended",
    "call.failed": "failed",
}


class CallCorrelation(BaseModel):
    """Identifiers echoed back by the platform for correlation."""

    session_id: str | None = None
    shop_id: str | None = None
    shop_name: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.session_id) and bool(self.shop_id)


class ArtifactMessage(BaseModel):
    """Single conversation message; time is epoch milliseconds."""

    role: str | None = None
    message: str | None = None
    time: float | None = None


class CallArtifact(BaseModel):
    """Recording and transcript artifacts."""

    model_config = ConfigDict(populate_by_name=True)

    transcript: str | None = None
    recording_url: str | None = Field(default=None, alias="recordingUrl")
    messages: list[ArtifactMessage] = Field(default_factory=list)


class CallAnalysisPayload(BaseModel):
    """Post-call analysis produced by the platform."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str | None = None
    structured_data: dict[str, object] | None = Field(
        default=None, alias="structuredData"
    )


class VapiCall(BaseModel):
    """Call object included in webhook events."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    status: str | None = None
    ended_reason: str | None = Field(default=None, alias="endedReason")
    cost: float | None = None
    artifact: CallArtifact | None = None
    analysis: CallAnalysisPayload | None = None
    metadata: CallCorrelation | None = None

    def duration_seconds(self) -> int | None:
        """Derive call duration from the first and last message timestamps."""
        if self.artifact is None:
            return None
        times = [m.time for m in self.artifact.messages if m.time is not None]
        if len(times) < 2:
            return None
        return round((times[-1] - times[0]) / 1000)


class VapiAssistant(BaseModel):
    """Transient assistant echoed back in events."""

    metadata: CallCorrelation | None = None


class CallEvent(BaseModel):
    """Inbound lifecycle event from the voice-agent platform."""

    type: str
    call: VapiCall | None = None
    assistant: VapiAssistant | None = None
    correlation: CallCorrelation | None = None

    @property
    def kind(self) -> str | None:
        """Return started/ended/failed, or None for events we do not process."""
        return EVENT_KINDS.get(self.type)

    def resolve_correlation(self) -> CallCorrelation | None:
        """Return the first complete correlation found in the payload."""
        candidates = [
            self.correlation,
            self.assistant.metadata if self.assistant else None,
            self.call.metadata if self.call else None,
        ]
        for candidate in candidates:
            if candidate is not None and candidate.is_complete:
                return candidate
        return None


class ImagePromptEvent(BaseModel):
    """Completion callback for the async image-to-text task."""

    task_id: str | None = None
    status: str
    result: dict[str, object] | None = None
    error: str | None = None

    @property
    def prompt(self) -> str | None:
        if not self.result:
            return None
        value = self.result.get("prompt")
        return value if isinstance(value, str) and value.strip() else None
