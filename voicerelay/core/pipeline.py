"""Voice pipeline orchestrator.

Orchestrates one pipeline run:
- Audio → STT → LLM → events (streaming surface)
- Audio → STT → LLM → result (request/response surface)

Conversation history is updated only after a successful generation, so a
failed run leaves the history untouched.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from voicerelay.core.events import PipelineEvent, PipelineStatus
from voicerelay.core.history import ConversationHistory
from voicerelay.exceptions import InvalidInputError, VoiceRelayError
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.observability.metrics import (
    record_pipeline_run,
    record_stage_error,
    record_stage_latency,
)
from voicerelay.services.llm.exceptions import EmptyResponseError
from voicerelay.services.llm.protocol import LLMService, Message, Role
from voicerelay.services.stt.protocol import STTService, Transcription

logger: Any = get_logger(__name__)

AUDIO_FAILURE_MESSAGE = "Failed to process audio"
TEXT_FAILURE_MESSAGE = "Failed to process text"


class PipelineState(Enum):
    """State machine for one pipeline run."""

    IDLE = auto()  # Run created, nothing sent yet
    TRANSCRIBING = auto()  # Waiting on the STT provider
    THINKING = auto()  # Waiting on the LLM provider
    COMPLETE = auto()  # Response delivered
    FAILED = auto()  # Terminal error


ALLOWED_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    # Text runs skip transcription
    PipelineState.IDLE: frozenset({
        PipelineState.TRANSCRIBING,
        PipelineState.THINKING,
        PipelineState.FAILED,
    }),
    PipelineState.TRANSCRIBING: frozenset({PipelineState.THINKING, PipelineState.FAILED}),
    PipelineState.THINKING: frozenset({PipelineState.COMPLETE, PipelineState.FAILED}),
    PipelineState.COMPLETE: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class VoiceRequest:
    """One inbound audio submission."""

    audio: bytes | str
    voice: str | None = None
    audio_format: str | None = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def mimetype(self) -> str | None:
        """MIME type derived from the format hint (webm → audio/webm)."""
        if not self.audio_format:
            return None
        if "/" in self.audio_format:
            return self.audio_format
        return f"audio/{self.audio_format.lower()}"


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of a request/response pipeline run."""

    transcript: str
    response: str
    confidence: float | None = None


@dataclass
class PipelineRun:
    """Tracks state transitions and timing of a single run."""

    source: str
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: PipelineState = PipelineState.IDLE
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def is_terminal(self) -> bool:
        return self.state in (PipelineState.COMPLETE, PipelineState.FAILED)

    def advance(self, new_state: PipelineState) -> None:
        """Move to new_state.

        Raises:
            RuntimeError: If the transition is not allowed.
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal pipeline transition {self.state.name} → {new_state.name}"
            )
        logger.debug(f"Run {self.correlation_id}: {self.state.name} → {new_state.name}")
        self.state = new_state

        if self.is_terminal:
            outcome = "complete" if new_state == PipelineState.COMPLETE else "failed"
            record_pipeline_run(self.source, outcome, time.perf_counter() - self.started_at)

    def fail(self) -> None:
        """Move to FAILED unless the run already ended."""
        if not self.is_terminal:
            self.advance(PipelineState.FAILED)


class VoicePipeline:
    """Orchestrates transcribe → generate → relay for one history.

    Provider choice is a configuration detail: any STTService and
    LLMService implementation can be plugged in.
    """

    def __init__(
        self,
        stt: STTService,
        llm: LLMService,
        history: ConversationHistory,
    ) -> None:
        self._stt = stt
        self._llm = llm
        self._history = history

    @property
    def history(self) -> ConversationHistory:
        """History this pipeline reads and appends to."""
        return self._history

    async def transcribe(self, request: VoiceRequest) -> Transcription:
        """Run the transcription stage."""
        start_time = time.perf_counter()
        try:
            transcription = await self._stt.transcribe(
                request.audio, mimetype=request.mimetype
            )
        except Exception as e:
            record_stage_error("transcribe", e)
            raise
        record_stage_latency("transcribe", time.perf_counter() - start_time)
        return transcription

    async def generate_response(self, user_text: str) -> str:
        """Run the generation stage and record the exchange in history.

        Raises:
            GenerationProviderError: Provider call failed
            EmptyResponseError: Reply was blank after trimming
        """
        history = self._history.snapshot()
        start_time = time.perf_counter()

        try:
            raw_response = await self._llm.generate(user_text, history)
            response = (raw_response or "").strip()
            if not response:
                raise EmptyResponseError()
        except Exception as e:
            record_stage_error("generate", e)
            raise

        record_stage_latency("generate", time.perf_counter() - start_time)

        self._history.append_exchange(
            Message(role=Role.USER, content=user_text),
            Message(role=Role.ASSISTANT, content=response),
        )
        return response

    async def process_audio(self, request: VoiceRequest) -> PipelineResult:
        """Transcribe and answer one audio payload.

        Errors propagate to the caller unchanged.
        """
        run = PipelineRun(source="audio", correlation_id=request.correlation_id)
        try:
            run.advance(PipelineState.TRANSCRIBING)
            transcription = await self.transcribe(request)
            run.advance(PipelineState.THINKING)
            response = await self.generate_response(transcription.text)
            run.advance(PipelineState.COMPLETE)
        except Exception:
            run.fail()
            raise

        logger.info(
            f"Run {run.correlation_id} complete: {preview_text(transcription.text)} → "
            f"{preview_text(response)}"
        )
        return PipelineResult(
            transcript=transcription.text,
            response=response,
            confidence=transcription.confidence,
        )

    async def respond(self, text: str) -> str:
        """Answer one text message."""
        run = PipelineRun(source="text")
        try:
            user_text = _require_text(text)
            run.advance(PipelineState.THINKING)
            response = await self.generate_response(user_text)
            run.advance(PipelineState.COMPLETE)
        except Exception:
            run.fail()
            raise
        return response

    async def run_audio(self, request: VoiceRequest) -> AsyncGenerator[PipelineEvent, None]:
        """Stream the events of one audio run.

        Happy path: status:processing, text:transcription, status:thinking,
        text:response, status:complete. Any failure ends the run with a
        single error event.
        """
        run = PipelineRun(source="audio", correlation_id=request.correlation_id)
        try:
            run.advance(PipelineState.TRANSCRIBING)
            yield PipelineEvent.status(PipelineStatus.PROCESSING)

            transcription = await self.transcribe(request)
            run.advance(PipelineState.THINKING)
            yield PipelineEvent.transcription(transcription.text)
            yield PipelineEvent.status(PipelineStatus.THINKING)

            response = await self.generate_response(transcription.text)
            run.advance(PipelineState.COMPLETE)
            yield PipelineEvent.response(response)
            yield PipelineEvent.status(PipelineStatus.COMPLETE)

        except VoiceRelayError as e:
            logger.warning(f"Run {run.correlation_id} failed: {e.message}")
            run.fail()
            yield PipelineEvent.error(e.message)

        except Exception:
            logger.exception(f"Run {run.correlation_id} failed unexpectedly")
            run.fail()
            yield PipelineEvent.error(AUDIO_FAILURE_MESSAGE)

    async def run_text(self, text: Any) -> AsyncGenerator[PipelineEvent, None]:
        """Stream the events of one text run.

        Happy path: status:processing, text:response, status:complete.
        """
        run = PipelineRun(source="text")
        try:
            user_text = _require_text(text)
            run.advance(PipelineState.THINKING)
            yield PipelineEvent.status(PipelineStatus.PROCESSING)

            response = await self.generate_response(user_text)
            run.advance(PipelineState.COMPLETE)
            yield PipelineEvent.response(response)
            yield PipelineEvent.status(PipelineStatus.COMPLETE)

        except VoiceRelayError as e:
            logger.warning(f"Run {run.correlation_id} failed: {e.message}")
            run.fail()
            yield PipelineEvent.error(e.message)

        except Exception:
            logger.exception(f"Run {run.correlation_id} failed unexpectedly")
            run.fail()
            yield PipelineEvent.error(TEXT_FAILURE_MESSAGE)


def _require_text(text: Any) -> str:
    """Validate a text message payload."""
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError("Invalid text data")
    return text.strip()
