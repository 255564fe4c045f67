"""Observability module for metrics."""

from voicerelay.observability.metrics import (
    ACTIVE_VOICE_SESSIONS,
    CONTROL_COMMANDS,
    LLM_LATENCY,
    PIPELINE_DURATION,
    PIPELINE_RUNS,
    PROVIDER_ERRORS,
    STT_LATENCY,
    record_pipeline_run,
    record_stage_error,
    record_stage_latency,
)

__all__ = [
    "PIPELINE_RUNS",
    "PIPELINE_DURATION",
    "PROVIDER_ERRORS",
    "CONTROL_COMMANDS",
    "ACTIVE_VOICE_SESSIONS",
    "STT_LATENCY",
    "LLM_LATENCY",
    "record_pipeline_run",
    "record_stage_error",
    "record_stage_latency",
]
