"""Prometheus metrics for the voice relay.

Provides metrics for monitoring pipeline outcomes, provider latency,
connected voice sessions and call sessions.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

PIPELINE_RUNS = Counter(
    "voicerelay_pipeline_runs_total",
    "Total pipeline runs by outcome",
    ["source", "outcome"],
)

PROVIDER_ERRORS = Counter(
    "voicerelay_provider_errors_total",
    "Errors raised by pipeline stages",
    ["stage", "error"],
)

CONTROL_COMMANDS = Counter(
    "voicerelay_control_commands_total",
    "Control messages received on the voice channel",
    ["command"],
)

CALL_SESSIONS = Counter(
    "voicerelay_call_sessions_total",
    "Call sessions by final status",
    ["status"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_VOICE_SESSIONS = Gauge(
    "voicerelay_active_voice_sessions",
    "Currently connected voice channel sessions",
)

ACTIVE_CALLS = Gauge(
    "voicerelay_active_calls",
    "Call sessions started and not yet ended",
)

# =============================================================================
# Histograms
# =============================================================================

STT_LATENCY = Histogram(
    "voicerelay_stt_latency_seconds",
    "Speech-to-text latency per utterance",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)

LLM_LATENCY = Histogram(
    "voicerelay_llm_latency_seconds",
    "Response generation latency",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)

PIPELINE_DURATION = Histogram(
    "voicerelay_pipeline_duration_seconds",
    "End-to-end pipeline run duration",
    buckets=[0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 20.0],
)

CALL_DURATION = Histogram(
    "voicerelay_call_duration_seconds",
    "Call session duration in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_pipeline_run(
    source: str,
    outcome: str,
    duration_seconds: float,
) -> None:
    """Record a finished pipeline run.

    Args:
        source: What started the run (audio, text)
        outcome: complete or failed
        duration_seconds: Wall time of the run
    """
    PIPELINE_RUNS.labels(source=source, outcome=outcome).inc()
    PIPELINE_DURATION.observe(duration_seconds)


def record_call_started() -> None:
    """Track a newly started call session."""
    ACTIVE_CALLS.inc()


def record_call_ended(status: str, duration_seconds: float) -> None:
    """Record a call session leaving the active state."""
    ACTIVE_CALLS.dec()
    CALL_SESSIONS.labels(status=status).inc()
    CALL_DURATION.observe(duration_seconds)


def record_stage_latency(stage: str, latency_seconds: float) -> None:
    """Record latency of a provider stage (transcribe, generate)."""
    if latency_seconds <= 0:
        return
    if stage == "transcribe":
        STT_LATENCY.observe(latency_seconds)
    elif stage == "generate":
        LLM_LATENCY.observe(latency_seconds)


def record_stage_error(stage: str, error: Exception) -> None:
    """Count an error raised by a pipeline stage."""
    PROVIDER_ERRORS.labels(stage=stage, error=type(error).__name__).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
