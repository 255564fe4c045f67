"""Audio payload normalisation and transcript filtering.

Browsers send recorded audio either as raw bytes (binary WebSocket frames,
multipart uploads) or as base64 text inside JSON messages. Both are
normalised to bytes here before anything is sent to a provider.
"""

from __future__ import annotations

import base64
import binascii
import re

from voicerelay.exceptions import InvalidInputError
from voicerelay.services.stt.exceptions import EmptyTranscriptError

MIN_AUDIO_BYTES = 1000
MIN_TRANSCRIPT_CHARS = 3

# Phrases providers commonly return for silence or background noise
HALLUCINATED_PHRASES = frozenset({
    "thank you",
    "thanks",
    "bye",
    "goodbye",
    "you",
    "thank you for watching",
})

DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,", re.IGNORECASE)
TRAILING_PUNCTUATION = ".,!?;: "


def decode_audio_payload(
    audio: bytes | bytearray | str | None,
    *,
    min_bytes: int = MIN_AUDIO_BYTES,
) -> bytes:
    """Normalise an audio payload to bytes and enforce the minimum size.

    Raises:
        InvalidInputError: Missing, undecodable or undersized payload.
    """
    if audio is None:
        raise InvalidInputError("No audio data provided")

    if isinstance(audio, (bytes, bytearray)):
        data = bytes(audio)
    elif isinstance(audio, str):
        encoded = DATA_URL_RE.sub("", audio.strip(), count=1)
        if not encoded:
            raise InvalidInputError("Empty audio data")
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputError("Audio data is not valid base64") from e
    else:
        raise InvalidInputError("Invalid audio data type")

    if not data:
        raise InvalidInputError("Empty audio data")

    if len(data) < min_bytes:
        raise InvalidInputError(
            f"Audio too short ({len(data)} bytes); minimum is {min_bytes} bytes"
        )

    return data


def is_hallucination(text: str) -> bool:
    """Check whether a transcript is a known silence/noise artefact."""
    normalized = text.strip().lower().rstrip(TRAILING_PUNCTUATION)
    return normalized in HALLUCINATED_PHRASES


def clean_transcript(text: str | None) -> str:
    """Trim a provider transcript and reject unusable results.

    Raises:
        EmptyTranscriptError: Transcript empty, too short or denylisted.
    """
    cleaned = (text or "").strip()

    if len(cleaned) < MIN_TRANSCRIPT_CHARS:
        raise EmptyTranscriptError()

    if is_hallucination(cleaned):
        raise EmptyTranscriptError()

    return cleaned
