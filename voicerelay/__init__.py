"""VoiceRelay - real-time voice assistant relay."""

__version__ = "0.1.0"
