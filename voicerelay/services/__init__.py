"""External provider wrappers (speech-to-text and response generation)."""
