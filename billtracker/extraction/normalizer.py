"""Input normalization for pasted bill notes."""

from typing import Optional

from billtracker.errors import ValidationError


def normalize_input(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Check pasted text before anything is sent to the completion service.

    The text is returned verbatim, line breaks included, because
    "one bill per line" is the strongest hint the model gets.

    Raises:
        ValidationError: If the text is missing, blank, or too long
    """
    if text is None or not text.strip():
        raise ValidationError("Please paste some text to process.")

    if max_length is not None and len(text) > max_length:
        raise ValidationError(
            f"Text is too long ({len(text)} characters, maximum {max_length})."
        )

    return text
