"""Context Extractor - Cursor context for autocomplete requests"""
import math
import re
from typing import Optional, Union
from config import settings
from models import CompletionInsertion, WordContext

WORD_CHAR = re.compile(r"[A-Za-z'-]")
WORD_TOKEN = re.compile(r"[A-Za-z][A-Za-z'-]*")


def clamp_cursor(text: str, cursor_index: Optional[Union[int, float]]) -> int:
    """
    Clamp a cursor offset into [0, len(text)].
    Missing or non-finite offsets mean end-of-text.
    """
    if cursor_index is None:
        return len(text)
    if isinstance(cursor_index, int):
        return max(0, min(len(text), cursor_index))
    try:
        numeric = float(cursor_index)
    except (TypeError, ValueError, OverflowError):
        return len(text)
    if not math.isfinite(numeric):
        return len(text)
    return max(0, min(len(text), int(numeric)))


def is_word_char(char: str) -> bool:
    return bool(char) and WORD_CHAR.fullmatch(char) is not None


def extract_previous_word(text: str) -> str:
    """Last word token in ``text``, lowercased"""
    tokens = WORD_TOKEN.findall(text)
    return tokens[-1].lower() if tokens else ""


def extract_word_context(text: str, cursor_index: Optional[Union[int, float]]) -> WordContext:
    """
    Derive the partial word, right-side remainder, previous word and
    bounded left/right context windows around ``cursor_index``.
    """
    cursor = clamp_cursor(text, cursor_index)

    word_start = cursor
    while word_start > 0 and is_word_char(text[word_start - 1]):
        word_start -= 1

    word_end = cursor
    while word_end < len(text) and is_word_char(text[word_end]):
        word_end += 1

    return WordContext(
        left_context=text[max(0, cursor - settings.max_left_context):cursor],
        right_context=text[cursor:cursor + settings.max_right_context],
        partial_word=text[word_start:cursor],
        right_word_remainder=text[cursor:word_end],
        previous_word=extract_previous_word(text[:word_start]),
    )


def insert_completion_at_cursor(
    text: str,
    cursor_index: Optional[Union[int, float]],
    completion: str
) -> CompletionInsertion:
    """Splice ``completion`` at the cursor and move the cursor past it"""
    cursor = clamp_cursor(text, cursor_index)
    return CompletionInsertion(
        next_text=f"{text[:cursor]}{completion}{text[cursor:]}",
        next_cursor_index=cursor + len(completion),
    )
