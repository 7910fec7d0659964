"""Sanitizer - Cleans raw model output and enforces acceptance rules"""
import logging
import re
from config import settings
from models import AutocompleteMode, WordContext
from services.context_extractor import WORD_TOKEN

logger = logging.getLogger(__name__)

ESCAPED_WHITESPACE = re.compile(r"\\r\\n|\\n|\\t")
THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
THINK_OPEN = re.compile(r"<think>", re.IGNORECASE)
THINK_CLOSE = "</think>"
LINE_BREAK = re.compile(r"\r?\n")
CONTROL_CHARS = re.compile(r"[\x00-\x1f]+")
WHITESPACE = re.compile(r"\s+")
WRAPPING_QUOTES = re.compile(r"^[\"'`]+|[\"'`]+$")
INVALID_WORD_CHARS = re.compile(r"[^A-Za-z'-]")


def _sanitize_base(raw: str) -> str:
    text = ESCAPED_WHITESPACE.sub(" ", raw)
    text = THINK_BLOCK.sub(" ", text)
    if THINK_CLOSE in text:
        # Unbalanced reasoning block: only what follows the last close tag counts
        text = text.split(THINK_CLOSE)[-1]
    else:
        text = THINK_OPEN.sub(" ", text)
    first_line = LINE_BREAK.split(text, maxsplit=1)[0]
    first_line = CONTROL_CHARS.sub(" ", first_line)
    return WHITESPACE.sub(" ", first_line).strip()


def sanitize_completion(raw: str) -> str:
    """Normalize raw output to one clean line without wrapping quotes"""
    return WRAPPING_QUOTES.sub("", _sanitize_base(raw)).strip()


def _sanitize_word_completion(raw: str, partial_word: str) -> str:
    """
    Find the first token that completes ``partial_word`` and return the
    part after the partial.

    Small models often echo the partial word as a separate token before the
    real answer ("f to go too far"), so tokens that are not strictly longer
    than the partial are skipped rather than rejected.
    """
    if not partial_word:
        return ""

    normalized_partial = partial_word.lower()
    for token in WORD_TOKEN.findall(sanitize_completion(raw)):
        if token.lower().startswith(normalized_partial) and len(token) > len(partial_word):
            return token[len(partial_word):]
    return ""


def sanitize_and_validate_completion(raw: str, context: WordContext, mode: AutocompleteMode) -> str:
    """
    Return an acceptable completion for ``context`` or "" when the model
    output must not be shown.
    """
    if mode == "word":
        completion = _sanitize_word_completion(raw, context.partial_word)
        if not completion:
            return ""

        remainder = context.right_word_remainder
        if remainder and completion.lower() == remainder.lower():
            logger.debug(f"Rejected '{completion}': duplicates text right of cursor")
            return ""

        if INVALID_WORD_CHARS.search(completion):
            return ""

        completed_word = f"{context.partial_word}{completion}".lower()
        if context.previous_word and completed_word == context.previous_word:
            logger.debug(f"Rejected '{completed_word}': repeats previous word")
            return ""

        return completion

    phrase = sanitize_completion(raw)[:settings.phrase_max_length]
    if not phrase or len(phrase) > settings.phrase_max_length:
        return ""
    return phrase
