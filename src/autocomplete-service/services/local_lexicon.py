"""Local Lexicon - Zero-latency word suggestions from sibling captions"""
import logging
import re
from collections import Counter, defaultdict
from typing import DefaultDict, Iterable, List
from models import AutocompleteMode
from services.context_extractor import extract_word_context

logger = logging.getLogger(__name__)

LOWER_TOKEN = re.compile(r"[a-z][a-z'-]*")

BIGRAM_WEIGHT = 5
REPEAT_PENALTY = 8


def tokenize(text: str) -> List[str]:
    return LOWER_TOKEN.findall(text.lower())


class LexiconStats:
    """
    Unigram frequencies and first-order transitions for a caption corpus.
    ``bigrams['too']['far']`` counts how often "too far" occurs.
    """

    def __init__(self, texts: Iterable[str]):
        self.frequency: Counter = Counter()
        self.bigrams: DefaultDict[str, Counter] = defaultdict(Counter)

        for text in texts:
            words = tokenize(text)
            self.frequency.update(words)
            for previous, word in zip(words, words[1:]):
                self.bigrams[previous][word] += 1

    def transitions(self, previous_word: str) -> Counter:
        return self.bigrams.get(previous_word, Counter())

    def score(self, word: str, previous_word: str) -> int:
        repeat = 1 if word == previous_word else 0
        return (
            BIGRAM_WEIGHT * self.transitions(previous_word)[word]
            + self.frequency[word]
            - REPEAT_PENALTY * repeat
        )


def suggest_local_completion(
    texts: Iterable[str],
    text: str,
    cursor_index: int,
    mode: AutocompleteMode
) -> str:
    """
    Return the suffix that completes the partial word at the cursor, or "".

    Word mode only. Statistics are rebuilt from ``texts`` on every call.
    """
    if mode != "word":
        return ""

    context = extract_word_context(text, cursor_index)
    if not context.partial_word:
        return ""

    stats = LexiconStats(texts)
    partial = context.partial_word.lower()
    previous = context.previous_word
    remainder = context.right_word_remainder.lower()

    candidates = set(stats.transitions(previous)) | set(stats.frequency)

    ranked = [
        word for word in candidates
        if word.startswith(partial)
        and word != partial
        and word != previous
        # Cursor inside an existing word: never suggest what is already there
        and not (remainder and word[len(partial):] == remainder)
    ]
    if not ranked:
        return ""

    best = min(ranked, key=lambda word: (-stats.score(word, previous), word))
    logger.debug(f"Local suggestion for '{partial}' after '{previous}': '{best}'")
    return best[len(partial):]
