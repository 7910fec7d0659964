"""Unit tests for model output sanitizing and validation"""
import pytest
from services.context_extractor import extract_word_context
from services.sanitizer import sanitize_and_validate_completion, sanitize_completion


def context_for(text, cursor=None):
    return extract_word_context(text, cursor)


class TestSanitizeCompletion:
    """Test cases for sanitize_completion"""

    @pytest.mark.parametrize("raw,expected", [
        ('"far"', "far"),
        ("  far  ", "far"),
        ("far\nsecond line", "far"),
        ("far\\nsecond line", "far second line"),
        ("<think>maybe fast</think>far", "far"),
        ("<THINK>hmm</THINK> far", "far"),
        ("reasoning</think>far", "far"),
        ("<think>far", "far"),
        ("fa\x00r", "fa r"),
    ])
    def test_cleaning(self, raw, expected):
        """Raw output is reduced to one clean line"""
        assert sanitize_completion(raw) == expected


class TestWordMode:
    """Test cases for word-mode validation"""

    def test_accepts_completed_word(self):
        """The completed word yields its missing suffix"""
        assert sanitize_and_validate_completion("far away", context_for("Man went too f"), "word") == "ar"

    def test_rejects_without_matching_token(self):
        """Output without a matching word is rejected"""
        assert sanitize_and_validate_completion("to go too soon", context_for("Man went too f"), "word") == ""

    def test_skips_echoed_partial(self):
        """Echoed 'f' is skipped and 'far' found later"""
        assert sanitize_and_validate_completion("f to go too far", context_for("Man went too f"), "word") == "ar"

    def test_rejects_previous_word_repeat(self):
        """Repeating the previous word is rejected"""
        assert sanitize_and_validate_completion("very", context_for("very v"), "word") == ""

    def test_rejects_existing_remainder(self):
        """Completion equal to text right of cursor would double the word"""
        context = context_for("hello world", 9)

        assert sanitize_and_validate_completion("WORLD", context, "word") == ""

    def test_keeps_case_of_model_output(self):
        """The suffix keeps the model's casing"""
        assert sanitize_and_validate_completion("Yorkshire", context_for("New Yo"), "word") == "rkshire"

    def test_json_quotes_stripped(self):
        """Wrapping quotes are ignored"""
        assert sanitize_and_validate_completion('"far"', context_for("too f"), "word") == "ar"

    def test_think_block_ignored(self):
        """Reasoning blocks are discarded"""
        raw = "<think>fast or far?</think> fine"

        assert sanitize_and_validate_completion(raw, context_for("too f"), "word") == "ine"

    def test_no_partial_word(self):
        """Nothing is accepted without a partial word"""
        assert sanitize_and_validate_completion("far", context_for("too "), "word") == ""

    def test_hyphen_and_apostrophe_allowed(self):
        """Hyphens and apostrophes are word characters"""
        assert sanitize_and_validate_completion("well-known", context_for("a wel"), "word") == "l-known"


class TestPhraseMode:
    """Test cases for phrase-mode validation"""

    def test_phrase_kept(self):
        """Phrase mode keeps the whole phrase"""
        raw = '"to the market"'

        assert sanitize_and_validate_completion(raw, context_for("we went "), "phrase") == "to the market"

    def test_phrase_truncated(self):
        """Phrases are capped in length"""
        completion = sanitize_and_validate_completion("x" * 200, context_for("a "), "phrase")

        assert completion == "x" * 64

    def test_empty_phrase(self):
        """Blank phrases are rejected"""
        assert sanitize_and_validate_completion("  \n", context_for("a "), "phrase") == ""

