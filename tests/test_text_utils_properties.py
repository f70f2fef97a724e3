"""Property-based tests for grapheme-aware truncation."""

from hypothesis import given
from hypothesis import strategies as st

from src.text_utils import ELLIPSIS, count_graphemes, graphemes, truncate_to_word

# Words drawn from letters, emoji and combining sequences, joined by spaces
WORD = st.lists(
    st.sampled_from(["a", "b", "z", "é", "e\u0301", "世", "🌍", "👍🏽", "🇮🇹", "-", "."]),
    min_size=1,
    max_size=12,
).map("".join)
SENTENCE = st.lists(WORD, min_size=1, max_size=15).map(" ".join)


class TestTruncateToWordProperties:
    """Property-based tests for truncate_to_word."""

    @given(st.text(max_size=200), st.integers(min_value=0, max_value=300))
    def test_unchanged_when_within_budget(self, text, max_graphemes):
        """Text that already fits is only trimmed."""
        trimmed = text.strip()
        if count_graphemes(trimmed) <= max_graphemes:
            assert truncate_to_word(text, max_graphemes) == trimmed

    @given(st.text(max_size=300), st.integers(min_value=1, max_value=100))
    def test_result_never_exceeds_budget(self, text, max_graphemes):
        """The result fits the budget for every positive budget."""
        result = truncate_to_word(text, max_graphemes)
        assert count_graphemes(result) <= max_graphemes

    @given(st.text(max_size=200))
    def test_zero_budget_is_identity_on_trimmed_text(self, text):
        assert truncate_to_word(text, 0) == text.strip()

    @given(SENTENCE, st.integers(min_value=1, max_value=60))
    def test_truncation_ends_on_word_boundary(self, text, max_graphemes):
        """With an interior space in reach, no partial word precedes the marker."""
        units = graphemes(text)
        result = truncate_to_word(text, max_graphemes)
        if len(units) <= max_graphemes:
            assert result == text
            return

        assert result.endswith(ELLIPSIS)
        if " " in units[1:max_graphemes]:
            kept = result[: -len(ELLIPSIS)]
            assert text.startswith(kept)
            assert text[len(kept)] == " "

    @given(SENTENCE, st.integers(min_value=1, max_value=60))
    def test_truncated_result_is_prefix_plus_marker(self, text, max_graphemes):
        result = truncate_to_word(text, max_graphemes)
        if result != text:
            assert result.endswith(ELLIPSIS)
            assert text.startswith(result[: -len(ELLIPSIS)])

    @given(st.text(max_size=200), st.integers(min_value=0, max_value=100))
    def test_deterministic(self, text, max_graphemes):
        assert truncate_to_word(text, max_graphemes) == truncate_to_word(
            text, max_graphemes
        )
