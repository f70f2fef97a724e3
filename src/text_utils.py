"""Grapheme-aware text helpers used to fit text into a post budget."""

import regex

ELLIPSIS = "…"

_GRAPHEME = regex.compile(r"\X")


def graphemes(text: str) -> list[str]:
    """Split text into extended grapheme clusters."""
    return _GRAPHEME.findall(text)


def count_graphemes(text: str) -> int:
    """Count user-perceived characters in text."""
    return len(graphemes(text))


def truncate_to_word(text: str, max_graphemes: int) -> str:
    """Shorten text to at most ``max_graphemes`` user-perceived characters.

    The text is trimmed first. When it does not fit, the cut is moved back to
    the last space so words are not split, and an ellipsis marks the
    truncation. A single token longer than the budget is cut mid-word.

    Args:
        text: Text to shorten
        max_graphemes: Budget in grapheme clusters; 0 disables truncation

    Returns:
        Trimmed text, unchanged if it fits, otherwise truncated with an ellipsis

    Raises:
        ValueError: If max_graphemes is negative
    """
    if max_graphemes < 0:
        raise ValueError("max_graphemes cannot be negative")

    text = text.strip()
    if max_graphemes == 0 or not text:
        return text

    units = graphemes(text)
    if len(units) <= max_graphemes:
        return text

    units = units[:max_graphemes]

    # Cut at the last space, unless the only space is the first unit
    for index in range(len(units) - 1, 0, -1):
        if units[index] == " ":
            units = units[:index]
            break

    while units and units[-1] == " ":
        units.pop()

    if len(units) < max_graphemes:
        units.append(ELLIPSIS)
    else:
        units[-1] = ELLIPSIS

    return "".join(units)
