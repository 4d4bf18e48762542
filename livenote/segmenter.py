import re
from typing import AbstractSet, List, Optional, Tuple

from .config import MIN_SENTENCE_CHARS
from .lexicon import DEFAULT_LEXICON

# A run of terminal punctuation followed by whitespace or end of text.
# Requiring the trailing boundary keeps decimals ("38.5") and ratios intact.
_TERMINATOR = re.compile(r"[.!?]+(?=\s|$)")

# The word right before a terminator, inner periods included ("e.g").
_TRAILING_WORD = re.compile(r"(?:^|[\s(])([A-Za-z][A-Za-z.]*)$")


def _is_abbreviation(text: str, dot: int, abbreviations: AbstractSet[str]) -> bool:
    match = _TRAILING_WORD.search(text, 0, dot)
    return bool(match) and match.group(1).lower() in abbreviations


def _boundaries(text: str, abbreviations: AbstractSet[str]) -> List[Tuple[int, int]]:
    """(start, end) of every sentence terminator. A period after an abbreviation
    only counts when it closes the text."""
    out: List[Tuple[int, int]] = []
    for match in _TERMINATOR.finditer(text):
        if match.group() == "." and match.end() < len(text) and _is_abbreviation(text, match.start(), abbreviations):
            continue
        out.append((match.start(), match.end()))
    return out


def _may_continue(text: str, start: int, abbreviations: AbstractSet[str]) -> bool:
    # "38." may still become "38.5"; "Dr." is waiting for a name.
    if text[start:] != ".":
        return False
    if start > 0 and text[start - 1].isdigit():
        return True
    return _is_abbreviation(text, start, abbreviations)


def segment_sentences(
    text: str,
    min_length: int = MIN_SENTENCE_CHARS,
    abbreviations: Optional[AbstractSet[str]] = None,
) -> List[str]:
    t = (text or "").strip()
    if not t:
        return []
    if abbreviations is None:
        abbreviations = DEFAULT_LEXICON.abbreviations
    sentences: List[str] = []
    cursor = 0
    for start, end in _boundaries(t, abbreviations) + [(len(t), len(t))]:
        part = " ".join(t[cursor:start].split())
        cursor = end
        if len(part) < min_length:
            continue
        sentences.append(part)
    return sentences


def split_complete(buffer: str, abbreviations: Optional[AbstractSet[str]] = None) -> Tuple[str, str]:
    """
    Split a streaming buffer into (complete sentences, unterminated tail).
    Terminal punctuation at the very end of the buffer counts as complete,
    except a period right after a digit or an abbreviation: the next chunk
    may continue the same sentence, so that segment stays in the tail.
    """
    b = buffer or ""
    if abbreviations is None:
        abbreviations = DEFAULT_LEXICON.abbreviations
    ends = _boundaries(b, abbreviations)
    if ends and ends[-1][1] == len(b) and _may_continue(b, ends[-1][0], abbreviations):
        ends.pop()
    if not ends:
        return "", b
    last_end = ends[-1][1]
    return b[:last_end], b[last_end:]
