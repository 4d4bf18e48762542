from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

from .config import CONFIDENCE_FLOOR, MIN_SENTENCE_CHARS
from .entities import phrase_pattern
from .lexicon import DEFAULT_LEXICON, Lexicon
from .models import CategorizedContent, SectionAssignment, TemplateSection
from .segmenter import segment_sentences

EXACT_WEIGHT = 3
PARTIAL_WEIGHT = 2
CUE_WEIGHT = 1
# Short keywords ("hr", "bp", "red", "tap") only count as whole words.
PARTIAL_MIN_CHARS = 4


@lru_cache(maxsize=64)
def _vital_cue_regex(patterns: Tuple[str, ...]) -> Optional[re.Pattern]:
    if not patterns:
        return None
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


def section_keywords(section: TemplateSection, lexicon: Lexicon = DEFAULT_LEXICON) -> List[str]:
    """Lexicon vocabulary for the section type, then the section's own keywords."""
    seen = set()
    out: List[str] = []
    for kw in list(lexicon.keywords_for(section.type)) + list(section.keywords):
        key = kw.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(kw.strip())
    return out


def _has_cue(low: str, section_type: str, lexicon: Lexicon) -> bool:
    if section_type == "vitals":
        regex = _vital_cue_regex(tuple(lexicon.vital_cue_patterns))
        return bool(regex and regex.search(low))
    return any(cue in low for cue in lexicon.cues_for(section_type))


def score_section(sentence: str, section: TemplateSection, lexicon: Lexicon = DEFAULT_LEXICON) -> float:
    """
    Relevance of one sentence to one section, in [0, 1].

    exact keyword (word-bounded) = 3, partial substring = 2, one contextual cue = 1;
    the sum is normalised by the size of the keyword set.
    """
    text = (sentence or "").strip()
    if not text:
        return 0.0
    low = text.lower()
    keywords = section_keywords(section, lexicon)

    raw = 0
    for kw in keywords:
        kw_low = kw.lower()
        if kw_low not in low:
            continue
        if phrase_pattern(kw_low).search(low):
            raw += EXACT_WEIGHT
        elif len(kw_low) >= PARTIAL_MIN_CHARS:
            raw += PARTIAL_WEIGHT

    if _has_cue(low, section.type, lexicon):
        raw += CUE_WEIGHT

    if raw <= 0:
        return 0.0
    score = raw / max(len(keywords) * 0.1, 1)
    return max(0.0, min(1.0, score))


def assign_best_section(
    sentence: str,
    sections: Sequence[TemplateSection],
    floor: float = CONFIDENCE_FLOOR,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> Optional[SectionAssignment]:
    best: Optional[SectionAssignment] = None
    for section in sections:
        score = score_section(sentence, section, lexicon)
        # Strict comparison: the earlier section keeps a tie.
        if best is None or score > best.confidence:
            best = SectionAssignment(section_id=section.id, confidence=score)
    if best is None or best.confidence <= 0 or best.confidence < floor:
        return None
    return best


def categorize_content(
    text: str,
    sections: Sequence[TemplateSection],
    floor: float = CONFIDENCE_FLOOR,
    lexicon: Lexicon = DEFAULT_LEXICON,
    min_length: int = MIN_SENTENCE_CHARS,
) -> List[CategorizedContent]:
    """Whole-transcript categorisation: one entry per section that received any sentence."""
    grouped: Dict[str, List[str]] = {}
    best: Dict[str, float] = {}
    for sentence in segment_sentences(text, min_length=min_length, abbreviations=lexicon.abbreviations):
        assignment = assign_best_section(sentence, sections, floor=floor, lexicon=lexicon)
        if assignment is None:
            continue
        grouped.setdefault(assignment.section_id, []).append(sentence)
        best[assignment.section_id] = max(best.get(assignment.section_id, 0.0), assignment.confidence)

    return [
        CategorizedContent(
            section_id=section_id,
            confidence=best[section_id],
            suggested_content=" ".join(parts),
        )
        for section_id, parts in grouped.items()
    ]
