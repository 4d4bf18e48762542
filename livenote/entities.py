"""Pattern-based clinical entity extraction.

Extraction runs in a fixed order over one sentence:

1. medication + dosage patterns
2. vital-sign patterns (numeric capture, inferred unit)
3. lexicon phrase matching for procedures and devices

Every candidate carries a type-specific base confidence. Overlapping spans are
then resolved so the returned list never contains two overlapping entities.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, List, Optional, Tuple

from .lexicon import DEFAULT_LEXICON, Lexicon
from .models import Entity, EntityDetails, MedicationDetails, SymptomSeverity

VITAL_CONFIDENCE = 0.95
MEDICATION_CONFIDENCE = 0.9
DEVICE_CONFIDENCE = 0.85
PROCEDURE_CONFIDENCE = 0.8

KNOWN_MEDICATION_CONFIDENCE = 0.9
UNKNOWN_MEDICATION_CONFIDENCE = 0.7

SEVERITY_WINDOW_CHARS = 50

_UNITS = r"mg|mcg|ml|units?|tablets?"
_ROUTES = r"orally|by mouth|po|iv|intravenously|im|intramuscularly|sc|subcutaneously|topically|inhaled"
_FREQUENCIES = r"once|twice|three times|four times|bd|od|tds|qds|prn"
_PERIODS = r"daily|a day|per day|at night|in the morning"
_LINK = r"\s*(?:of|is|was|:|=)?\s*"

# Words that can sit in front of a dose but are never a drug name.
_NON_NAMES = frozenset({
    "take", "takes", "taking", "took", "give", "given", "giving", "start", "started",
    "starting", "prescribe", "prescribed", "dose", "about", "approximately", "around",
    "increase", "increased", "decrease", "decreased", "reduce", "reduced", "by", "from",
})

MEDICATION_RE = re.compile(
    rf"\b([a-z][a-z\-]*)\s+(\d+(?:\.\d+)?)\s*({_UNITS})\b"
    rf"(?:\s+({_ROUTES})\b)?"
    rf"(?:\s+({_FREQUENCIES})\b)?"
    rf"(?:\s+({_PERIODS})\b)?",
    re.IGNORECASE,
)

_MEDICATION_VERB_RE = re.compile(
    rf"\b(?:take|takes|give|prescribe|prescribed|start|started)\s+([a-z][a-z\-]*)"
    rf"(?:\s+(\d+(?:\.\d+)?)\s*({_UNITS})\b)?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class EntityPattern:
    """One row of the extraction table: what to match and how to read its fields."""
    type: str
    name: str
    regex: re.Pattern
    confidence: float
    # Returns (start offset, details) or None to reject the match.
    read: Callable[[re.Match, Lexicon], Optional[Tuple[int, EntityDetails]]]


def _norm_unit(unit: str) -> str:
    return " ".join((unit or "").lower().split())


def _read_medication(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    name = match.group(1)
    dose, unit = match.group(2), _norm_unit(match.group(3))
    route, freq, period = match.group(4), match.group(5), match.group(6)
    frequency = " ".join(p.lower() for p in (freq, period) if p) or None

    start = match.start()
    low = name.lower()
    if low in _NON_NAMES or low in lexicon.filler_words:
        # Keep the dose, drop the word in front of it.
        start = match.start(2)
        name = None
    return start, EntityDetails(
        name=name,
        dosage=f"{dose} {unit}",
        frequency=frequency,
        route=route.lower() if route else None,
    )


def _in_range(value: float, low: float, high: float) -> bool:
    return low <= value <= high


def _read_blood_pressure(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    systolic, diastolic = int(match.group(1)), int(match.group(2))
    if not (_in_range(systolic, 50, 300) and _in_range(diastolic, 20, 200)):
        return None
    return match.start(), EntityDetails(value=f"{systolic}/{diastolic}", unit="mmHg")


def _read_heart_rate(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    if not _in_range(int(match.group(1)), 20, 250):
        return None
    return match.start(), EntityDetails(value=match.group(1), unit="bpm")


def _read_temperature(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    value = float(match.group(1))
    stated = _norm_unit(match.group(2) or "")
    if "fahrenheit" in stated or stated.endswith("f"):
        unit = "°F"
    elif "celsius" in stated or stated.endswith("c"):
        unit = "°C"
    else:
        unit = "°F" if value > 50 else "°C"
    if unit == "°C" and not _in_range(value, 30, 45):
        return None
    if unit == "°F" and not _in_range(value, 86, 113):
        return None
    return match.start(), EntityDetails(value=match.group(1), unit=unit)


def _read_oxygen_saturation(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    if not _in_range(int(match.group(1)), 50, 100):
        return None
    return match.start(), EntityDetails(value=match.group(1), unit="%")


def _read_respiratory_rate(match: re.Match, lexicon: Lexicon) -> Optional[Tuple[int, EntityDetails]]:
    if not _in_range(int(match.group(1)), 4, 60):
        return None
    return match.start(), EntityDetails(value=match.group(1), unit="breaths/min")


ENTITY_PATTERNS: Tuple[EntityPattern, ...] = (
    EntityPattern("medication", "medication_dose", MEDICATION_RE, MEDICATION_CONFIDENCE, _read_medication),
    EntityPattern(
        "vital",
        "blood_pressure",
        re.compile(rf"\b(?:blood\s+pressure|bp){_LINK}(\d{{2,3}})\s*/\s*(\d{{2,3}})(?:\s*(mm\s?hg)\b)?", re.IGNORECASE),
        VITAL_CONFIDENCE,
        _read_blood_pressure,
    ),
    EntityPattern(
        "vital",
        "heart_rate",
        re.compile(rf"\b(?:heart\s+rate|hr|pulse(?:\s+rate)?){_LINK}(\d{{2,3}})\b(?:\s*(bpm|beats\s+per\s+minute)\b)?", re.IGNORECASE),
        VITAL_CONFIDENCE,
        _read_heart_rate,
    ),
    EntityPattern(
        "vital",
        "temperature",
        re.compile(
            rf"\b(?:temperature|temp){_LINK}(\d{{2,3}}(?:\.\d+)?)"
            r"(?:\s*(°\s?[cf]\b|degrees(?:\s+(?:celsius|fahrenheit|c|f)\b)?|celsius|fahrenheit))?",
            re.IGNORECASE,
        ),
        VITAL_CONFIDENCE,
        _read_temperature,
    ),
    EntityPattern(
        "vital",
        "oxygen_saturation",
        re.compile(rf"\b(?:oxygen\s+saturation|o2\s+sat(?:uration)?s?|spo2|sats?){_LINK}(\d{{2,3}})(?:\s*(%))?", re.IGNORECASE),
        VITAL_CONFIDENCE,
        _read_oxygen_saturation,
    ),
    EntityPattern(
        "vital",
        "respiratory_rate",
        re.compile(rf"\b(?:resp(?:iratory)?\s+rate|rr){_LINK}(\d{{1,2}})\b(?:\s*(breaths?\s+per\s+minute|/min))?", re.IGNORECASE),
        VITAL_CONFIDENCE,
        _read_respiratory_rate,
    ),
)


@lru_cache(maxsize=2048)
def phrase_pattern(phrase: str) -> re.Pattern:
    """Case-insensitive whole-phrase matcher (no partial words)."""
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE)


def _phrase_entities(text: str, phrases: Iterable[str], entity_type: str, confidence: float) -> List[Entity]:
    out: List[Entity] = []
    for phrase in phrases:
        for match in phrase_pattern(phrase).finditer(text):
            out.append(Entity(
                type=entity_type,
                text=match.group(0),
                start_index=match.start(),
                end_index=match.end(),
                confidence=confidence,
            ))
    return out


def _pattern_entities(text: str, lexicon: Lexicon) -> List[Entity]:
    out: List[Entity] = []
    for pattern in ENTITY_PATTERNS:
        for match in pattern.regex.finditer(text):
            read = pattern.read(match, lexicon)
            if read is None:
                continue
            start, details = read
            end = match.end()
            out.append(Entity(
                type=pattern.type,
                text=text[start:end],
                start_index=start,
                end_index=end,
                confidence=pattern.confidence,
                details=details,
            ))
    return out


def resolve_overlaps(entities: List[Entity]) -> List[Entity]:
    """
    Keep at most one entity per overlapping region.
    Higher confidence wins; on equal confidence the entity earlier in the text wins.
    """
    ordered = sorted(
        entities,
        key=lambda e: (e.start_index, -e.confidence, -(e.end_index - e.start_index)),
    )
    kept: List[Entity] = []
    for candidate in ordered:
        clashes = [e for e in kept if e.overlaps(candidate)]
        if not clashes:
            kept.append(candidate)
            continue
        if all(candidate.confidence > e.confidence for e in clashes):
            kept = [e for e in kept if not e.overlaps(candidate)]
            kept.append(candidate)
    kept.sort(key=lambda e: e.start_index)
    return kept


def extract_entities(text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> List[Entity]:
    if not text or not text.strip():
        return []
    candidates = _pattern_entities(text, lexicon)
    candidates.extend(_phrase_entities(text, lexicon.procedures, "procedure", PROCEDURE_CONFIDENCE))
    candidates.extend(_phrase_entities(text, lexicon.devices, "device", DEVICE_CONFIDENCE))
    return resolve_overlaps(candidates)


def extract_medications(text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> List[MedicationDetails]:
    """Medication records with dosage/frequency/route where stated, best known names first."""
    if not text:
        return []
    found: List[MedicationDetails] = []

    def _add(name: str, dosage: Optional[str], frequency: Optional[str], route: Optional[str]) -> None:
        low = name.lower()
        if low in _NON_NAMES or low in lexicon.filler_words:
            return
        known = lexicon.is_known_medication(low)
        if not known and len(low) <= 3:
            return
        found.append(MedicationDetails(
            name=name,
            dosage=dosage,
            frequency=frequency,
            route=route,
            confidence=KNOWN_MEDICATION_CONFIDENCE if known else UNKNOWN_MEDICATION_CONFIDENCE,
            known=known,
        ))

    for match in MEDICATION_RE.finditer(text):
        _, details = _read_medication(match, lexicon)
        if details.name:
            _add(details.name, details.dosage, details.frequency, details.route)
    for match in _MEDICATION_VERB_RE.finditer(text):
        dosage = f"{match.group(2)} {_norm_unit(match.group(3))}" if match.group(2) else None
        _add(match.group(1), dosage, None, None)

    seen = set()
    unique: List[MedicationDetails] = []
    for med in found:
        key = med.name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(med)
    unique.sort(key=lambda m: m.confidence, reverse=True)
    return unique


def assess_symptom_severity(text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> List[SymptomSeverity]:
    if not text:
        return []
    low_text = text.lower()
    hits: List[Tuple[int, int, str]] = []
    # Longest phrases first so "chest pain" claims its span before "pain".
    for symptom in sorted(lexicon.keywords_for("symptoms"), key=len, reverse=True):
        for match in phrase_pattern(symptom).finditer(text):
            start, end = match.span()
            if any(s <= start and end <= e for s, e, _ in hits):
                continue
            hits.append((start, end, match.group(0)))

    out: List[SymptomSeverity] = []
    for start, end, symptom in sorted(hits):
        window = low_text[max(0, start - SEVERITY_WINDOW_CHARS):end + SEVERITY_WINDOW_CHARS]
        severity, confidence = "moderate", 0.5
        for level in ("severe", "moderate", "mild"):
            if any(term in window for term in lexicon.severity_terms.get(level, ())):
                severity, confidence = level, 0.8
                break
        out.append(SymptomSeverity(symptom=symptom, severity=severity, confidence=confidence, start_index=start))
    return out
