"""Rule-based follow-up suggestions: template choice, task list and urgency.

Everything here is keyword heuristics over the lexicon; no model calls.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, get_args

from .config import TEMPLATE_SUGGESTION_FLOOR
from .entities import phrase_pattern
from .lexicon import DEFAULT_LEXICON, Lexicon
from .models import (
    SuggestedAction,
    TaskType,
    TemplateDefinition,
    TemplateSuggestion,
    TranscriptAnalysis,
    UrgencyLevel,
)
from .scoring import PARTIAL_MIN_CHARS, section_keywords

URGENCY_ORDER = {"low": 0, "medium": 1, "high": 2, "urgent": 3}

TRIGGER_WEIGHT = 0.4
COVERAGE_WEIGHT = 0.3

_TASK_TYPES = set(get_args(TaskType))
_TIMEFRAME_RE = re.compile(r"\b(?:in\s+)?(\d+)\s*(week|month|day)s?\b", re.IGNORECASE)
_TIMEFRAME_PHRASES = (
    ("next week", "in 1 week"),
    ("next month", "in 1 month"),
    ("six months", "in 6 months"),
)


def escalate_urgency(current: str, new: str) -> UrgencyLevel:
    """Return the more urgent of the two levels; urgency never goes down."""
    if URGENCY_ORDER.get(new, 0) > URGENCY_ORDER.get(current, 0):
        return new  # type: ignore[return-value]
    return current if current in URGENCY_ORDER else "low"  # type: ignore[return-value]


def _mentions(low: str, keyword: str) -> bool:
    kw = keyword.strip().lower()
    if not kw:
        return False
    if len(kw) >= PARTIAL_MIN_CHARS:
        return kw in low
    return bool(phrase_pattern(kw).search(low))


def suggest_template(
    text: str,
    templates: Sequence[TemplateDefinition],
    lexicon: Lexicon = DEFAULT_LEXICON,
    floor: float = TEMPLATE_SUGGESTION_FLOOR,
) -> Optional[TemplateSuggestion]:
    low = (text or "").lower()
    if not low.strip() or not templates:
        return None

    best: Optional[TemplateSuggestion] = None
    for template in templates:
        score = 0.0
        reasons: List[str] = []

        trigger = lexicon.template_triggers.get(template.category) or lexicon.template_triggers.get(template.id)
        if trigger and any(kw.lower() in low for kw in trigger.keywords):
            score += TRIGGER_WEIGHT
            reasons.append(trigger.reason)

        touched = 0
        for section in template.sections:
            if any(_mentions(low, kw) for kw in section_keywords(section, lexicon)):
                touched += 1
        if template.sections:
            score += COVERAGE_WEIGHT * (touched / len(template.sections))
        if touched > 2:
            reasons.append(f"matches {touched} sections")

        if best is None or score > best.confidence:
            best = TemplateSuggestion(
                template_id=template.id,
                confidence=min(1.0, score),
                reasoning="; ".join(reasons),
            )

    if best is None or best.confidence <= floor:
        return None
    return best


def extract_timeframes(text: str) -> List[str]:
    """Normalised follow-up intervals ("in 2 weeks", "in 1 month") in order of mention."""
    out: List[str] = []
    for match in _TIMEFRAME_RE.finditer(text or ""):
        amount, unit = match.group(1), match.group(2).lower()
        label = f"in {amount} {unit}{'' if amount == '1' else 's'}"
        if label not in out:
            out.append(label)
    low = (text or "").lower()
    for phrase, label in _TIMEFRAME_PHRASES:
        if phrase in low and label not in out:
            out.append(label)
    return out


def _add_months(when: datetime, months: int) -> datetime:
    month_index = when.month - 1 + months
    year = when.year + month_index // 12
    month = month_index % 12 + 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


def due_date_for(timeframe: str, now: datetime) -> datetime:
    match = _TIMEFRAME_RE.search(timeframe or "")
    if not match:
        return now
    amount, unit = int(match.group(1)), match.group(2).lower()
    if unit == "day":
        return now + timedelta(days=amount)
    if unit == "week":
        return now + timedelta(weeks=amount)
    return _add_months(now, amount)


def _timeframe_priority(timeframe: str) -> UrgencyLevel:
    if "week" in timeframe:
        return "high"
    if "month" in timeframe:
        return "medium"
    return "low"


def analyze_transcription(
    text: str,
    lexicon: Lexicon = DEFAULT_LEXICON,
    now: Optional[datetime] = None,
) -> TranscriptAnalysis:
    low = (text or "").lower()
    if not low.strip():
        return TranscriptAnalysis()
    now = now or datetime.now(timezone.utc)

    tasks: List[SuggestedAction] = []
    diagnoses: List[str] = []
    urgency: UrgencyLevel = "low"

    if any(flag.lower() in low for flag in lexicon.red_flags):
        urgency = "urgent"
        tasks.append(SuggestedAction(
            type="follow-up",
            description="Urgent follow-up required within 24 hours",
            priority="urgent",
        ))

    for rule in lexicon.condition_rules:
        matched = [kw for kw in rule.keywords if kw.lower() in low]
        if not matched:
            continue
        diagnoses.append(rule.name)
        for task in rule.tasks:
            desc = task.description.lower()
            if any(desc in existing.description.lower() for existing in tasks):
                continue
            tasks.append(SuggestedAction(
                type=task.type if task.type in _TASK_TYPES else "other",
                description=task.description,
                priority=task.priority if task.priority in URGENCY_ORDER else "medium",
            ))
        if len(matched) > 2 and urgency == "low":
            urgency = "medium"

    if any(ind.lower() in low for ind in lexicon.follow_up_indicators):
        for timeframe in extract_timeframes(text):
            tasks.append(SuggestedAction(
                type="follow-up",
                description=f"Follow-up appointment {timeframe}",
                priority=_timeframe_priority(timeframe),
                due_date=due_date_for(timeframe, now),
            ))
        if urgency == "low":
            urgency = "medium"

    if any(m.lower() in low for m in lexicon.medication_mentions):
        tasks.append(SuggestedAction(
            type="medication",
            description="Medication review and prescription",
            priority="medium",
        ))

    if any(m.lower() in low for m in lexicon.referral_mentions):
        tasks.append(SuggestedAction(
            type="referral",
            description="Specialist referral",
            priority="medium",
        ))

    if urgency == "low" and len(tasks) > 2:
        urgency = "medium"

    return TranscriptAnalysis(
        suggested_tasks=tasks,
        extracted_diagnoses=diagnoses,
        urgency_level=urgency,
    )
