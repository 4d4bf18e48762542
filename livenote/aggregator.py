"""Streaming section aggregation.

A ``StreamingAggregator`` owns one dictation session bound to one template.
Text arrives in arbitrary chunks; only complete sentences are classified, the
unterminated tail waits in ``pending_text`` until its terminator arrives or
``flush()`` is called. Section confidence only ever rises within a session and
urgency only ever escalates.

``ProgressivePopulator`` is the batch-style variant: it buffers transcription
segments and runs the aggregator every N seconds or N characters.
"""

from __future__ import annotations

import logging
import string
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .classifier import SectionClassifier
from .config import (
    CONFIDENCE_FLOOR,
    MIN_SENTENCE_CHARS,
    POPULATOR_BUFFER_CHARS,
    POPULATOR_INTERVAL_SECONDS,
    REEVALUATE_EVERY_CHARS,
    SIMILARITY_THRESHOLD,
    URGENCY_MIN_CHARS,
)
from .entities import extract_entities
from .errors import NotBound
from .lexicon import DEFAULT_LEXICON, Lexicon
from .models import (
    AggregatorStateLiteral,
    Entity,
    ScoredSentence,
    SectionAssignment,
    SectionState,
    StreamingAnalysisResult,
    SuggestedAction,
    TemplateDefinition,
    UrgencyLevel,
    _now_utc,
)
from .scoring import assign_best_section
from .segmenter import segment_sentences, split_complete
from .suggestions import analyze_transcription, escalate_urgency
from .templates import validate_template

logger = logging.getLogger("livenote.aggregator")

TemplateLike = Union[TemplateDefinition, Mapping[str, Any]]


def normalized_words(text: str, filler_words: Iterable[str] = ()) -> set:
    filler = set(filler_words)
    words = set()
    for raw in (text or "").lower().split():
        word = raw.strip(string.punctuation)
        if word and word not in filler:
            words.add(word)
    return words


def fragment_similarity(a: str, b: str, filler_words: Iterable[str] = ()) -> float:
    """Jaccard similarity of the content words of two fragments."""
    filler = frozenset(filler_words)
    wa, wb = normalized_words(a, filler), normalized_words(b, filler)
    union = wa | wb
    if not union:
        # Nothing but filler on both sides: fall back to plain text equality.
        return 1.0 if " ".join(a.lower().split()) == " ".join(b.lower().split()) else 0.0
    return len(wa & wb) / len(union)


def dedupe_entities(entities: Iterable[Entity]) -> List[Entity]:
    seen = set()
    out: List[Entity] = []
    for entity in entities:
        key = (entity.type, entity.text.strip().lower())
        if key in seen:
            continue
        seen.add(key)
        out.append(entity)
    return out


class StreamingAggregator:
    def __init__(
        self,
        template: Optional[TemplateLike] = None,
        lexicon: Lexicon = DEFAULT_LEXICON,
        classifier: Optional[SectionClassifier] = None,
        confidence_floor: float = CONFIDENCE_FLOOR,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        reevaluate_every_chars: int = REEVALUATE_EVERY_CHARS,
        min_sentence_length: int = MIN_SENTENCE_CHARS,
        urgency_min_chars: int = URGENCY_MIN_CHARS,
    ):
        self._lock = threading.RLock()
        self.lexicon = lexicon
        self.classifier = classifier
        self.confidence_floor = confidence_floor
        self.similarity_threshold = similarity_threshold
        self.reevaluate_every_chars = reevaluate_every_chars
        self.min_sentence_length = min_sentence_length
        self.urgency_min_chars = urgency_min_chars

        self._template: Optional[TemplateDefinition] = None
        self._sections: Dict[str, SectionState] = {}
        self._clear_session()

        if template is not None:
            self.bind_template(template)

    # -------------------------
    # Properties
    # -------------------------

    @property
    def template(self) -> Optional[TemplateDefinition]:
        return self._template

    @property
    def state(self) -> AggregatorStateLiteral:
        return self._state

    @property
    def is_bound(self) -> bool:
        return self._template is not None

    # -------------------------
    # Session lifecycle
    # -------------------------

    def _clear_session(self) -> None:
        self._text = ""
        self._pending = ""
        self._unclassified: List[str] = []
        self._actions: List[SuggestedAction] = []
        self._urgency: UrgencyLevel = "low"
        self._chars_since_eval = 0
        self._sentence_count = 0
        self._state: AggregatorStateLiteral = "idle"
        if self._template is not None:
            self._sections = {
                s.id: SectionState(section_id=s.id, title=s.title)
                for s in self._template.sections
            }
        else:
            self._sections = {}

    def bind_template(self, template: TemplateLike) -> TemplateDefinition:
        """Bind (or rebind) a template. Any previous session content is discarded."""
        parsed = validate_template(template)
        with self._lock:
            self._template = parsed
            self._clear_session()
        logger.info("Bound template %s (%d sections)", parsed.id, len(parsed.sections))
        return parsed

    def reset(self) -> None:
        with self._lock:
            self._clear_session()
        logger.info("Session reset (template=%s)", self._template.id if self._template else None)

    def _require_bound(self) -> TemplateDefinition:
        if self._template is None:
            raise NotBound("No template bound; call bind_template() first")
        return self._template

    # -------------------------
    # Streaming input
    # -------------------------

    def add_text(self, chunk: Any) -> List[ScoredSentence]:
        with self._lock:
            self._require_bound()
            if not isinstance(chunk, str) or not chunk.strip():
                return []

            self._state = "accumulating"
            self._text += chunk
            self._chars_since_eval += len(chunk)

            complete, self._pending = split_complete(self._pending + chunk, self.lexicon.abbreviations)
            results = [self._process_sentence(s) for s in self._segment(complete)]

            if self._chars_since_eval >= self.reevaluate_every_chars:
                self._reevaluate()
            return results

    def flush(self) -> List[ScoredSentence]:
        """Classify the pending unterminated tail and refresh suggestions."""
        with self._lock:
            self._require_bound()
            tail, self._pending = self._pending, ""
            results = [self._process_sentence(s) for s in self._segment(tail)]
            self._reevaluate()
            return results

    def _segment(self, text: str) -> List[str]:
        return segment_sentences(text, self.min_sentence_length, self.lexicon.abbreviations)

    def _process_sentence(self, sentence: str) -> ScoredSentence:
        index = self._sentence_count
        self._sentence_count += 1
        entities = [
            e.model_copy(update={"sentence_index": index})
            for e in extract_entities(sentence, self.lexicon)
        ]

        template = self._template
        assignment = assign_best_section(sentence, template.sections, self.confidence_floor, self.lexicon)
        source = "lexicon"
        if assignment is None and self.classifier is not None:
            assignment = self._delegate(sentence)
            source = "classifier"

        if assignment is None:
            self._unclassified.append(sentence)
            return ScoredSentence(text=sentence, entities=entities)

        section = self._sections[assignment.section_id]
        for existing in section.fragments:
            if fragment_similarity(sentence, existing, self.lexicon.filler_words) >= self.similarity_threshold:
                logger.debug("Dropped near-duplicate for %s: %r", section.section_id, sentence)
                return ScoredSentence(
                    text=sentence,
                    section_id=assignment.section_id,
                    confidence=assignment.confidence,
                    entities=entities,
                    source=source,
                    duplicate=True,
                )

        section.fragments.append(sentence)
        section.confidence = max(section.confidence, assignment.confidence)
        section.entities = dedupe_entities(list(section.entities) + entities)
        section.last_updated = _now_utc()
        return ScoredSentence(
            text=sentence,
            section_id=assignment.section_id,
            confidence=assignment.confidence,
            entities=entities,
            source=source,
        )

    def _delegate(self, sentence: str) -> Optional[SectionAssignment]:
        candidates = {s.id: s.title for s in self._template.sections}
        try:
            result = self.classifier.classify(sentence, candidates)
        except Exception as e:
            logger.warning("Section classifier failed, keeping sentence unclassified: %s", e)
            return None
        if not result:
            return None
        section_id, confidence = result
        try:
            confidence = max(0.0, min(1.0, float(confidence)))
        except (TypeError, ValueError):
            return None
        if section_id not in self._sections or confidence < self.confidence_floor:
            return None
        return SectionAssignment(section_id=section_id, confidence=confidence)

    def _reevaluate(self) -> None:
        self._chars_since_eval = 0
        if len(self._text) <= self.urgency_min_chars:
            return
        analysis = analyze_transcription(self._text, self.lexicon)
        self._urgency = escalate_urgency(self._urgency, analysis.urgency_level)
        self._actions = list(analysis.suggested_tasks)

    # -------------------------
    # Output
    # -------------------------

    def get_snapshot(self) -> StreamingAnalysisResult:
        with self._lock:
            self._require_bound()
            sections = {sid: s.model_copy(deep=True) for sid, s in self._sections.items()}
            total = len(sections)
            populated = sum(1 for s in sections.values() if s.is_populated)
            return StreamingAnalysisResult(
                processed_text=self._text,
                sections=sections,
                suggested_actions=[a.model_copy(deep=True) for a in self._actions],
                urgency_level=self._urgency,
                completeness=(populated / total) if total else 0.0,
                populated_sections=populated,
                total_sections=total,
                unclassified=list(self._unclassified),
                pending_text=self._pending,
                state=self._state,
            )


class ProgressivePopulator:
    """Batch-style population: analyse on a timer or once enough text has buffered."""

    def __init__(
        self,
        template: TemplateLike,
        lexicon: Lexicon = DEFAULT_LEXICON,
        classifier: Optional[SectionClassifier] = None,
        interval_seconds: float = POPULATOR_INTERVAL_SECONDS,
        buffer_chars: int = POPULATOR_BUFFER_CHARS,
        clock: Callable[[], float] = time.monotonic,
        **aggregator_options: Any,
    ):
        self._lock = threading.RLock()
        self._aggregator = StreamingAggregator(
            template,
            lexicon=lexicon,
            classifier=classifier,
            **aggregator_options,
        )
        self.interval_seconds = interval_seconds
        self.buffer_chars = buffer_chars
        self._clock = clock
        self._buffer = ""
        self._last_analysis = clock()

    @property
    def aggregator(self) -> StreamingAggregator:
        return self._aggregator

    @property
    def buffered_text(self) -> str:
        return self._buffer

    def add_transcription_segment(self, text: Any) -> bool:
        """Buffer a segment; returns True when this call triggered an analysis."""
        if not isinstance(text, str) or not text.strip():
            return False
        with self._lock:
            segment = text.strip()
            self._buffer = f"{self._buffer} {segment}" if self._buffer else segment
            now = self._clock()
            if len(self._buffer) > self.buffer_chars or (now - self._last_analysis) >= self.interval_seconds:
                self._analyse(now)
                return True
            return False

    def analyze_now(self) -> None:
        with self._lock:
            self._analyse(self._clock())

    def _analyse(self, now: float) -> None:
        if self._buffer:
            self._aggregator.add_text(self._buffer + " ")
        self._aggregator.flush()
        self._buffer = ""
        self._last_analysis = now

    def get_populated_template(self) -> Dict[str, Dict[str, Any]]:
        snapshot = self._aggregator.get_snapshot()
        return {
            sid: {"content": section.content, "confidence": section.confidence}
            for sid, section in snapshot.sections.items()
            if section.is_populated
        }

    def get_snapshot(self) -> StreamingAnalysisResult:
        return self._aggregator.get_snapshot()

    def reset(self) -> None:
        with self._lock:
            self._buffer = ""
            self._last_analysis = self._clock()
            self._aggregator.reset()
