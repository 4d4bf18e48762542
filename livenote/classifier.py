from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping, Optional, Protocol, Sequence, Tuple, Union

from openai import OpenAI

from .config import AI_CLASSIFIER_ENABLED, CLASSIFIER_MODEL, CLASSIFIER_TEMPERATURE, CLASSIFIER_TIMEOUT
from .prompts import SECTION_CLASSIFIER_SYSTEM, SECTION_CLASSIFIER_USER

logger = logging.getLogger("livenote.classifier")

# Section ids, or an id -> title mapping so the model also sees titles.
Candidates = Union[Sequence[str], Mapping[str, str]]


class SectionClassifier(Protocol):
    """Fallback strategy for sentences the keyword scorer cannot place."""

    def classify(
        self,
        sentence_text: str,
        candidate_section_ids: Candidates,
    ) -> Optional[Tuple[str, float]]:
        ...


def _format_candidates(candidates: Candidates) -> str:
    if isinstance(candidates, Mapping):
        return "\n".join(f"- {sid}: {title}" for sid, title in candidates.items())
    return "\n".join(f"- {sid}" for sid in candidates)


def parse_classifier_output(raw: str, candidate_section_ids: Sequence[str]) -> Optional[Tuple[str, float]]:
    try:
        parsed: Any = json.loads((raw or "").strip())
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    section_id = parsed.get("section_id")
    if not isinstance(section_id, str) or section_id not in candidate_section_ids:
        return None
    try:
        confidence = float(parsed.get("confidence", 0.0))
    except (TypeError, ValueError):
        return None
    return section_id, max(0.0, min(1.0, confidence))


class OpenAISectionClassifier:
    """Chat-completions classifier. The client is created on first use unless injected."""

    def __init__(
        self,
        client: Any = None,
        model: str = CLASSIFIER_MODEL,
        temperature: float = CLASSIFIER_TEMPERATURE,
        timeout: float = CLASSIFIER_TIMEOUT,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"), timeout=self.timeout)
        return self._client

    def classify(
        self,
        sentence_text: str,
        candidate_section_ids: Candidates,
    ) -> Optional[Tuple[str, float]]:
        text = (sentence_text or "").strip()
        if not text or not candidate_section_ids:
            return None
        prompt = SECTION_CLASSIFIER_USER.format(
            sentence=text,
            sections=_format_candidates(candidate_section_ids),
        )
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SECTION_CLASSIFIER_SYSTEM},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        raw = (resp.choices[0].message.content or "").strip()
        result = parse_classifier_output(raw, list(candidate_section_ids))
        if result is None:
            logger.debug("Classifier output unusable: %s", raw[:200])
        return result


def build_default_classifier() -> Optional[SectionClassifier]:
    if not AI_CLASSIFIER_ENABLED:
        return None
    logger.info("AI section classifier enabled (model=%s)", CLASSIFIER_MODEL)
    return OpenAISectionClassifier()
