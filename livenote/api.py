from __future__ import annotations

import logging
import time
from threading import Lock as ThreadLock
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from livenote.aggregator import StreamingAggregator
from livenote.classifier import build_default_classifier
from livenote.config import SESSION_IDLE_SECONDS
from livenote.entities import assess_symptom_severity, extract_entities, extract_medications
from livenote.errors import InvalidTemplate, NotBound
from livenote.lexicon import load_lexicon
from livenote.models import TemplateDefinition
from livenote.scoring import categorize_content
from livenote.suggestions import analyze_transcription, suggest_template
from livenote.templates import DEFAULT_TEMPLATES, get_template_by_id, validate_template
from livenote.usage_log import usage_logger

# -------------------------
# In-memory session store
# -------------------------
SESSION_STORE: Dict[str, StreamingAggregator] = {}
SESSION_LAST_SEEN: Dict[str, float] = {}
SESSION_LOCK = ThreadLock()

# NOTE: keep router prefixing handled in main.py (include_router(router, prefix="/api"))
router = APIRouter()
logger = logging.getLogger("livenote.api")

LEXICON = load_lexicon()
CLASSIFIER = build_default_classifier()


class TemplateChoicePayload(BaseModel):
    template_id: Optional[str] = None
    template: Optional[Dict[str, Any]] = None


class TextPayload(BaseModel):
    text: str = ""


class CategorizePayload(BaseModel):
    text: str = ""
    template_id: Optional[str] = None
    template: Optional[Dict[str, Any]] = None


def _resolve_template(template_id: Optional[str], template: Optional[Dict[str, Any]]) -> Optional[TemplateDefinition]:
    if template is not None:
        try:
            return validate_template(template)
        except InvalidTemplate as e:
            raise HTTPException(status_code=422, detail=str(e))
    tid = (template_id or "").strip()
    if not tid:
        return None
    found = get_template_by_id(tid)
    if found is None:
        raise HTTPException(status_code=404, detail=f"Template not found: {tid}")
    return found


def _get_session_or_404(session_id: str) -> StreamingAggregator:
    sid = (session_id or "").strip()
    with SESSION_LOCK:
        aggregator = SESSION_STORE.get(sid) if sid else None
        if aggregator is not None:
            SESSION_LAST_SEEN[sid] = time.time()
    if aggregator is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return aggregator


def _evict_idle_sessions(now: float) -> int:
    if SESSION_IDLE_SECONDS <= 0:
        return 0
    with SESSION_LOCK:
        stale = [sid for sid in SESSION_STORE if (now - SESSION_LAST_SEEN.get(sid, now)) >= SESSION_IDLE_SECONDS]
        for sid in stale:
            SESSION_STORE.pop(sid, None)
            SESSION_LAST_SEEN.pop(sid, None)
    if stale:
        logger.info("Evicted %d idle session(s)", len(stale))
    return len(stale)


def _not_bound(e: NotBound) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


# =========================
# Templates
# =========================

@router.get("/templates")
def list_templates():
    return {"templates": [t.model_dump(mode="json") for t in DEFAULT_TEMPLATES]}


@router.post("/templates/suggest")
def suggest_template_endpoint(payload: TextPayload):
    suggestion = suggest_template(payload.text, DEFAULT_TEMPLATES, LEXICON)
    usage_logger.log_event("template_suggest", meta={"matched": suggestion is not None})
    return {"suggestion": suggestion.model_dump(mode="json") if suggestion else None}


# =========================
# Session lifecycle
# =========================

@router.post("/session/create")
def create_session(payload: Optional[TemplateChoicePayload] = None):
    payload = payload or TemplateChoicePayload()
    template = _resolve_template(payload.template_id, payload.template)
    aggregator = StreamingAggregator(template, lexicon=LEXICON, classifier=CLASSIFIER)

    now = time.time()
    _evict_idle_sessions(now)
    session_id = str(uuid4())
    with SESSION_LOCK:
        SESSION_STORE[session_id] = aggregator
        SESSION_LAST_SEEN[session_id] = now
    usage_logger.log_event("session_created", meta={"template_id": template.id if template else None})
    return {"session_id": session_id, "template_id": template.id if template else None}


@router.post("/session/{session_id}/template")
def bind_session_template(session_id: str, payload: TemplateChoicePayload):
    aggregator = _get_session_or_404(session_id)
    template = _resolve_template(payload.template_id, payload.template)
    if template is None:
        raise HTTPException(status_code=422, detail="template_id or template is required")
    aggregator.bind_template(template)
    usage_logger.log_event("template_bound", meta={"template_id": template.id})
    return {"status": "ok", "template_id": template.id}


@router.post("/session/{session_id}/text")
def add_session_text(session_id: str, payload: TextPayload):
    aggregator = _get_session_or_404(session_id)
    try:
        sentences = aggregator.add_text(payload.text)
        snapshot = aggregator.get_snapshot()
    except NotBound as e:
        usage_logger.log_event("text_error", status=409)
        raise _not_bound(e)
    usage_logger.log_event("text", meta={"length": len(payload.text or ""), "sentences": len(sentences)})
    return {
        "sentences": [s.model_dump(mode="json") for s in sentences],
        "snapshot": snapshot.model_dump(mode="json"),
    }


@router.post("/session/{session_id}/flush")
def flush_session(session_id: str):
    aggregator = _get_session_or_404(session_id)
    try:
        sentences = aggregator.flush()
        snapshot = aggregator.get_snapshot()
    except NotBound as e:
        raise _not_bound(e)
    return {
        "sentences": [s.model_dump(mode="json") for s in sentences],
        "snapshot": snapshot.model_dump(mode="json"),
    }


@router.get("/session/{session_id}/snapshot")
def get_session_snapshot(session_id: str):
    aggregator = _get_session_or_404(session_id)
    try:
        return aggregator.get_snapshot().model_dump(mode="json")
    except NotBound as e:
        raise _not_bound(e)


@router.post("/session/{session_id}/reset")
def reset_session(session_id: str):
    aggregator = _get_session_or_404(session_id)
    aggregator.reset()
    usage_logger.log_event("session_reset")
    return {"status": "ok"}


@router.delete("/session/{session_id}")
def delete_session(session_id: str):
    _get_session_or_404(session_id)
    with SESSION_LOCK:
        SESSION_STORE.pop(session_id.strip(), None)
        SESSION_LAST_SEEN.pop(session_id.strip(), None)
    usage_logger.log_event("session_deleted")
    return {"status": "ok"}


# =========================
# Stateless analysis
# =========================

@router.post("/entities")
def extract_entities_endpoint(payload: TextPayload):
    text = payload.text or ""
    entities = extract_entities(text, LEXICON)
    return {
        "entities": [e.model_dump(mode="json") for e in entities],
        "medications": [m.model_dump(mode="json") for m in extract_medications(text, LEXICON)],
        "symptoms": [s.model_dump(mode="json") for s in assess_symptom_severity(text, LEXICON)],
    }


@router.post("/categorize")
def categorize_endpoint(payload: CategorizePayload):
    template = _resolve_template(payload.template_id, payload.template) or DEFAULT_TEMPLATES[0]
    results = categorize_content(payload.text, template.sections, lexicon=LEXICON)
    usage_logger.log_event("categorize", meta={"template_id": template.id, "sections": len(results)})
    return {
        "template_id": template.id,
        "sections": [r.model_dump(mode="json") for r in results],
    }


@router.post("/analyze")
def analyze_endpoint(payload: TextPayload):
    analysis = analyze_transcription(payload.text, LEXICON)
    usage_logger.log_event("analyze", meta={"urgency": analysis.urgency_level})
    if analysis.urgency_level == "urgent":
        logger.info("Urgent transcript flagged (%d tasks)", len(analysis.suggested_tasks))
    return analysis.model_dump(mode="json")
