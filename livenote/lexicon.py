"""Clinical lexicon: keyword and phrase tables used by scoring, extraction and suggestions.

The tables are plain immutable data. ``DEFAULT_LEXICON`` is built once from the
module-level tables below; callers that need different vocabulary build their
own ``Lexicon`` (or load a JSON override) and pass it explicitly.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .config import ENV_LEXICON_PATH

logger = logging.getLogger("livenote.lexicon")


@dataclass(frozen=True)
class TaskRule:
    type: str
    description: str
    priority: str = "medium"


@dataclass(frozen=True)
class ConditionRule:
    name: str
    keywords: Tuple[str, ...]
    tasks: Tuple[TaskRule, ...]


@dataclass(frozen=True)
class TemplateTrigger:
    keywords: Tuple[str, ...]
    reason: str


# -------------------------
# Section keywords
# -------------------------
# notes/text sections carry no type vocabulary; they only match their own template keywords.

_SECTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "symptoms": (
        "pain", "ache", "hurt", "sore", "tender", "burning", "sharp", "dull", "throbbing",
        "nausea", "vomiting", "fever", "chills", "sweating", "fatigue", "tired", "weak",
        "headache", "migraine", "dizziness", "dizzy", "lightheaded", "faint",
        "cough", "shortness of breath", "difficulty breathing", "wheezing", "chest tightness",
        "rash", "itching", "swelling", "numbness", "tingling", "cramping",
        "constipation", "diarrhea", "bloating", "heartburn", "indigestion",
        "blurred vision", "double vision", "hearing loss", "tinnitus", "ear pain",
        "joint pain", "muscle pain", "back pain", "neck pain", "stiffness",
        "sleep problems", "insomnia", "anxiety", "depression", "mood changes",
        "weight loss", "weight gain", "appetite loss", "increased appetite",
        "palpitations", "irregular heartbeat", "chest pain", "syncope", "presyncope",
    ),
    "diagnosis": (
        "diagnosis", "diagnosed with", "condition", "disease", "disorder", "syndrome",
        "infection", "bacterial", "viral", "fungal", "inflammation", "inflammatory",
        "acute", "chronic", "suspected", "confirmed", "probable", "possible",
        "hypertension", "diabetes", "asthma", "pneumonia", "bronchitis", "sinusitis",
        "arthritis", "osteoporosis", "fracture", "sprain", "strain", "laceration",
        "gastritis", "ulcer", "reflux", "IBS", "UTI", "kidney stones",
        "migraine", "tension headache", "anxiety disorder", "depression",
        "hyperlipidemia", "hypothyroidism", "hyperthyroidism", "anemia",
        "malignancy", "benign", "tumor", "mass", "nodule", "cyst",
    ),
    "treatment": (
        "prescribe", "prescribed", "medication", "medicine", "drug", "tablet", "capsule",
        "mg", "grams", "ml", "dose", "dosage", "twice daily", "once daily", "three times",
        "antibiotic", "pain killer", "analgesic", "anti-inflammatory", "steroid",
        "surgery", "operation", "procedure", "treatment", "therapy", "rehabilitation",
        "physical therapy", "occupational therapy", "counseling", "psychotherapy",
        "lifestyle changes", "diet", "exercise", "rest", "ice", "heat", "compression",
        "referral", "specialist", "consultation", "second opinion",
        "injection", "infusion", "IV", "topical", "ointment", "cream", "gel",
        "inhaler", "nebulizer", "oxygen", "CPAP", "splint", "cast", "brace",
        "aspirin", "paracetamol", "ibuprofen", "warfarin", "metformin", "lisinopril",
        "amlodipine", "atorvastatin", "omeprazole", "losartan", "simvastatin",
        "salbutamol", "prednisolone", "amoxicillin", "doxycycline", "furosemide",
    ),
    "vitals": (
        "blood pressure", "BP", "systolic", "diastolic", "mmHg",
        "heart rate", "HR", "pulse", "beats per minute", "bpm", "rhythm",
        "temperature", "temp", "fever", "celsius", "fahrenheit", "degrees",
        "respiratory rate", "RR", "breathing rate", "breaths per minute",
        "oxygen saturation", "O2 sat", "SpO2", "pulse ox",
        "weight", "kg", "pounds", "lbs", "BMI", "body mass index",
        "height", "cm", "inches", "feet", "tall", "short",
    ),
    "history": (
        "history", "previous", "past", "prior", "family history", "medical history",
        "surgical history", "allergies", "allergic to", "adverse reaction",
        "current medications", "taking", "on medication", "chronic condition",
        "hospitalization", "hospital", "admission", "surgery", "operation",
        "mother", "father", "sibling", "parent", "grandparent", "family member",
        "genetic", "hereditary", "runs in family", "family history of",
        "smoking", "alcohol", "drugs", "substance use", "social history",
    ),
    "examination": (
        "examination", "exam", "inspect", "inspection", "observe", "observation",
        "palpation", "palpate", "feel", "touch", "pressure",
        "auscultation", "listen", "heart sounds", "lung sounds", "bowel sounds",
        "percussion", "tap", "dull", "resonant", "tympanic",
        "normal", "abnormal", "unremarkable", "remarkable", "significant",
        "tender", "non-tender", "soft", "firm", "hard", "enlarged", "swollen",
        "symmetrical", "asymmetrical", "equal", "unequal", "bilateral",
        "clear", "cloudy", "red", "pale", "cyanotic", "jaundiced",
        "range of motion", "ROM", "flexibility", "strength", "weakness",
        "reflexes", "sensation", "numbness", "tingling", "coordination",
    ),
    "plan": (
        "plan", "follow-up", "return", "come back", "schedule", "appointment",
        "next visit", "recheck", "monitor", "watch", "observe", "track",
        "continue", "stop", "discontinue", "increase", "decrease", "adjust",
        "lab work", "blood test", "urine test", "X-ray", "MRI", "CT scan",
        "ultrasound", "EKG", "ECG", "stress test", "colonoscopy", "mammogram",
        "education", "instruct", "teach", "explain", "discuss", "counsel",
        "warning signs", "red flags", "when to call", "emergency", "urgent",
        "prognosis", "outlook", "expected", "recovery", "healing",
    ),
    "notes": (),
    "text": (),
}

_MEDICATIONS: Tuple[str, ...] = (
    "aspirin", "paracetamol", "acetaminophen", "ibuprofen", "diclofenac",
    "warfarin", "heparin", "metformin", "insulin", "glimepiride",
    "lisinopril", "enalapril", "amlodipine", "nifedipine", "atenolol",
    "atorvastatin", "simvastatin", "omeprazole", "lansoprazole", "ranitidine",
    "salbutamol", "beclomethasone", "prednisolone", "hydrocortisone",
    "amoxicillin", "doxycycline", "ciprofloxacin", "azithromycin",
    "furosemide", "hydrochlorothiazide", "spironolactone", "losartan",
)

_PROCEDURES: Tuple[str, ...] = (
    "blood test", "urine test", "ECG", "EKG", "echocardiogram", "stress test",
    "X-ray", "ultrasound", "CT scan", "MRI scan", "mammogram", "colonoscopy",
    "endoscopy", "biopsy", "surgery", "operation", "angioplasty", "bypass",
    "catheterization", "dialysis", "chemotherapy", "radiotherapy",
    "physiotherapy", "occupational therapy", "vaccination", "immunization",
    "injection", "infusion", "transfusion", "intubation", "tracheostomy",
    "appendectomy", "cholecystectomy", "hysterectomy", "arthroscopy",
    "lumbar puncture", "bone marrow biopsy", "skin graft", "wound suturing",
)

_DEVICES: Tuple[str, ...] = (
    "stethoscope", "blood pressure cuff", "thermometer", "pulse oximeter",
    "ECG machine", "defibrillator", "pacemaker", "insulin pump",
    "hearing aid", "CPAP machine", "ventilator", "oxygen concentrator",
    "nebulizer", "inhaler", "spacer device", "peak flow meter",
    "glucometer", "blood glucose monitor", "wheelchair", "walker",
    "crutches", "compression stockings", "tens unit", "ultrasound",
    "X-ray machine", "MRI scanner", "CT scanner", "catheter",
    "stent", "prosthesis", "orthotic device", "brace", "splint",
)

_CONTEXTUAL_CUES: Dict[str, Tuple[str, ...]] = {
    "symptoms": ("complain", "report", "feel", "experience"),
    "diagnosis": ("assess", "diagnos", "condition", "impression"),
    "treatment": ("recommend", "prescrib", "treat", "therapy"),
    "examination": ("exam", "find", "appear", "normal"),
    "plan": ("follow", "return", "next", "continue"),
    "history": ("history", "previous", "past", "allerg"),
}

# Numeric shapes that suggest a vital-sign sentence (blood pressure ratio, unit-bearing numbers).
_VITAL_CUE_PATTERNS: Tuple[str, ...] = (
    r"\d+\s*/\s*\d+",
    r"\d+\s*(?:bpm|mmhg|degrees|°|kg|lbs|%)",
)

# Words ignored when comparing fragments for near-duplicates. Negations never belong here.
_FILLER_WORDS: Tuple[str, ...] = (
    "a", "an", "the", "of", "to", "and", "with", "for", "at", "in", "on", "some",
    "patient", "pt", "he", "she", "they", "his", "her", "their", "this", "that",
    "is", "was", "are", "were", "be", "been", "has", "have", "had", "having",
    "report", "reports", "reported", "reporting",
    "complain", "complains", "complained", "complaining",
    "state", "states", "stated", "say", "says", "said",
    "describe", "describes", "described", "mention", "mentions", "mentioned",
    "note", "notes", "noted", "present", "presents", "presented", "presenting",
    "today", "currently", "also",
)

_RED_FLAGS: Tuple[str, ...] = (
    "chest pain", "heart attack", "stroke", "seizure", "unconscious", "emergency",
    "severe pain", "bleeding", "difficulty breathing", "allergic reaction",
)

_SEVERITY_TERMS: Dict[str, Tuple[str, ...]] = {
    "severe": ("severe", "excruciating", "unbearable", "intense", "agonizing", "10/10", "9/10", "8/10"),
    "moderate": ("moderate", "significant", "noticeable", "6/10", "7/10", "5/10"),
    "mild": ("mild", "slight", "minor", "minimal", "1/10", "2/10", "3/10", "4/10"),
}

# Keyed by template category; a template id with the same name also matches.
_TEMPLATE_TRIGGERS: Dict[str, TemplateTrigger] = {
    "emergency": TemplateTrigger(("emergency", "urgent", "severe", "acute"), "emergency keywords detected"),
    "follow-up": TemplateTrigger(("follow", "return", "progress", "better"), "follow-up indicators found"),
    "examination": TemplateTrigger(("examination", "physical", "inspect", "palpat"), "examination terminology present"),
    "procedure": TemplateTrigger(("procedure", "surgery", "operation", "inject"), "procedure-related content"),
}

_CONDITION_RULES: Tuple[ConditionRule, ...] = (
    ConditionRule(
        "cardiology",
        ("heart", "cardiac", "chest pain", "palpitations", "arrhythmia", "hypertension", "blood pressure"),
        (
            TaskRule("imaging", "ECG (Electrocardiogram)", "medium"),
            TaskRule("lab-test", "Cardiac enzymes blood test", "medium"),
        ),
    ),
    ConditionRule(
        "diabetes",
        ("diabetes", "blood sugar", "glucose", "insulin", "diabetic", "hba1c"),
        (
            TaskRule("lab-test", "HbA1c blood test", "medium"),
            TaskRule("lab-test", "Fasting glucose test", "medium"),
            TaskRule("follow-up", "3-month diabetes follow-up", "medium"),
        ),
    ),
    ConditionRule(
        "respiratory",
        ("cough", "shortness of breath", "asthma", "pneumonia", "bronchitis", "chest infection"),
        (
            TaskRule("imaging", "Chest X-ray", "medium"),
            TaskRule("lab-test", "Sputum culture", "low"),
        ),
    ),
    ConditionRule(
        "hypertension",
        ("high blood pressure", "hypertension", "bp", "systolic", "diastolic"),
        (
            TaskRule("follow-up", "Blood pressure monitoring follow-up in 2 weeks", "medium"),
            TaskRule("lab-test", "Kidney function tests", "low"),
        ),
    ),
    ConditionRule(
        "mental health",
        ("depression", "anxiety", "stress", "mental health", "mood", "psychiatrist"),
        (
            TaskRule("referral", "Psychiatrist referral", "medium"),
            TaskRule("follow-up", "Mental health follow-up in 2 weeks", "high"),
        ),
    ),
    ConditionRule(
        "pain",
        ("pain", "chronic pain", "arthritis", "joint pain", "back pain", "headache"),
        (
            TaskRule("imaging", "MRI or X-ray for pain assessment", "low"),
            TaskRule("referral", "Physiotherapy referral", "low"),
        ),
    ),
)

_FOLLOW_UP_INDICATORS: Tuple[str, ...] = (
    "follow up", "follow-up", "come back", "return", "see you", "next visit",
    "weeks", "months", "monitor", "check", "review",
)

_MEDICATION_MENTIONS: Tuple[str, ...] = ("medication", "prescription", "pills", "tablets")

_REFERRAL_MENTIONS: Tuple[str, ...] = ("refer", "specialist", "cardiologist", "neurologist")

# Dictation abbreviations whose trailing period does not end a sentence.
_ABBREVIATIONS: Tuple[str, ...] = (
    "dr", "drs", "mr", "mrs", "ms", "pt", "pts", "approx", "e.g", "i.e", "vs",
)


def _freeze_map(raw: Mapping[str, Iterable[str]]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({str(k): tuple(v) for k, v in raw.items()})


@dataclass(frozen=True)
class Lexicon:
    section_keywords: Mapping[str, Tuple[str, ...]]
    medications: Tuple[str, ...]
    procedures: Tuple[str, ...]
    devices: Tuple[str, ...]
    contextual_cues: Mapping[str, Tuple[str, ...]]
    vital_cue_patterns: Tuple[str, ...]
    filler_words: frozenset
    red_flags: Tuple[str, ...]
    severity_terms: Mapping[str, Tuple[str, ...]]
    template_triggers: Mapping[str, TemplateTrigger]
    condition_rules: Tuple[ConditionRule, ...]
    follow_up_indicators: Tuple[str, ...] = field(default=_FOLLOW_UP_INDICATORS)
    medication_mentions: Tuple[str, ...] = field(default=_MEDICATION_MENTIONS)
    referral_mentions: Tuple[str, ...] = field(default=_REFERRAL_MENTIONS)
    abbreviations: frozenset = field(default=frozenset(_ABBREVIATIONS))

    def keywords_for(self, section_type: str) -> Tuple[str, ...]:
        return self.section_keywords.get(section_type, ())

    def cues_for(self, section_type: str) -> Tuple[str, ...]:
        return self.contextual_cues.get(section_type, ())

    def is_known_medication(self, name: str) -> bool:
        low = (name or "").strip().lower()
        if not low:
            return False
        return any(med in low or (len(low) > 3 and low in med) for med in self.medications)


def build_default_lexicon() -> Lexicon:
    return Lexicon(
        section_keywords=_freeze_map(_SECTION_KEYWORDS),
        medications=_MEDICATIONS,
        procedures=_PROCEDURES,
        devices=_DEVICES,
        contextual_cues=_freeze_map(_CONTEXTUAL_CUES),
        vital_cue_patterns=_VITAL_CUE_PATTERNS,
        filler_words=frozenset(_FILLER_WORDS),
        red_flags=_RED_FLAGS,
        severity_terms=_freeze_map(_SEVERITY_TERMS),
        template_triggers=MappingProxyType(dict(_TEMPLATE_TRIGGERS)),
        condition_rules=_CONDITION_RULES,
    )


DEFAULT_LEXICON = build_default_lexicon()


def _str_tuple(raw: Any) -> Tuple[str, ...]:
    if not isinstance(raw, list):
        raise ValueError("expected a list of strings")
    return tuple(str(x).strip() for x in raw if str(x).strip())


def _parse_condition_rules(raw: Any) -> Tuple[ConditionRule, ...]:
    rules = []
    for row in raw or []:
        if not isinstance(row, dict):
            continue
        name = str(row.get("name") or "").strip()
        if not name:
            continue
        tasks = tuple(
            TaskRule(
                type=str(t.get("type") or "other"),
                description=str(t.get("description") or "").strip(),
                priority=str(t.get("priority") or "medium"),
            )
            for t in (row.get("tasks") or [])
            if isinstance(t, dict) and t.get("description")
        )
        rules.append(ConditionRule(name=name, keywords=_str_tuple(row.get("keywords") or []), tasks=tasks))
    return tuple(rules)


def _parse_triggers(raw: Any) -> Mapping[str, TemplateTrigger]:
    out: Dict[str, TemplateTrigger] = {}
    for key, row in (raw or {}).items():
        if not isinstance(row, dict):
            continue
        out[str(key)] = TemplateTrigger(
            keywords=_str_tuple(row.get("keywords") or []),
            reason=str(row.get("reason") or f"{key} keywords detected"),
        )
    return MappingProxyType(out)


def lexicon_from_dict(data: Dict[str, Any], base: Optional[Lexicon] = None) -> Lexicon:
    """Overlay the tables present in ``data`` onto ``base`` (default lexicon)."""
    base = base or DEFAULT_LEXICON
    changes: Dict[str, Any] = {}

    if "section_keywords" in data:
        merged = dict(base.section_keywords)
        merged.update({k: _str_tuple(v) for k, v in (data["section_keywords"] or {}).items()})
        changes["section_keywords"] = MappingProxyType(merged)
    if "contextual_cues" in data:
        merged = dict(base.contextual_cues)
        merged.update({k: _str_tuple(v) for k, v in (data["contextual_cues"] or {}).items()})
        changes["contextual_cues"] = MappingProxyType(merged)
    if "severity_terms" in data:
        changes["severity_terms"] = _freeze_map({k: _str_tuple(v) for k, v in data["severity_terms"].items()})
    for name in (
        "medications",
        "procedures",
        "devices",
        "vital_cue_patterns",
        "red_flags",
        "follow_up_indicators",
        "medication_mentions",
        "referral_mentions",
    ):
        if name in data:
            changes[name] = _str_tuple(data[name])
    if "filler_words" in data:
        changes["filler_words"] = frozenset(w.lower() for w in _str_tuple(data["filler_words"]))
    if "abbreviations" in data:
        changes["abbreviations"] = frozenset(w.lower().rstrip(".") for w in _str_tuple(data["abbreviations"]))
    if "template_triggers" in data:
        changes["template_triggers"] = _parse_triggers(data["template_triggers"])
    if "condition_rules" in data:
        changes["condition_rules"] = _parse_condition_rules(data["condition_rules"])

    return replace(base, **changes) if changes else base


def load_lexicon(path_override: Optional[str] = None) -> Lexicon:
    """
    Load a lexicon from a JSON override file.
    Falls back to the default lexicon when no file is configured or it cannot be read.
    """
    path = path_override or (os.getenv(ENV_LEXICON_PATH) or "").strip()
    if not path:
        return DEFAULT_LEXICON
    if not os.path.exists(path):
        logger.warning("Lexicon override not found at %s; using defaults", path)
        return DEFAULT_LEXICON
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("lexicon file must contain a JSON object")
        lexicon = lexicon_from_dict(data)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Failed to load lexicon override %s: %s", path, e)
        return DEFAULT_LEXICON
    logger.info("Loaded lexicon override from %s", path)
    return lexicon
