from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .errors import InvalidTemplate
from .models import TemplateDefinition, TemplateSection


def _section(
    type_: str,
    title: str,
    order: int,
    required: bool = False,
    placeholder: Optional[str] = None,
    keywords: Sequence[str] = (),
) -> TemplateSection:
    return TemplateSection(
        id=f"{type_}_{order}",
        title=title,
        type=type_,
        placeholder=placeholder or f"Enter {title.lower()}...",
        required=required,
        order=order,
        keywords=list(keywords),
    )


GENERAL_CONSULTATION = TemplateDefinition(
    id="general-consultation",
    name="General Consultation",
    description="Standard template for routine medical consultations",
    category="consultation",
    sections=[
        _section("symptoms", "Chief Complaint & Symptoms", 1, True, "What brings the patient in today? Describe presenting symptoms..."),
        _section("history", "Medical History", 2, False, "Relevant medical history, allergies, current medications..."),
        _section("vitals", "Vital Signs", 3, False, "Blood pressure, heart rate, temperature, weight, etc..."),
        _section("examination", "Physical Examination", 4, False, "Examination findings and observations..."),
        _section("diagnosis", "Assessment & Diagnosis", 5, True, "Clinical assessment and working diagnosis..."),
        _section("treatment", "Treatment Plan", 6, True, "Prescribed medications, procedures, and treatment approach..."),
        _section("plan", "Follow-up Plan", 7, False, "Next steps, follow-up appointments, monitoring instructions..."),
    ],
)

PHYSICAL_EXAM = TemplateDefinition(
    id="physical-exam",
    name="Comprehensive Physical Examination",
    description="Detailed template for thorough physical examinations",
    category="examination",
    sections=[
        _section("vitals", "Vital Signs", 1, True, "BP, HR, RR, Temp, O2 Sat, Weight, Height..."),
        _section("examination", "General Appearance", 2, True, "Overall appearance, demeanor, distress level...",
                 ("appearance", "distress", "alert", "well-looking", "unwell")),
        _section("examination", "Head & Neck", 3, False, "HEENT examination findings...",
                 ("head", "neck", "throat", "ears", "eyes", "lymph nodes", "thyroid")),
        _section("examination", "Cardiovascular", 4, False, "Heart sounds, rhythm, murmurs, peripheral pulses...",
                 ("murmur", "heart sounds", "peripheral pulses", "capillary refill")),
        _section("examination", "Respiratory", 5, False, "Lung sounds, breathing pattern, chest movement...",
                 ("chest", "lungs", "crackles", "wheeze", "air entry")),
        _section("examination", "Abdominal", 6, False, "Inspection, palpation, bowel sounds, tenderness...",
                 ("abdomen", "abdominal", "bowel sounds", "guarding", "liver", "spleen")),
        _section("examination", "Neurological", 7, False, "Mental status, reflexes, sensation, motor function...",
                 ("cranial nerves", "reflexes", "power", "gait", "orientated")),
        _section("examination", "Musculoskeletal", 8, False, "Range of motion, strength, deformities...",
                 ("joint", "spine", "deformity", "range of motion")),
        _section("notes", "Additional Findings", 9, False, "Any other relevant examination findings...",
                 ("additional", "incidental", "also noted")),
    ],
)

FOLLOW_UP = TemplateDefinition(
    id="follow-up",
    name="Follow-up Visit",
    description="Template for follow-up appointments and progress reviews",
    category="follow-up",
    sections=[
        _section("symptoms", "Current Status", 1, True, "How is the patient feeling since last visit? Any changes in symptoms?"),
        _section("treatment", "Treatment Compliance", 2, True, "Medication adherence, side effects, treatment response...",
                 ("adherence", "compliance", "side effects", "missed doses")),
        _section("vitals", "Current Vital Signs", 3, False, "Updated vital signs and measurements..."),
        _section("examination", "Focused Examination", 4, False, "Targeted examination based on condition..."),
        _section("diagnosis", "Progress Assessment", 5, True, "Clinical progress, improvement, or concerns...",
                 ("improving", "improved", "worsening", "progress", "stable")),
        _section("treatment", "Treatment Adjustments", 6, False, "Any changes to medications or treatment plan..."),
        _section("plan", "Next Steps", 7, True, "Follow-up schedule, monitoring, patient education..."),
    ],
)

EMERGENCY = TemplateDefinition(
    id="emergency",
    name="Emergency Consultation",
    description="Quick template for urgent medical situations",
    category="emergency",
    sections=[
        _section("symptoms", "Presenting Complaint", 1, True, "Primary emergency complaint and timeline..."),
        _section("vitals", "Emergency Vitals", 2, True, "Critical vital signs and triage assessment..."),
        _section("history", "Relevant History", 3, True, "Pertinent medical history and medications..."),
        _section("examination", "Focused Assessment", 4, True, "Targeted examination findings..."),
        _section("diagnosis", "Emergency Diagnosis", 5, True, "Working diagnosis and differential..."),
        _section("treatment", "Immediate Treatment", 6, True, "Emergency interventions and medications..."),
        _section("plan", "Disposition", 7, True, "Discharge, admission, or transfer plans...",
                 ("discharge", "admit", "admission", "transfer")),
    ],
)

PROCEDURE = TemplateDefinition(
    id="procedure",
    name="Procedure Note",
    description="Documentation template for medical procedures",
    category="procedure",
    sections=[
        _section("text", "Procedure Details", 1, True, "Name of procedure, indication, and consent...",
                 ("procedure", "indication", "consent", "consented")),
        _section("text", "Pre-procedure Assessment", 2, True, "Patient preparation and pre-procedure vitals...",
                 ("pre-procedure", "prepared", "preparation", "fasted", "draped")),
        _section("text", "Procedure Steps", 3, True, "Detailed description of procedure performed...",
                 ("incision", "inserted", "local anaesthetic", "local anesthetic", "sutured", "performed")),
        _section("text", "Findings", 4, False, "Procedure findings and observations...",
                 ("findings", "found", "identified")),
        _section("text", "Complications", 5, False, "Any complications or adverse events...",
                 ("complication", "complications", "adverse event", "blood loss")),
        _section("treatment", "Post-procedure Care", 6, True, "Post-procedure instructions and medications..."),
        _section("plan", "Follow-up Instructions", 7, True, "When to return, warning signs, activity restrictions..."),
    ],
)

BASIC = TemplateDefinition(
    id="basic",
    name="Basic Consultation",
    description="Simple template for quick consultations",
    category="general",
    sections=[
        _section("symptoms", "Symptoms", 1, True, "What symptoms is the patient experiencing?"),
        _section("examination", "Examination", 2, False, "Key examination findings..."),
        _section("diagnosis", "Diagnosis", 3, True, "Clinical diagnosis or assessment..."),
        _section("treatment", "Treatment", 4, True, "Prescribed treatment and medications..."),
        _section("notes", "Notes", 5, False, "Any additional notes or observations..."),
    ],
)

DEFAULT_TEMPLATES: List[TemplateDefinition] = [
    GENERAL_CONSULTATION,
    PHYSICAL_EXAM,
    FOLLOW_UP,
    EMERGENCY,
    PROCEDURE,
    BASIC,
]


def get_template_by_id(template_id: str) -> Optional[TemplateDefinition]:
    for template in DEFAULT_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def get_templates_by_category(category: str) -> List[TemplateDefinition]:
    return [t for t in DEFAULT_TEMPLATES if t.category == category]


def validate_template(template: Union[TemplateDefinition, Mapping[str, Any]]) -> TemplateDefinition:
    """
    Parse and check a template definition.
    Raises InvalidTemplate if it does not parse, has no sections, or repeats a section id.
    """
    if isinstance(template, TemplateDefinition):
        parsed = template
    elif isinstance(template, Mapping):
        try:
            parsed = TemplateDefinition.model_validate(dict(template))
        except ValidationError as e:
            raise InvalidTemplate(f"Template does not parse: {e.error_count()} error(s)") from e
    else:
        raise InvalidTemplate(f"Unsupported template type: {type(template).__name__}")

    if not parsed.sections:
        raise InvalidTemplate(f"Template {parsed.id!r} has no sections")
    seen = set()
    for section in parsed.sections:
        if section.id in seen:
            raise InvalidTemplate(f"Template {parsed.id!r} repeats section id {section.id!r}")
        seen.add(section.id)
    return parsed
