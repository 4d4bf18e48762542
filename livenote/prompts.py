SECTION_CLASSIFIER_SYSTEM = (
    "You sort single sentences from a live clinical dictation into note sections. "
    "Choose only from the sections offered. Do not invent facts. Return STRICT JSON only."
)

SECTION_CLASSIFIER_USER = (
    "Sentence (verbatim):\n{sentence}\n\n"
    "Candidate sections (id: title):\n{sections}\n\n"
    "Rules:\n"
    "- Pick the single best section id from the list above.\n"
    "- If none fits, use null for section_id.\n"
    "- confidence is a number between 0 and 1.\n"
    'Output: {{"section_id": "<id or null>", "confidence": <number>}}\n'
)
