import os


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() == "1"


# Sentences shorter than this are treated as transcription noise.
MIN_SENTENCE_CHARS = _int_env("LIVENOTE_MIN_SENTENCE_CHARS", 10)

# Hand-tuned; keep configurable rather than "fixing" them.
CONFIDENCE_FLOOR = _float_env("LIVENOTE_CONFIDENCE_FLOOR", 0.3)
SIMILARITY_THRESHOLD = _float_env("LIVENOTE_SIMILARITY_THRESHOLD", 0.8)

# Urgency / task suggestions are refreshed after this many new characters.
REEVALUATE_EVERY_CHARS = _int_env("LIVENOTE_REEVALUATE_EVERY_CHARS", 100)
URGENCY_MIN_CHARS = _int_env("LIVENOTE_URGENCY_MIN_CHARS", 50)

# Batch-style populator: analyse every N seconds or once the buffer passes N chars.
POPULATOR_INTERVAL_SECONDS = _float_env("LIVENOTE_POPULATOR_INTERVAL_SECONDS", 10.0)
POPULATOR_BUFFER_CHARS = _int_env("LIVENOTE_POPULATOR_BUFFER_CHARS", 100)

TEMPLATE_SUGGESTION_FLOOR = _float_env("LIVENOTE_TEMPLATE_SUGGESTION_FLOOR", 0.2)

# API sessions untouched this long are dropped when the next one is created (0 keeps them forever).
SESSION_IDLE_SECONDS = _float_env("LIVENOTE_SESSION_IDLE_SECONDS", 3600.0)

# Optional AI section classifier (off unless explicitly enabled).
AI_CLASSIFIER_ENABLED = _bool_env("LIVENOTE_AI_CLASSIFIER", False)
CLASSIFIER_MODEL = os.getenv("LIVENOTE_CLASSIFIER_MODEL", "gpt-4o-mini")
CLASSIFIER_TEMPERATURE = _float_env("LIVENOTE_CLASSIFIER_TEMPERATURE", 0.0)
CLASSIFIER_TIMEOUT = _float_env("LIVENOTE_CLASSIFIER_TIMEOUT", 20.0)

ENV_LEXICON_PATH = "LIVENOTE_LEXICON_PATH"
