from .aggregator import ProgressivePopulator, StreamingAggregator
from .entities import extract_entities
from .errors import InvalidTemplate, LiveNoteError, NotBound
from .lexicon import DEFAULT_LEXICON, Lexicon, load_lexicon
from .scoring import assign_best_section, score_section
from .segmenter import segment_sentences
from .templates import DEFAULT_TEMPLATES, get_template_by_id

__all__ = [
    "DEFAULT_LEXICON",
    "DEFAULT_TEMPLATES",
    "InvalidTemplate",
    "Lexicon",
    "LiveNoteError",
    "NotBound",
    "ProgressivePopulator",
    "StreamingAggregator",
    "assign_best_section",
    "extract_entities",
    "get_template_by_id",
    "load_lexicon",
    "score_section",
    "segment_sentences",
]
