"""Exception hierarchy for livenote.

Only caller mistakes are errors. Empty input, unmatched sentences and missing
entities are normal outcomes and never raise.
"""


class LiveNoteError(Exception):
    """Base exception for all livenote errors."""


class InvalidTemplate(LiveNoteError):
    """Template has no sections, duplicate section ids, or does not parse."""


class NotBound(LiveNoteError):
    """Text or a snapshot was requested before a template was bound."""
