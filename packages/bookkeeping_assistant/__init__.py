"""Public interface for the ``bookkeeping_assistant`` package.

Re-exports the pipeline entry points, the individual classifier stages and
the public models. There is no runtime logic here, only symbol re-exports.
"""

from .ambiguity import find_ambiguous
from .catalog import (
    CatalogError,
    CatalogUnavailable,
    InMemoryCatalog,
    LedgerEntry,
    SqlAlchemyCatalog,
    SubjectCatalog,
    SynonymPersistFailure,
)
from .config import AssistantConfig, load_config
from .matching import levenshtein, match_subject, rank_matches, similarity
from .models import (
    Classified,
    ClassificationFailure,
    ClassificationOutcome,
    LearnOutcome,
    MatchResult,
    ParseError,
    ParseResult,
    PartialData,
    Subject,
    TimeSlot,
)
from .parsing import parse_input
from .pipeline import AssistantContext, classify_and_render, classify_message
from .policy import DEFAULT_POLICY, TIME_SLOTS, MatchPolicy
from .remarks import format_remark
from .responses import render_outcome, render_response
from .synonyms import learn_synonym
from .time_context import resolve_by_time

__all__ = [
    # Pipeline
    "AssistantContext",
    "classify_and_render",
    "classify_message",
    # Stages
    "find_ambiguous",
    "format_remark",
    "learn_synonym",
    "levenshtein",
    "match_subject",
    "parse_input",
    "rank_matches",
    "render_outcome",
    "render_response",
    "resolve_by_time",
    "similarity",
    # Catalog
    "CatalogError",
    "CatalogUnavailable",
    "InMemoryCatalog",
    "LedgerEntry",
    "SqlAlchemyCatalog",
    "SubjectCatalog",
    "SynonymPersistFailure",
    # Config / policy
    "AssistantConfig",
    "DEFAULT_POLICY",
    "MatchPolicy",
    "TIME_SLOTS",
    "load_config",
    # Models
    "Classified",
    "ClassificationFailure",
    "ClassificationOutcome",
    "LearnOutcome",
    "MatchResult",
    "ParseError",
    "ParseResult",
    "PartialData",
    "Subject",
    "TimeSlot",
]
