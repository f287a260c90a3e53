from .config import (
    AttributeConfig,
    ConfigItem,
    ContestConfig,
    ValidationResult,
    VoteCategory,
    attributes_to_vote_categories,
    create_empty_breakdown,
    get_attribute_ids,
    get_attribute_max,
    get_attribute_min,
    get_attribute_weight,
    is_valid_attribute_id,
    validate_contest_config,
)
from .errors import (
    BreakdownIssue,
    ConflictError,
    JudgingError,
    NotFoundError,
    ScoreValidationError,
    StorageUnavailableError,
)
from .models import Contest, Entry, ScoreEntry, Voter, generate_id
from .phase import PHASES, accepts_scores, can_transition, next_phase
from .provider import BackendProvider, DocumentBackendProvider, ProviderResult
from .scoring import (
    EntrySummary,
    LeaderboardRow,
    calculate_score,
    calculate_weighted_total,
    rank_entries,
    summarize_entry,
)
from .service import JudgingService, raise_for_result
from .settings import EngineSettings
from .store import DocumentStore, InMemoryDocumentStore, VersionedDocument
from .templates import (
    DEFAULT_TEMPLATES,
    clone_config,
    get_default_template,
    get_effective_config,
    get_template,
    get_template_keys,
    get_template_list,
)
from .transaction import RetryPolicy, run_contest_transaction, submit_score
from .types import Breakdown, ContestDocument, ContestPhase, ScorePayload, VoterRole
from .validation import (
    InputSanitizer,
    ScoreSubmission,
    normalize_legacy_payload,
    normalize_score_payload,
    parse_score_submission,
    validate_breakdown,
)

__all__ = [
    "AttributeConfig",
    "ConfigItem",
    "ContestConfig",
    "ValidationResult",
    "VoteCategory",
    "attributes_to_vote_categories",
    "create_empty_breakdown",
    "get_attribute_ids",
    "get_attribute_max",
    "get_attribute_min",
    "get_attribute_weight",
    "is_valid_attribute_id",
    "validate_contest_config",
    "BreakdownIssue",
    "ConflictError",
    "JudgingError",
    "NotFoundError",
    "ScoreValidationError",
    "StorageUnavailableError",
    "Contest",
    "Entry",
    "ScoreEntry",
    "Voter",
    "generate_id",
    "PHASES",
    "accepts_scores",
    "can_transition",
    "next_phase",
    "BackendProvider",
    "DocumentBackendProvider",
    "ProviderResult",
    "EntrySummary",
    "LeaderboardRow",
    "calculate_score",
    "calculate_weighted_total",
    "rank_entries",
    "summarize_entry",
    "JudgingService",
    "raise_for_result",
    "EngineSettings",
    "DocumentStore",
    "InMemoryDocumentStore",
    "VersionedDocument",
    "DEFAULT_TEMPLATES",
    "clone_config",
    "get_default_template",
    "get_effective_config",
    "get_template",
    "get_template_keys",
    "get_template_list",
    "RetryPolicy",
    "run_contest_transaction",
    "submit_score",
    "Breakdown",
    "ContestDocument",
    "ContestPhase",
    "ScorePayload",
    "VoterRole",
    "InputSanitizer",
    "ScoreSubmission",
    "normalize_legacy_payload",
    "normalize_score_payload",
    "parse_score_submission",
    "validate_breakdown",
]
