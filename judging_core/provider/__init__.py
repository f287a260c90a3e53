from .base import (
    BackendProvider,
    ConfigsProvider,
    ContestsProvider,
    EntriesProvider,
    ProviderResult,
    ScoresProvider,
    VotersProvider,
    failure,
    success,
)
from .document import DocumentBackendProvider

__all__ = [
    "BackendProvider",
    "ConfigsProvider",
    "ContestsProvider",
    "EntriesProvider",
    "ProviderResult",
    "ScoresProvider",
    "VotersProvider",
    "DocumentBackendProvider",
    "failure",
    "success",
]
