"""Learning module - preference extraction, storage, caching and application."""

from .applier import PreferenceApplier
from .cache import PreferenceCache
from .engine import PreferenceEngine
from .extractor import SignalExtractor
from .feedback import FeedbackIncorporator
from .patterns import PatternAnalyzer
from .store import PreferenceStore

__all__ = [
    "FeedbackIncorporator",
    "PatternAnalyzer",
    "PreferenceApplier",
    "PreferenceCache",
    "PreferenceEngine",
    "PreferenceStore",
    "SignalExtractor",
]
