"""Exception hierarchy for the personalization engine.

Components raise these; ``PreferenceEngine`` catches them at each operation
boundary and degrades to a safe default.
"""


class PersonalizationError(Exception):
    """Base class for all engine failures."""


class SignalExtractionError(PersonalizationError):
    """Input could not be analysed (empty or malformed message)."""


class StoreUnavailable(PersonalizationError):
    """Backing persistence is unreachable or returned an error."""


class CacheCorruption(StoreUnavailable):
    """A cached entry failed validation and must be refetched."""


class ApplicationError(PersonalizationError):
    """Computing an effective generation context failed."""
