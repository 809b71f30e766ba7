"""Error taxonomy for a page index run.

A document either completes with a full tree or fails with exactly one of
the fatal errors below. Malformed oracle output and unresolved entries are
recovered where they occur and never surface here.
"""


class PageIndexError(Exception):
    """Base class for fatal, document-level failures."""


class ConfigError(PageIndexError):
    """Bad configuration file, option value, or page input."""


class OracleTransportError(PageIndexError):
    """The LLM endpoint kept failing after the retry budget was spent."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class ModeExhaustedError(PageIndexError):
    """Every resolution mode produced unacceptable verification accuracy."""


class TreeValidationError(PageIndexError):
    """The assembled tree broke a range invariant or the output schema."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class MalformedOracleOutput(ValueError):
    """Oracle text that could not be parsed. Caught inside oracle_json."""
