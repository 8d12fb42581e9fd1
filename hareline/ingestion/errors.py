"""
Ingestion error hierarchy.

Only operator actions and configuration gates raise. Adapters and
parsers report failures as data (see ``ScrapeResult``) instead.
"""

from typing import List, Optional


class HarelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigValidationError(HarelineError):
    """Raised when a source configuration fails validation."""

    def __init__(self, source_id: str, messages: List[str]):
        self.source_id = source_id
        self.messages = list(messages)
        super().__init__(f"Invalid config for {source_id}: {'; '.join(self.messages)}")


class AdapterNotFoundError(HarelineError):
    """No registered adapter handles the source."""

    def __init__(self, source_type: str, url: Optional[str] = None):
        self.source_type = source_type
        self.url = url
        super().__init__(f"No adapter registered for type {source_type} (url={url})")


class AliasExistsError(HarelineError):
    """Alias creation would overwrite an existing alias."""

    def __init__(self, alias: str, group_id: str):
        self.alias = alias
        self.group_id = group_id
        super().__init__(f'Alias "{alias}" already exists for group {group_id}')


class UnknownGroupError(HarelineError):
    """Referenced group id is not in the directory."""


class InvalidAlertTransition(HarelineError):
    """Alert state machine rejected a transition."""


class UnsafePatternError(HarelineError):
    """An operator-supplied pattern was rejected by the safety check."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Unsafe pattern {pattern!r}: {reason}")
