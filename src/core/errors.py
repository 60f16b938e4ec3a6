"""Error taxonomy for the grouping pipeline.

Most of these never escape the core: they are raised at a boundary and
converted into an empty stage result or a per-item notification.
"""

from __future__ import annotations


class TabGrouperError(Exception):
    """Base class for all tabgrouper errors."""


class ConfigurationMissing(TabGrouperError):
    """The AI classifier has no credential; treated as a skip, not a failure."""


class ClassifierFailure(TabGrouperError):
    """Network, HTTP or parse error from the AI classifier."""


class RuleCompileError(TabGrouperError):
    """A custom rule pattern is not a valid regular expression."""

    def __init__(self, rule_name: str, pattern: str, reason: str) -> None:
        super().__init__(f"Rule {rule_name!r} has an invalid pattern {pattern!r}: {reason}")
        self.rule_name = rule_name
        self.pattern = pattern


class StoreOperationFailure(TabGrouperError):
    """The tab store rejected a group, ungroup or update command."""


class SnapshotStaleness(StoreOperationFailure):
    """A tab or group referenced by a snapshot no longer exists."""
