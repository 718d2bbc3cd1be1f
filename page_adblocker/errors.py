"""Exception hierarchy for the suppression engine.

None of these escape the public engine contract: they are raised inside a
sweep, caught at the element or trigger boundary, and logged.
"""

from __future__ import annotations


class AdBlockerError(Exception):
    """Base exception for all engine errors."""


class RuleSyntaxError(AdBlockerError):
    """A compiled-in selector rule could not be parsed."""

    def __init__(self, selector: str, reason: str) -> None:
        super().__init__(f"invalid selector {selector!r}: {reason}")
        self.selector = selector
        self.reason = reason


class RuleEvaluationError(AdBlockerError):
    """A rule raised while being evaluated against one element."""


class StaleElementError(AdBlockerError):
    """The element left the tree or lost its layout mid-evaluation."""

    def __init__(self, uid: int, message: str = "element is detached") -> None:
        super().__init__(f"{message} (uid={uid})")
        self.uid = uid


class TriggerError(AdBlockerError):
    """A scheduled trigger (timer, mutation, scroll) failed."""

    def __init__(self, trigger: str, cause: BaseException) -> None:
        super().__init__(f"{trigger}: {cause.__class__.__name__}: {cause}")
        self.trigger = trigger
        self.cause = cause


class SnapshotError(AdBlockerError):
    """A tree snapshot file is malformed."""


__all__ = [
    "AdBlockerError",
    "SnapshotError",
    "RuleSyntaxError",
    "RuleEvaluationError",
    "StaleElementError",
    "TriggerError",
]
