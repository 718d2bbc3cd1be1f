from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import SuppressionRules
from .dom import VisualElement
from .errors import RuleEvaluationError, RuleSyntaxError

_ASCII_WORD_RE = re.compile(r"[a-z0-9]+")
_TAG_RE = re.compile(r"[A-Za-z][A-Za-z0-9-]*")
_CLASS_RE = re.compile(r"\.(-?[A-Za-z_][A-Za-z0-9_-]*)")
_ID_RE = re.compile(r"#(-?[A-Za-z_][A-Za-z0-9_-]*)")
_ATTR_RE = re.compile(
    r"""\[\s*([A-Za-z_][A-Za-z0-9_:.-]*)\s*"""
    r"""(?:([*^$]?=)\s*(?:"([^"]*)"|'([^']*)'|([^\]\s"']+))\s*)?\]"""
)


class PatternType(Enum):
    TAG = "tag"
    CLASS_TOKEN = "class_token"
    ATTR_PRESENT = "attr_present"
    ATTR_EQUALS = "attr_equals"
    ATTR_CONTAINS = "attr_contains"
    ATTR_PREFIX = "attr_prefix"
    ATTR_SUFFIX = "attr_suffix"


_OPERATORS = {
    "=": PatternType.ATTR_EQUALS,
    "*=": PatternType.ATTR_CONTAINS,
    "^=": PatternType.ATTR_PREFIX,
    "$=": PatternType.ATTR_SUFFIX,
}


@dataclass(frozen=True)
class Condition:
    pattern_type: PatternType
    name: str
    value: str = ""

    def test(self, element: VisualElement) -> bool:
        if self.pattern_type == PatternType.TAG:
            return element.tag == self.value
        if self.pattern_type == PatternType.CLASS_TOKEN:
            return self.value in element.class_list
        actual = element.get_attribute(self.name)
        if actual is None:
            return False
        if self.pattern_type == PatternType.ATTR_PRESENT:
            return True
        if self.pattern_type == PatternType.ATTR_EQUALS:
            return actual == self.value
        # CSS treats an empty substring operand as matching nothing.
        if not self.value:
            return False
        if self.pattern_type == PatternType.ATTR_CONTAINS:
            return self.value in actual
        if self.pattern_type == PatternType.ATTR_PREFIX:
            return actual.startswith(self.value)
        if self.pattern_type == PatternType.ATTR_SUFFIX:
            return actual.endswith(self.value)
        return False


def compile_selector(selector: str) -> Tuple[Condition, ...]:
    """Compile a single compound selector (``tag.cls#id[attr*="v"]``)."""
    text = (selector or "").strip()
    if not text:
        raise RuleSyntaxError(selector, "empty selector")
    conditions: List[Condition] = []
    pos = 0
    tag_match = _TAG_RE.match(text, pos)
    if tag_match:
        conditions.append(Condition(PatternType.TAG, "tag", tag_match.group(0).lower()))
        pos = tag_match.end()
    while pos < len(text):
        ch = text[pos]
        if ch == ".":
            m = _CLASS_RE.match(text, pos)
            if not m:
                raise RuleSyntaxError(selector, f"bad class at {pos}")
            conditions.append(Condition(PatternType.CLASS_TOKEN, "class", m.group(1)))
        elif ch == "#":
            m = _ID_RE.match(text, pos)
            if not m:
                raise RuleSyntaxError(selector, f"bad id at {pos}")
            conditions.append(Condition(PatternType.ATTR_EQUALS, "id", m.group(1)))
        elif ch == "[":
            m = _ATTR_RE.match(text, pos)
            if not m:
                raise RuleSyntaxError(selector, f"bad attribute condition at {pos}")
            name, op = m.group(1), m.group(2)
            if op is None:
                conditions.append(Condition(PatternType.ATTR_PRESENT, name))
            else:
                value = next(v for v in m.group(3, 4, 5) if v is not None)
                conditions.append(Condition(_OPERATORS[op], name, value))
        else:
            raise RuleSyntaxError(selector, f"unsupported token {ch!r} at {pos}")
        pos = m.end()
    return tuple(conditions)


@dataclass
class AdPattern:
    selector: str
    conditions: Optional[Tuple[Condition, ...]] = None
    error: str = ""

    @classmethod
    def compile(cls, selector: str) -> "AdPattern":
        try:
            return cls(selector=selector, conditions=compile_selector(selector))
        except RuleSyntaxError as exc:
            return cls(selector=selector, conditions=None, error=str(exc))

    @property
    def valid(self) -> bool:
        return self.conditions is not None

    def matches(self, element: VisualElement) -> bool:
        if not self.conditions:
            return False
        try:
            return all(cond.test(element) for cond in self.conditions)
        except (AttributeError, TypeError, ValueError) as exc:
            raise RuleEvaluationError(f"rule {self.selector!r}: {exc.__class__.__name__}: {exc}") from exc


class PatternMatcher:
    def __init__(self, selectors: Iterable[str], logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.patterns = [AdPattern.compile(s) for s in selectors]
        for pattern in self.invalid_patterns:
            self.logger.warning("Skipping rule: %s", pattern.error)

    @property
    def invalid_patterns(self) -> List[AdPattern]:
        return [p for p in self.patterns if not p.valid]

    def matching_pattern(self, element: VisualElement) -> Optional[AdPattern]:
        for pattern in self.patterns:
            try:
                if pattern.matches(element):
                    return pattern
            except Exception as exc:
                self.logger.debug("Rule skipped on %r (%s)", element, exc)
        return None

    def matches(self, element: VisualElement) -> bool:
        return self.matching_pattern(element) is not None


def contains_ad_token(text: str, tokens: Sequence[str]) -> bool:
    low = (text or "").lower()
    words = set(_ASCII_WORD_RE.findall(low))
    for token in tokens:
        if not token:
            continue
        # Very short ASCII tokens like "ad" should match whole words only.
        if token.isascii() and token.isalnum() and len(token) <= 2:
            if token in words:
                return True
            continue
        if token in low:
            return True
    return False


def identity_text(element: VisualElement) -> str:
    return f"{element.id} {element.class_name}".strip()


def has_ad_marker(element: VisualElement, rules: SuppressionRules) -> bool:
    return contains_ad_token(identity_text(element), rules.ad_marker_tokens_lc)


def is_exclusion_root(element: VisualElement, rules: SuppressionRules) -> bool:
    if element.id and element.id in rules.excluded_root_ids:
        return True
    return any(c in rules.excluded_root_classes for c in element.class_list)


def is_excluded(element: VisualElement, rules: SuppressionRules) -> bool:
    """True for the engine's own UI and the reader overlay, including descendants."""
    return element.closest(lambda n: is_exclusion_root(n, rules)) is not None


__all__ = [
    "PatternType",
    "Condition",
    "AdPattern",
    "PatternMatcher",
    "compile_selector",
    "contains_ad_token",
    "has_ad_marker",
    "identity_text",
    "is_excluded",
    "is_exclusion_root",
]
