from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import SuppressionRules
from .dom import Document, Rect, VisualElement
from .patterns import contains_ad_token, has_ad_marker, is_excluded

FLOATING_POSITIONS = ("fixed", "sticky")

REASON_BOTTOM = "bottom_banner"
REASON_RIGHT = "right_sidebar"
REASON_LEFT = "left_sidebar"


def _in_range(value: float, low: float, high: float) -> bool:
    return low <= value <= high


def contains_tag(element: VisualElement, tags: Sequence[str]) -> bool:
    wanted = set(tags)
    return any(node.tag in wanted for node in element.iter_subtree())


class GeometryClassifier:
    """Flags fixed/sticky banners, floating players and skyscraper sidebars.

    Reads live layout on every call; a detached element raises
    ``StaleElementError`` and the caller skips it.
    """

    def __init__(self, document: Document, rules: SuppressionRules, logger: logging.Logger) -> None:
        self.document = document
        self.rules = rules
        self.logger = logger

    def is_candidate(self, element: VisualElement) -> bool:
        return self.document.resolve_style(element, "position") in FLOATING_POSITIONS

    def classify(self, element: VisualElement) -> Optional[str]:
        if is_excluded(element, self.rules):
            return None
        if not self.is_candidate(element):
            return None
        rect = element.bounding_rect()
        if self._is_bottom_banner(element, rect):
            return REASON_BOTTOM
        if self._is_right_sidebar(element, rect):
            return REASON_RIGHT
        if self._is_left_sidebar(element, rect):
            return REASON_LEFT
        return None

    def matches(self, element: VisualElement) -> bool:
        return self.classify(element) is not None

    def _is_bottom_banner(self, element: VisualElement, rect: Rect) -> bool:
        r = self.rules
        if abs(self.document.viewport.height - rect.bottom) > r.bottom_margin_px:
            return False
        if not _in_range(rect.height, r.bottom_min_height_px, r.bottom_max_height_px):
            return False
        if contains_tag(element, r.media_tags):
            return True
        if contains_ad_token(element.text_content(), r.promo_phrases_lc):
            return True
        # Floating video players are usually a small fixed box.
        return _in_range(rect.width, r.player_min_width_px, r.player_max_width_px)

    def _sidebar_signal(self, element: VisualElement, rect: Rect) -> bool:
        r = self.rules
        if contains_tag(element, r.embedded_tags):
            return True
        if has_ad_marker(element, r):
            return True
        return rect.height > r.skyscraper_min_height_px and rect.width < r.skyscraper_max_width_px

    def _is_right_sidebar(self, element: VisualElement, rect: Rect) -> bool:
        r = self.rules
        if self.document.viewport.width - rect.right > r.sidebar_reach_px:
            return False
        if not _in_range(rect.width, r.sidebar_min_width_px, r.sidebar_max_width_px):
            return False
        return self._sidebar_signal(element, rect)

    def _is_left_sidebar(self, element: VisualElement, rect: Rect) -> bool:
        r = self.rules
        if rect.right > r.sidebar_reach_px:
            return False
        if not _in_range(rect.width, r.sidebar_min_width_px, r.sidebar_max_width_px):
            return False
        return self._sidebar_signal(element, rect)


__all__ = ["GeometryClassifier", "contains_tag", "FLOATING_POSITIONS", "REASON_BOTTOM", "REASON_RIGHT", "REASON_LEFT"]
