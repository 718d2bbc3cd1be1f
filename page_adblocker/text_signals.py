from __future__ import annotations

import logging
from typing import Optional

from .config import SuppressionRules
from .dom import Document, Rect, VisualElement
from .patterns import contains_ad_token, is_excluded

REASON_CTA = "caps_cta"
REASON_PHRASE = "promo_phrase"


class TextSignalClassifier:
    """Secondary signal: promotional copy in a box too small to be real content."""

    def __init__(self, document: Document, rules: SuppressionRules, logger: logging.Logger) -> None:
        self.document = document
        self.rules = rules
        self.logger = logger

    def classify(self, element: VisualElement) -> Optional[str]:
        if is_excluded(element, self.rules):
            return None
        if not self.document.is_rendered(element):
            return None
        rect = element.bounding_rect()
        r = self.rules
        if rect.width < r.text_min_box_px or rect.height < r.text_min_box_px:
            return None
        if rect.width > max(r.text_max_width_px, r.cta_max_width_px):
            return None
        if rect.height > max(r.text_max_height_px, r.cta_max_height_px):
            return None
        text = element.text_content()
        if not text:
            return None
        if self._is_caps_cta(text, rect):
            return REASON_CTA
        if contains_ad_token(text, self.rules.promo_phrases_lc) and self._passes_size_heuristic(rect):
            return REASON_PHRASE
        return None

    def matches(self, element: VisualElement) -> bool:
        return self.classify(element) is not None

    def _is_caps_cta(self, text: str, rect: Rect) -> bool:
        r = self.rules
        trimmed = " ".join(text.split())
        if len(trimmed) > r.cta_max_chars or not trimmed.isupper():
            return False
        if rect.width > r.cta_max_width_px or rect.height > r.cta_max_height_px:
            return False
        return any(phrase in trimmed for phrase in r.cta_phrases)

    def _passes_size_heuristic(self, rect: Rect) -> bool:
        r = self.rules
        if rect.width > r.text_max_width_px or rect.height > r.text_max_height_px:
            return False
        viewport_width = self.document.viewport.width
        in_sidebar = (viewport_width - rect.right) <= r.sidebar_reach_px or rect.right <= r.sidebar_reach_px
        return in_sidebar or rect.area <= r.text_compact_area_px


__all__ = ["TextSignalClassifier", "REASON_CTA", "REASON_PHRASE"]
