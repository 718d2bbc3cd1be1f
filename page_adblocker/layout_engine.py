from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .config import SuppressionRules
from .dom import Document, Rect, VisualElement
from .errors import StaleElementError
from .patterns import identity_text, is_excluded
from .suppression import OverrideSnapshot, SuppressionApplier

REPAIR_PROPS = ("width", "max-width", "flex")
SIDEBAR_TAGS = ("aside",)
CONTENT_TAGS = ("main", "article")


def _side_by_side(a: Rect, b: Rect) -> bool:
    vertical_overlap = a.y < b.bottom and b.y < a.bottom
    disjoint = a.right <= b.x or b.right <= a.x
    return vertical_overlap and disjoint


class LayoutEngine:
    """Reclaims the width freed by suppressed sidebars.

    Best effort: unknown layout shapes are skipped silently. Only visible,
    unsuppressed, non-excluded elements are ever resized.
    """

    def __init__(
        self,
        document: Document,
        rules: SuppressionRules,
        logger: logging.Logger,
        applier: SuppressionApplier,
    ) -> None:
        self.document = document
        self.rules = rules
        self.logger = logger
        self.applier = applier
        self._repairs: Dict[int, OverrideSnapshot] = {}
        self._base_width: Dict[int, float] = {}

    @property
    def repaired_count(self) -> int:
        return len(self._repairs)

    def is_repaired(self, element: VisualElement) -> bool:
        return element.uid in self._repairs

    def repair(self) -> int:
        resized = 0
        for sibling, freed in self._collect_sidebar_targets():
            try:
                base = self._base_width.get(sibling.uid) or sibling.bounding_rect().width
                target = min(base + freed, self.rules.readable_max_width_px)
                if target > base and self._apply_width(sibling, target, base):
                    resized += 1
            except StaleElementError as exc:
                self.logger.debug("Layout repair skipped: %s", exc)
        for block in list(self._iter_centered_blocks()):
            try:
                if self._widen_centered(block):
                    resized += 1
            except StaleElementError as exc:
                self.logger.debug("Layout repair skipped: %s", exc)
        return resized

    def can_resize(self, element: VisualElement) -> bool:
        if not self.document.is_rendered(element):
            return False
        if self.applier.is_suppressed_or_inside(element):
            return False
        return not is_excluded(element, self.rules)

    def is_sidebar(self, element: VisualElement) -> bool:
        if element.tag in SIDEBAR_TAGS or element.get_attribute("role") == "complementary":
            return True
        ident = identity_text(element).lower()
        return any(token in ident for token in self.rules.sidebar_tokens)

    def is_column_shaped(self, rect: Rect) -> bool:
        r = self.rules
        if not r.sidebar_min_width_px <= rect.width <= r.sidebar_max_width_px:
            return False
        return rect.height >= r.skyscraper_min_height_px

    def has_visible_content(self, element: VisualElement) -> bool:
        if not self.document.is_rendered(element):
            return False
        media = set(self.rules.media_tags)
        for node in element.iter_subtree():
            if not (node.text.strip() or node.tag in media):
                continue
            if self.document.is_rendered(node) and not self.applier.is_suppressed_or_inside(node):
                return True
        return False

    def _freed_regions(self) -> Iterator[Tuple[VisualElement, Rect]]:
        seen = set()
        for element in self.applier.marked_elements(connected_only=True):
            rect = self.applier.snapshot_rect(element)
            if rect is not None and (self.is_sidebar(element) or self.is_column_shaped(rect)):
                seen.add(element.uid)
                yield element, rect
        for element in self.document.iter_elements():
            if element.uid in seen or element.rect is None:
                continue
            if self.applier.is_suppressed_or_inside(element) or is_excluded(element, self.rules):
                continue
            if self.is_sidebar(element) and not self.has_visible_content(element):
                yield element, element.rect

    def _collect_sidebar_targets(self) -> List[Tuple[VisualElement, float]]:
        freed: Dict[int, float] = {}
        by_uid: Dict[int, VisualElement] = {}
        for region, rect in self._freed_regions():
            best: Optional[VisualElement] = None
            best_width = 0.0
            for sibling in region.siblings():
                if sibling.rect is None or not self.can_resize(sibling):
                    continue
                if not _side_by_side(rect, self._pre_repair_rect(sibling)):
                    continue
                if sibling.rect.width > best_width:
                    best, best_width = sibling, sibling.rect.width
            if best is None:
                continue
            by_uid[best.uid] = best
            freed[best.uid] = freed.get(best.uid, 0.0) + rect.width
        return [(by_uid[uid], width) for uid, width in freed.items()]

    def _pre_repair_rect(self, element: VisualElement) -> Rect:
        rect = element.rect
        base = self._base_width.get(element.uid)
        if rect is not None and base is not None:
            return rect._replace(width=base)
        return rect

    def _iter_centered_blocks(self) -> Iterator[VisualElement]:
        for element in self.document.iter_elements():
            if element.uid in self._repairs or element.rect is None:
                continue
            parent = element.parent
            if parent is None or not any(self.applier.is_marked(c) for c in parent.children):
                continue
            if not self._is_content_block(element) or not self.can_resize(element):
                continue
            yield element

    def _is_content_block(self, element: VisualElement) -> bool:
        if element.tag in CONTENT_TAGS or element.get_attribute("role") == "main":
            return True
        ident = identity_text(element).lower()
        return any(token in ident for token in self.rules.content_tokens)

    def _widen_centered(self, element: VisualElement) -> bool:
        rect = element.bounding_rect()
        r = self.rules
        if rect.width >= r.readable_max_width_px:
            return False
        if self.document.viewport.width - rect.right < r.centered_min_free_px:
            return False
        target = min(r.readable_max_width_px, self.document.viewport.width - rect.x - r.centered_gutter_px)
        if target <= rect.width:
            return False
        return self._apply_width(element, target, rect.width)

    def _apply_width(self, element: VisualElement, target: float, base: float) -> bool:
        value = f"{int(target)}px !important"
        if element.inline.get("width") == value:
            return False
        if element.uid not in self._repairs:
            self._repairs[element.uid] = OverrideSnapshot.capture(element, REPAIR_PROPS)
            self._base_width[element.uid] = base
        element.set_inline("width", value)
        element.set_inline("max-width", value)
        element.set_inline("flex", "1 1 auto !important")
        self.logger.debug("Expanded %r to %spx", element, int(target))
        return True

    def restore_all(self) -> int:
        snapshots = list(self._repairs.values())
        self._repairs.clear()
        self._base_width.clear()
        for snap in snapshots:
            snap.restore()
        return len(snapshots)

    def reset(self) -> None:
        self._repairs.clear()
        self._base_width.clear()


__all__ = ["LayoutEngine", "REPAIR_PROPS"]
