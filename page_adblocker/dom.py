"""In-process model of the host page.

The engine only ever reads this model and writes inline style overrides
onto it; element creation, insertion and removal belong to the host.
Tests and the snapshot loader build documents directly.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional

from .errors import StaleElementError

IMPORTANT = "!important"
EVENT_KINDS = ("scroll", "resize")

_UIDS = itertools.count(1)


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(self.width, 0) * max(self.height, 0)


@dataclass
class Viewport:
    width: int = 1280
    height: int = 800


def split_important(value: str) -> tuple[str, bool]:
    text = (value or "").strip()
    if text.endswith(IMPORTANT):
        return text[: -len(IMPORTANT)].strip(), True
    return text, False


class VisualElement:
    def __init__(
        self,
        tag: str,
        *,
        id: str = "",
        classes: str = "",
        attrs: Optional[Dict[str, str]] = None,
        style: Optional[Dict[str, str]] = None,
        rect: Optional[Rect] = None,
        text: str = "",
        children: Optional[List["VisualElement"]] = None,
    ) -> None:
        self.uid = next(_UIDS)
        self.tag = (tag or "div").lower()
        self.id = id
        self.class_name = classes
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.computed: Dict[str, str] = dict(style or {})
        self.inline: Dict[str, str] = {}
        self.rect = rect
        self.text = text
        self.parent: Optional[VisualElement] = None
        self.children: List[VisualElement] = []
        self._owner_document: Optional[Document] = None
        for child in children or ():
            self.append(child)

    def __repr__(self) -> str:
        bits = [self.tag]
        if self.id:
            bits.append(f"#{self.id}")
        if self.class_name:
            bits.append("." + ".".join(self.class_list))
        return f"<VisualElement {''.join(bits)} uid={self.uid}>"

    @property
    def class_list(self) -> List[str]:
        return self.class_name.split()

    def get_attribute(self, name: str) -> Optional[str]:
        if name == "id":
            return self.id or None
        if name == "class":
            return self.class_name or None
        return self.attrs.get(name)

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    def append(self, child: "VisualElement") -> "VisualElement":
        if child.parent is not None:
            child.detach()
        child.parent = self
        self.children.append(child)
        return child

    def detach(self) -> None:
        if self.parent is None:
            return
        try:
            self.parent.children.remove(self)
        except ValueError:
            pass
        self.parent = None

    def iter_ancestors(self) -> Iterator["VisualElement"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def iter_subtree(self) -> Iterator["VisualElement"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def closest(self, predicate: Callable[["VisualElement"], bool]) -> Optional["VisualElement"]:
        if predicate(self):
            return self
        for node in self.iter_ancestors():
            if predicate(node):
                return node
        return None

    @property
    def document(self) -> Optional["Document"]:
        top = self
        while top.parent is not None:
            top = top.parent
        return top._owner_document

    @property
    def is_connected(self) -> bool:
        return self.document is not None

    def siblings(self) -> List["VisualElement"]:
        if self.parent is None:
            return []
        return [c for c in self.parent.children if c is not self]

    def text_content(self) -> str:
        parts = [node.text.strip() for node in self.iter_subtree() if node.text and node.text.strip()]
        return " ".join(parts)

    def bounding_rect(self) -> Rect:
        if not self.is_connected:
            raise StaleElementError(self.uid)
        if self.rect is None:
            raise StaleElementError(self.uid, "element has no layout")
        return self.rect

    def set_inline(self, prop: str, value: str) -> None:
        self.inline[prop] = value

    def remove_inline(self, prop: str) -> None:
        self.inline.pop(prop, None)


@dataclass
class Stylesheet:
    sheet_id: str
    declarations: Dict[str, str]
    matcher: Callable[[VisualElement], bool] = field(default=lambda _el: True)

    def applies_to(self, element: VisualElement) -> bool:
        return bool(self.matcher(element))


@dataclass
class MutationRecord:
    target: VisualElement
    added_nodes: List[VisualElement] = field(default_factory=list)
    removed_nodes: List[VisualElement] = field(default_factory=list)


class Subscription:
    """Handle for a registered callback; ``cancel()`` is idempotent."""

    def __init__(self, registry: List["Subscription"], callback: Callable, kind: str = "") -> None:
        self._registry = registry
        self.callback = callback
        self.kind = kind
        registry.append(self)

    @property
    def active(self) -> bool:
        return self in self._registry

    def cancel(self) -> None:
        try:
            self._registry.remove(self)
        except ValueError:
            pass


class Document:
    def __init__(
        self,
        root: Optional[VisualElement] = None,
        viewport: Optional[Viewport] = None,
    ) -> None:
        self.root = root or VisualElement("html", children=[VisualElement("body")])
        self.root._owner_document = self
        self.viewport = viewport or Viewport()
        self._stylesheets: Dict[str, Stylesheet] = {}
        self._mutation_subs: List[Subscription] = []
        self._event_subs: Dict[str, List[Subscription]] = {kind: [] for kind in EVENT_KINDS}

    @property
    def body(self) -> VisualElement:
        for child in self.root.children:
            if child.tag == "body":
                return child
        return self.root

    def iter_elements(self) -> Iterator[VisualElement]:
        return self.root.iter_subtree()

    def get_element_by_id(self, element_id: str) -> Optional[VisualElement]:
        for node in self.iter_elements():
            if node.id == element_id:
                return node
        return None

    # stylesheets

    def add_stylesheet(self, sheet: Stylesheet) -> None:
        self._stylesheets.pop(sheet.sheet_id, None)
        self._stylesheets[sheet.sheet_id] = sheet

    def remove_stylesheet(self, sheet_id: str) -> bool:
        return self._stylesheets.pop(sheet_id, None) is not None

    def has_stylesheet(self, sheet_id: str) -> bool:
        return sheet_id in self._stylesheets

    def resolve_style(self, element: VisualElement, prop: str, default: str = "") -> str:
        inline = element.inline.get(prop)
        if inline is not None:
            value, important = split_important(inline)
            if important:
                return value
        for sheet in reversed(list(self._stylesheets.values())):
            if prop in sheet.declarations and sheet.applies_to(element):
                return split_important(sheet.declarations[prop])[0]
        if inline is not None:
            return split_important(inline)[0]
        return element.computed.get(prop, default)

    def is_displayed(self, element: VisualElement) -> bool:
        if self.resolve_style(element, "display") == "none":
            return False
        return self.resolve_style(element, "visibility") not in ("hidden", "collapse")

    def is_rendered(self, element: VisualElement) -> bool:
        if element.document is not self:
            return False
        for node in itertools.chain((element,), element.iter_ancestors()):
            if not self.is_displayed(node):
                return False
        return True

    # notifications

    def observe(self, callback: Callable[[List[MutationRecord]], None]) -> Subscription:
        return Subscription(self._mutation_subs, callback, kind="mutation")

    def add_listener(self, kind: str, callback: Callable[[], None]) -> Subscription:
        if kind not in self._event_subs:
            raise ValueError(f"unsupported event kind: {kind!r}")
        return Subscription(self._event_subs[kind], callback, kind=kind)

    def listener_count(self, kind: Optional[str] = None) -> int:
        if kind == "mutation":
            return len(self._mutation_subs)
        if kind is not None:
            return len(self._event_subs.get(kind, []))
        return len(self._mutation_subs) + sum(len(subs) for subs in self._event_subs.values())

    def _notify(self, records: List[MutationRecord]) -> None:
        for sub in list(self._mutation_subs):
            if sub.active:
                sub.callback(records)

    def dispatch(self, kind: str) -> None:
        for sub in list(self._event_subs.get(kind, [])):
            if sub.active:
                sub.callback()

    # host-side mutations

    def insert(self, parent: VisualElement, element: VisualElement) -> VisualElement:
        parent.append(element)
        self._notify([MutationRecord(target=parent, added_nodes=[element])])
        return element

    def remove(self, element: VisualElement) -> None:
        parent = element.parent
        element.detach()
        if parent is not None:
            self._notify([MutationRecord(target=parent, removed_nodes=[element])])

    def scroll_by(self, dy: float) -> None:
        for node in self.iter_elements():
            if node.rect is None:
                continue
            if node.computed.get("position") in ("fixed", "sticky"):
                continue
            node.rect = node.rect._replace(y=node.rect.y - dy)
        self.dispatch("scroll")

    def resize_viewport(self, width: int, height: int) -> None:
        self.viewport = Viewport(width=width, height=height)
        self.dispatch("resize")


__all__ = [
    "IMPORTANT",
    "Rect",
    "Viewport",
    "VisualElement",
    "Stylesheet",
    "MutationRecord",
    "Subscription",
    "Document",
    "split_important",
]
