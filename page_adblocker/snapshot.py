"""JSON tree snapshots: load a document for offline runs, dump one for debugging."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

from .dom import Document, Rect, Viewport, VisualElement
from .errors import SnapshotError

Annotator = Callable[[VisualElement], Dict[str, Any]]

MAX_TREE_DEPTH = 256


def _str_map(value: Any, label: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SnapshotError(f"{label} must be an object")
    return {str(k): str(v) for k, v in value.items()}


def _rect(value: Any) -> Optional[Rect]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        raise SnapshotError(f"rect must be [x, y, width, height], got {value!r}")
    try:
        return Rect(*(float(v) for v in value))
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"rect has a non-numeric value: {value!r}") from exc


def element_from_dict(node: Any, depth: int = 0, max_depth: int = MAX_TREE_DEPTH) -> VisualElement:
    if not isinstance(node, dict):
        raise SnapshotError("node must be an object")
    if depth > max_depth:
        raise SnapshotError(f"tree deeper than {max_depth} levels")
    children = node.get("children") or []
    if not isinstance(children, list):
        raise SnapshotError("children must be a list")
    element = VisualElement(
        str(node.get("tag") or "div"),
        id=str(node.get("id") or ""),
        classes=str(node.get("class") or ""),
        attrs=_str_map(node.get("attrs"), "attrs"),
        style=_str_map(node.get("style"), "style"),
        rect=_rect(node.get("rect")),
        text=str(node.get("text") or ""),
        children=[element_from_dict(child, depth + 1, max_depth) for child in children],
    )
    element.inline.update(_str_map(node.get("inline"), "inline"))
    return element


def document_from_dict(data: Any) -> Document:
    if not isinstance(data, dict) or "root" not in data:
        raise SnapshotError("snapshot must be an object with a 'root' node")
    viewport_raw = data.get("viewport") or {}
    if not isinstance(viewport_raw, dict):
        raise SnapshotError("viewport must be an object")
    try:
        viewport = Viewport(
            width=int(viewport_raw.get("width", Viewport.width)),
            height=int(viewport_raw.get("height", Viewport.height)),
        )
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"viewport size must be numeric ({exc})") from exc
    return Document(root=element_from_dict(data["root"]), viewport=viewport)


def load_document(path: str) -> Document:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as exc:
        raise SnapshotError(f"{path}: invalid JSON ({exc})") from exc
    return document_from_dict(data)


def element_to_dict(
    element: VisualElement,
    annotate: Optional[Annotator] = None,
    depth: int = 0,
    max_depth: int = MAX_TREE_DEPTH,
) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "tag": element.tag,
        "id": element.id,
        "class": element.class_name,
        "attrs": dict(element.attrs),
        "style": dict(element.computed),
        "inline": dict(element.inline),
        "rect": list(element.rect) if element.rect is not None else None,
        "text": element.text,
        "children": [],
    }
    if annotate is not None:
        node.update(annotate(element))
    if depth >= max_depth:
        if element.children:
            node["truncated"] = True
        return node
    node["children"] = [element_to_dict(child, annotate, depth + 1, max_depth) for child in element.children]
    return node


def document_to_dict(document: Document, annotate: Optional[Annotator] = None) -> Dict[str, Any]:
    return {
        "viewport": {"width": document.viewport.width, "height": document.viewport.height},
        "root": element_to_dict(document.root, annotate),
    }


__all__ = [
    "MAX_TREE_DEPTH",
    "element_from_dict",
    "document_from_dict",
    "load_document",
    "element_to_dict",
    "document_to_dict",
]
