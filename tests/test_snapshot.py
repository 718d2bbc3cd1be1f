import json
from pathlib import Path

import pytest

from page_adblocker.dom import Rect
from page_adblocker.errors import SnapshotError
from page_adblocker.snapshot import document_from_dict, document_to_dict, element_to_dict, load_document


def _snapshot():
    return {
        "viewport": {"width": 1024, "height": 700},
        "root": {
            "tag": "html",
            "children": [
                {
                    "tag": "body",
                    "rect": [0, 0, 1024, 2000],
                    "children": [
                        {
                            "tag": "div",
                            "id": "slot",
                            "class": "ad-slot",
                            "attrs": {"data-ad": "1"},
                            "style": {"position": "fixed"},
                            "inline": {"color": "red"},
                            "rect": [0, 600, 300, 100],
                            "text": "Sponsored",
                        }
                    ],
                }
            ],
        },
    }


def test_load_document_from_file(tmp_path: Path):
    path = tmp_path / "page.json"
    path.write_text(json.dumps(_snapshot()), encoding="utf-8")

    doc = load_document(str(path))
    slot = doc.get_element_by_id("slot")
    assert doc.viewport.width == 1024
    assert doc.viewport.height == 700
    assert slot.class_list == ["ad-slot"]
    assert slot.get_attribute("data-ad") == "1"
    assert slot.rect == Rect(0, 600, 300, 100)
    assert slot.inline == {"color": "red"}
    assert slot.is_connected


def test_dump_includes_annotations():
    doc = document_from_dict(_snapshot())
    data = document_to_dict(doc, annotate=lambda el: {"uid": el.uid})
    slot = data["root"]["children"][0]["children"][0]
    assert slot["id"] == "slot"
    assert slot["rect"] == [0.0, 600.0, 300.0, 100.0]
    assert slot["uid"] == doc.get_element_by_id("slot").uid


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"viewport": {}},
        {"root": "html"},
        {"root": {"tag": "html", "children": "nope"}},
        {"root": {"tag": "div", "rect": [1, 2, 3]}},
        {"root": {"tag": "div", "rect": [1, 2, "x", 4]}},
        {"root": {"tag": "div", "attrs": ["a"]}},
        {"viewport": {"width": "wide"}, "root": {"tag": "html"}},
    ],
)
def test_malformed_snapshots_raise(data):
    with pytest.raises(SnapshotError):
        document_from_dict(data)


def test_invalid_json_raises_snapshot_error(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{nope", encoding="utf-8")
    with pytest.raises(SnapshotError):
        load_document(str(path))


def test_dump_marks_truncated_subtrees():
    doc = document_from_dict(_snapshot())
    data = document_to_dict(doc)
    assert "truncated" not in data["root"]

    body = element_to_dict(doc.body, max_depth=0)
    assert body["children"] == []
    assert body["truncated"] is True
