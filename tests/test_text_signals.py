import logging

from page_adblocker.config import SuppressionRules
from page_adblocker.dom import Document, Rect, Viewport, VisualElement
from page_adblocker.text_signals import REASON_CTA, REASON_PHRASE, TextSignalClassifier


def _doc(*children):
    body = VisualElement("body", rect=Rect(0, 0, 1280, 3000), children=list(children))
    doc = Document(VisualElement("html", children=[body]), Viewport(1280, 800))
    return doc, TextSignalClassifier(doc, SuppressionRules(), logging.getLogger("test"))


def test_caps_cta_button_alone_is_enough():
    button = VisualElement("button", rect=Rect(600, 400, 60, 30), text="EXPLORE NOW")
    doc, text = _doc(button)
    assert text.classify(button) == REASON_CTA


def test_mixed_case_cta_needs_size_heuristic():
    button = VisualElement("button", rect=Rect(600, 400, 120, 40), text="Shop now")
    doc, text = _doc(button)
    assert text.classify(button) == REASON_PHRASE


def test_phrase_in_large_content_block_is_not_enough():
    article = VisualElement("article", rect=Rect(100, 0, 800, 2000), text="This story was sponsored by nobody.")
    doc, text = _doc(article)
    assert text.classify(article) is None


def test_phrase_in_mid_sized_box_depends_on_sidebar_zone():
    centered = VisualElement("div", rect=Rect(400, 200, 450, 400), text="Sponsored")
    at_edge = VisualElement("div", rect=Rect(820, 200, 450, 400), text="Sponsored")
    doc, text = _doc(centered, at_edge)
    assert text.classify(centered) is None
    assert text.classify(at_edge) == REASON_PHRASE


def test_tiny_and_hidden_elements_are_ignored():
    tiny = VisualElement("span", rect=Rect(0, 0, 5, 5), text="AD")
    hidden = VisualElement("div", rect=Rect(0, 0, 100, 40), style={"display": "none"}, text="SHOP NOW")
    doc, text = _doc(tiny, hidden)
    assert text.classify(tiny) is None
    assert text.classify(hidden) is None


def test_long_caps_text_is_not_a_cta():
    banner = VisualElement(
        "div",
        rect=Rect(600, 400, 290, 70),
        text="PLEASE READ OUR UPDATED TERMS BEFORE YOU SIGN UP FOR ANYTHING",
    )
    doc, text = _doc(banner)
    assert text.classify(banner) is None


def test_excluded_ui_is_never_flagged():
    button = VisualElement("button", rect=Rect(600, 400, 60, 30), text="EXPLORE NOW")
    toolbar = VisualElement("div", id="zenweb-toolbar", children=[button])
    doc, text = _doc(toolbar)
    assert text.classify(button) is None
