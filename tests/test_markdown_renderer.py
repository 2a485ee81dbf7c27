"""Tests for markdown rendering with annotation highlights."""

from glossa.storage import Annotation
from glossa.utils.markdown_renderer import (
    annotation_id_from_href,
    markdown_to_html,
    render_markdown,
    strip_markdown,
)


def annotation(text, annotation_id):
    return Annotation(id=annotation_id, text=text, explanation="")


def test_plain_markdown():
    html = markdown_to_html("Some **bold** text")
    assert "<strong>bold</strong>" in html


def test_longest_annotation_is_highlighted_once():
    html = markdown_to_html(
        "Deep machine learning is fun",
        [annotation("learning", "a1"), annotation("machine learning", "a2")],
    )

    assert html.count('class="annotation"') == 1
    assert 'href="annotation:a2">machine learning</a>' in html


def test_highlight_inside_inline_markup():
    html = markdown_to_html("Set the **learning rate** first", [annotation("learning rate", "lr")])
    assert 'href="annotation:lr">learning rate</a></strong>' in html


def test_code_is_not_highlighted():
    html = markdown_to_html(
        "Call `reduce` here.\n\n```\nreduce(items)\n```",
        [annotation("reduce", "r")],
    )
    assert 'class="annotation"' not in html


def test_existing_links_are_not_highlighted():
    html = markdown_to_html("See [the docs](https://example.com)", [annotation("docs", "d")])
    assert 'class="annotation"' not in html


def test_render_markdown_wraps_document():
    assert render_markdown("") == ""
    page = render_markdown("hi", is_user=True)
    assert page.startswith("<html><head><style>")
    assert "<p>hi</p>" in page


def test_annotation_id_from_href():
    assert annotation_id_from_href("annotation:abc") == "abc"
    assert annotation_id_from_href("annotation:") is None
    assert annotation_id_from_href("https://example.com") is None


def test_strip_markdown():
    text = "# Title\n\n- **Bold** item with `code`\n\n[link](https://x.y)"
    assert strip_markdown(text) == "Title\n\nBold item with code\n\nlink"
