"""Markdown to HTML renderer for chat messages.

Annotations are applied to the parsed document, one text run at a time,
so highlights never cut through markup. Text inside code, pre and
existing links is left alone.
"""

import re
import xml.etree.ElementTree as etree
from typing import Iterable, List, Optional, Sequence, Tuple

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor
from markdown.util import STX, AtomicString

from ..config.themes import theme, fonts, metrics
from ..orchestrator.span_resolver import resolve_spans
from ..storage import Annotation


ANNOTATION_SCHEME = "annotation:"
SKIP_TAGS = {"code", "pre", "a"}

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "nl2br"]


class AnnotationTreeprocessor(Treeprocessor):
    """Wraps annotated text in <a class="annotation"> links."""

    def __init__(self, md: markdown.Markdown, annotations: Sequence[Annotation]) -> None:
        super().__init__(md)
        self.annotations = annotations

    def run(self, root: etree.Element) -> None:
        self._highlight(root)

    def _split(self, text: str) -> Optional[Tuple[str, List[etree.Element]]]:
        # Stashed raw HTML and code blocks are placeholders; never split them
        if STX in text:
            return None

        spans = resolve_spans(text, self.annotations)
        if not any(span.highlighted for span in spans):
            return None

        lead = ""
        nodes: List[etree.Element] = []
        for span in spans:
            if span.highlighted:
                node = etree.Element("a", {
                    "class": "annotation",
                    "href": f"{ANNOTATION_SCHEME}{span.annotation_id}",
                })
                node.text = AtomicString(span.text)
                nodes.append(node)
            elif nodes:
                nodes[-1].tail = (nodes[-1].tail or "") + span.text
            else:
                lead += span.text
        return lead, nodes

    def _highlight(self, element: etree.Element) -> None:
        if element.tag in SKIP_TAGS:
            return

        children = list(element)

        if element.text:
            result = self._split(element.text)
            if result:
                element.text, nodes = result
                for index, node in enumerate(nodes):
                    element.insert(index, node)

        for child in children:
            self._highlight(child)
            if not child.tail:
                continue
            result = self._split(child.tail)
            if result:
                child.tail, nodes = result
                position = list(element).index(child) + 1
                for offset, node in enumerate(nodes):
                    element.insert(position + offset, node)


class AnnotationExtension(Extension):
    """Markdown extension that highlights a message's annotations."""

    def __init__(self, annotations: Iterable[Annotation], **kwargs) -> None:
        self.annotations = tuple(annotations)
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        # Below the inline processor (20) so inline markup already exists
        md.treeprocessors.register(
            AnnotationTreeprocessor(md, self.annotations), "annotations", 5
        )


def markdown_to_html(text: str, annotations: Iterable[Annotation] = ()) -> str:
    """Convert Markdown to an HTML fragment.

    Args:
        text: Markdown source
        annotations: Annotations to highlight

    Returns:
        HTML without a document wrapper
    """
    if not text:
        return ""

    extensions: List = list(MARKDOWN_EXTENSIONS)
    annotations = tuple(annotations)
    if annotations:
        extensions.append(AnnotationExtension(annotations))
    return markdown.Markdown(extensions=extensions).convert(text)


def annotation_id_from_href(href: str) -> Optional[str]:
    """Extract the annotation ID from a highlight link, if it is one."""
    if href.startswith(ANNOTATION_SCHEME):
        return href[len(ANNOTATION_SCHEME):] or None
    return None


def get_markdown_css(is_user: bool = False) -> str:
    """CSS for rendered message content.

    Args:
        is_user: Whether this is for a user message (affects colors)
    """
    text_color = "#ffffff" if is_user else theme.text_primary
    link_color = "#ccfbf1" if is_user else theme.accent_hover
    code_bg = "rgba(0, 0, 0, 0.25)" if is_user else theme.code_bg

    return f"""
        body {{
            color: {text_color};
            font-family: {fonts.chat};
            font-size: {metrics.font_medium}px;
            line-height: 1.5;
            margin: 0;
        }}
        h1, h2, h3, h4 {{
            font-family: {fonts.ui};
            font-weight: 600;
            margin: 12px 0 6px 0;
        }}
        h1 {{ font-size: 1.3em; }}
        h2 {{ font-size: 1.2em; }}
        h3 {{ font-size: 1.1em; }}
        p {{ margin: 0 0 8px 0; }}
        a {{ color: {link_color}; text-decoration: none; }}
        a.annotation {{
            color: {text_color};
            background-color: {theme.annotation_bg};
            border-bottom: 1px dashed {theme.annotation_underline};
        }}
        ul, ol {{ margin: 0 0 8px 0; padding-left: 20px; }}
        code {{
            font-family: {fonts.mono};
            font-size: 0.9em;
            background-color: {code_bg};
            padding: 2px 5px;
            border-radius: 4px;
        }}
        pre {{
            font-family: {fonts.mono};
            font-size: 13px;
            background-color: {code_bg};
            border: 1px solid {theme.code_border};
            border-radius: {metrics.radius_medium}px;
            padding: 10px 14px;
        }}
        blockquote {{
            margin: 8px 0;
            padding: 6px 14px;
            border-left: 3px solid {theme.accent};
            color: {theme.text_secondary};
        }}
        table {{ border-collapse: collapse; margin: 8px 0; }}
        th, td {{ border: 1px solid {theme.border}; padding: 6px 10px; }}
        th {{ background-color: {theme.background_elevated}; font-weight: 600; }}
    """


def render_markdown(
    text: str,
    annotations: Iterable[Annotation] = (),
    is_user: bool = False,
) -> str:
    """Convert Markdown to a styled HTML document.

    Args:
        text: Markdown formatted text
        annotations: Annotations to highlight (assistant messages)
        is_user: Whether this is a user message (affects styling)

    Returns:
        HTML string with an embedded stylesheet
    """
    if not text:
        return ""

    body = markdown_to_html(text, annotations)
    return (
        f"<html><head><style>{get_markdown_css(is_user)}</style></head>"
        f"<body>{body}</body></html>"
    )


def strip_markdown(text: str) -> str:
    """Remove Markdown syntax, approximating the rendered plain text.

    Args:
        text: Markdown formatted text

    Returns:
        Plain text without markdown syntax
    """
    # Fenced blocks keep their content, minus the fences
    text = re.sub(r"```[^\n]*\n([\s\S]*?)```", r"\1", text)

    # Inline code keeps its content
    text = re.sub(r"`([^`]+)`", r"\1", text)

    # Headers
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)

    # Bold/italic
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"__([^_]+)__", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"(?<!\w)_([^_]+)_(?!\w)", r"\1", text)

    # Links keep their text
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)

    # List and blockquote markers
    text = re.sub(r"^[ \t]*[-*][ \t]+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[ \t]*\d+\.[ \t]+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^>\s*", "", text, flags=re.MULTILINE)

    return text.strip()
