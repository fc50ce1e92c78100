"""
Markdown to structured document conversion.

Generated sections are Markdown; articles are stored as an editor
document tree (ProseMirror/Tiptap JSON):

    {"type": "doc", "content": [
        {"type": "heading", "attrs": {"level": 2}, "content": [...]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Run "},
            {"type": "timestampLink", "attrs": {"seconds": 75}},
            {"type": "text", "text": " npm install."}
        ]}
    ]}

Markdown is parsed by markdown-it-py (CommonMark plus tables and
strikethrough) and its syntax tree is mapped onto document nodes.
``[video:MM:SS]`` references in plain text become timestamp links.

Example:
    from reeldocs.utils.content_tree import sections_to_document

    doc = sections_to_document(chapter.sections)
"""

import re
from collections.abc import Iterable
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from reeldocs.models.schemas import GeneratedSection
from reeldocs.utils.text_utils import parse_timestamp

Node = dict[str, Any]

# Section headings are level 2; markdown headings inside content are shifted by one
SECTION_HEADING_LEVEL = 2
MAX_HEADING_LEVEL = 6

# Raw HTML is kept as text
_markdown = MarkdownIt("commonmark", {"html": False}).enable(["table", "strikethrough"])

_TIMESTAMP_RE = re.compile(r"\[video:(?:(\d{1,2}):)?(\d{1,2}):(\d{2})\]")

_MARK_TYPES = {"strong": "bold", "em": "italic", "s": "strike"}


# ═══════════════════════════════════════════════════════════════════════════
# Document
# ═══════════════════════════════════════════════════════════════════════════


def sections_to_document(sections: Iterable[GeneratedSection]) -> Node:
    """
    Build a document from generated sections.

    Each section becomes a level-2 heading followed by its parsed
    Markdown content. A section with a positive ``timestamp_ref`` gets
    a timestamp link in front of its heading text.

    Args:
        sections: Generated sections of one chapter

    Returns:
        Document node {"type": "doc", "content": [...]}
    """
    nodes: list[Node] = []

    for section in sections:
        heading_inline = parse_inline(section.heading)

        seconds = parse_timestamp(section.timestamp_ref)
        if seconds > 0:
            heading_inline = [
                {"type": "timestampLink", "attrs": {"seconds": seconds}},
                {"type": "text", "text": " "},
            ] + heading_inline

        heading: Node = {"type": "heading", "attrs": {"level": SECTION_HEADING_LEVEL}}
        if heading_inline:
            heading["content"] = heading_inline
        nodes.append(heading)

        nodes.extend(parse_blocks(section.content or ""))

    return {"type": "doc", "content": nodes}


def markdown_to_document(markdown: str) -> Node:
    """Parse a standalone Markdown string into a document node."""
    return {"type": "doc", "content": parse_blocks(markdown)}


def parse_blocks(markdown: str) -> list[Node]:
    """Parse Markdown into block nodes (may be empty)."""
    root = SyntaxTreeNode(_markdown.parse(markdown))
    return _blocks(root.children)


def parse_inline(text: str) -> list[Node]:
    """
    Parse inline Markdown into text, timestampLink, image and hardBreak nodes.

    Adjacent text nodes with identical marks are merged and text nodes
    never carry an empty ``marks`` list.
    """
    root = SyntaxTreeNode(_markdown.parseInline(text))
    if not root.children:
        return []
    return _finish_inline(_inline(root.children[0].children, ()))


# ═══════════════════════════════════════════════════════════════════════════
# Blocks
# ═══════════════════════════════════════════════════════════════════════════


def _blocks(children: Iterable[SyntaxTreeNode]) -> list[Node]:
    nodes: list[Node] = []
    for child in children:
        nodes.extend(_block(child))
    return nodes


def _block(node: SyntaxTreeNode) -> list[Node]:
    kind = node.type

    if kind == "heading":
        level = min(int(node.tag[1:]) + 1, MAX_HEADING_LEVEL)
        heading: Node = {"type": "heading", "attrs": {"level": level}}
        inline = _inline_content(node)
        if inline:
            heading["content"] = inline
        return [heading]

    if kind == "paragraph":
        inline = _inline_content(node)
        return [{"type": "paragraph", "content": inline}] if inline else []

    if kind in ("bullet_list", "ordered_list"):
        return [_list(node)]

    if kind in ("fence", "code_block"):
        language = node.info.split()[0] if node.info.strip() else None
        code_block: Node = {"type": "codeBlock", "attrs": {"language": language}}
        code = node.content.removesuffix("\n")
        if code:
            code_block["content"] = [{"type": "text", "text": code}]
        return [code_block]

    if kind == "blockquote":
        return [{"type": "blockquote", "content": _blocks(node.children) or [{"type": "paragraph"}]}]

    if kind == "hr":
        return [{"type": "horizontalRule"}]

    if kind == "table":
        return [_table(node)]

    # Anything else is kept as plain text
    if node.content.strip():
        return [{"type": "paragraph", "content": [{"type": "text", "text": node.content.strip()}]}]
    return []


def _list(node: SyntaxTreeNode) -> Node:
    items = [
        {"type": "listItem", "content": _blocks(item.children) or [{"type": "paragraph"}]}
        for item in node.children
    ]
    ordered = node.type == "ordered_list"
    result: Node = {"type": "orderedList" if ordered else "bulletList", "content": items}

    start = node.attrs.get("start")
    if ordered and start is not None and int(start) != 1:
        result["attrs"] = {"start": int(start)}
    return result


def _table(node: SyntaxTreeNode) -> Node:
    rows: list[Node] = []
    for section in node.children:  # thead, tbody
        for row in section.children:
            cells = []
            for cell in row.children:
                paragraph: Node = {"type": "paragraph"}
                inline = _inline_content(cell)
                if inline:
                    paragraph["content"] = inline
                cell_type = "tableHeader" if cell.type == "th" else "tableCell"
                cells.append({"type": cell_type, "content": [paragraph]})
            rows.append({"type": "tableRow", "content": cells})
    return {"type": "table", "content": rows}


# ═══════════════════════════════════════════════════════════════════════════
# Inline
# ═══════════════════════════════════════════════════════════════════════════


def _inline_content(node: SyntaxTreeNode) -> list[Node]:
    nodes: list[Node] = []
    for child in node.children:
        if child.type == "inline":
            nodes.extend(_inline(child.children, ()))
    return _finish_inline(nodes)


def _inline(children: Iterable[SyntaxTreeNode], marks: tuple[Node, ...]) -> list[Node]:
    """Map inline syntax nodes; marks are ordered outermost first."""
    nodes: list[Node] = []

    for child in children:
        kind = child.type

        if kind in ("text", "text_special", "html_inline"):
            nodes.append(_text(child.content, marks))
        elif kind == "softbreak":
            nodes.append(_text("\n", marks))
        elif kind == "hardbreak":
            nodes.append({"type": "hardBreak"})
        elif kind == "code_inline":
            nodes.append(_text(child.content, marks + ({"type": "code"},)))
        elif kind in _MARK_TYPES:
            nodes.extend(_inline(child.children, marks + ({"type": _MARK_TYPES[kind]},)))
        elif kind == "link":
            link_mark = {"type": "link", "attrs": {"href": child.attrs.get("href", "")}}
            nodes.extend(_inline(child.children, marks + (link_mark,)))
        elif kind == "image":
            nodes.append({
                "type": "image",
                "attrs": {"src": child.attrs.get("src", ""), "alt": child.content or ""},
            })
        elif child.content:
            nodes.append(_text(child.content, marks))

    return nodes


def _text(value: str, marks: tuple[Node, ...]) -> Node:
    node: Node = {"type": "text", "text": value}
    if marks:
        node["marks"] = [dict(mark) for mark in marks]
    return node


def _finish_inline(nodes: list[Node]) -> list[Node]:
    """Merge adjacent text nodes, then turn timestamp references into links."""
    merged: list[Node] = []
    for node in nodes:
        if node["type"] == "text" and not node["text"]:
            continue
        if (
            merged
            and node["type"] == "text"
            and merged[-1]["type"] == "text"
            and merged[-1].get("marks") == node.get("marks")
        ):
            merged[-1] = {**merged[-1], "text": merged[-1]["text"] + node["text"]}
            continue
        merged.append(node)

    result: list[Node] = []
    for node in merged:
        if node["type"] == "text" and not _has_mark(node, "code"):
            result.extend(_split_timestamps(node))
        else:
            result.append(node)
    return result


def _has_mark(node: Node, mark_type: str) -> bool:
    return any(mark["type"] == mark_type for mark in node.get("marks", ()))


def _split_timestamps(node: Node) -> list[Node]:
    text = node["text"]
    parts: list[Node] = []
    pos = 0

    for match in _TIMESTAMP_RE.finditer(text):
        if match.start() > pos:
            parts.append({**node, "text": text[pos:match.start()]})
        hours, minutes, seconds = match.groups()
        parts.append({
            "type": "timestampLink",
            "attrs": {"seconds": int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds)},
        })
        pos = match.end()

    if pos == 0:
        return [node]
    if pos < len(text):
        parts.append({**node, "text": text[pos:]})
    return parts
