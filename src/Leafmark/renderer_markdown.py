from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from .errors import UnsupportedBlockError
from .model import (
    Block,
    Blockquote,
    Bold,
    Code,
    CodeBlock,
    Facet,
    Feature,
    Heading,
    Highlight,
    HorizontalRule,
    ImageBlock,
    Italic,
    Link,
    ListBlock,
    ListItem,
    Paragraph,
    Strikethrough,
    block_type,
)

IMAGE_PLACEHOLDER_TARGET = "image-placeholder"
RULE_MARKER = "---"

_BACKTICK_RUN = re.compile(rb"`+")


def to_markup(blocks: Iterable[Block]) -> str:
    """Render blocks back to Markdown, separated by blank lines."""
    return "\n\n".join(_dispatch_block(block) for block in blocks)


def _dispatch_block(block: Block) -> str:
    if isinstance(block, Paragraph):
        return facets_to_markdown(block.text, block.facets)
    if isinstance(block, Heading):
        return "#" * block.level + " " + facets_to_markdown(block.text, block.facets)
    if isinstance(block, CodeBlock):
        return _render_code_block(block)
    if isinstance(block, Blockquote):
        return "> " + facets_to_markdown(block.text, block.facets)
    if isinstance(block, ListBlock):
        lines: List[str] = []
        _render_list(block.items, 0, lines)
        return "\n".join(lines)
    if isinstance(block, HorizontalRule):
        return RULE_MARKER
    if isinstance(block, ImageBlock):
        return _render_image(block)
    raise UnsupportedBlockError(block_type(block))


def _render_code_block(block: CodeBlock) -> str:
    code = block.code if block.code.endswith("\n") else block.code + "\n"
    fence = "`" * max(3, _longest_backtick_run(code.encode("utf-8")) + 1)
    return f"{fence}{block.language}\n{code}{fence}"


def _render_image(block: ImageBlock) -> str:
    # Only the blob identity survives conversion, never the original URL.
    return f"![{block.alt}]({IMAGE_PLACEHOLDER_TARGET})"


def _render_list(items: Sequence[ListItem], depth: int, lines: List[str]) -> None:
    indent = "  " * depth
    for item in items:
        content = item.content
        if isinstance(content, (Paragraph, Heading)):
            text = facets_to_markdown(content.text, content.facets)
        elif isinstance(content, ImageBlock):
            text = _render_image(content)
        else:
            raise UnsupportedBlockError(block_type(content))
        lines.append(f"{indent}- {text}")
        if item.children:
            _render_list(item.children, depth + 1, lines)


def facets_to_markdown(text: str, facets: Sequence[Facet]) -> str:
    """Re-apply facets to plain text as Markdown syntax.

    Facets are taken in stored order. This is exact for the non-overlapping
    facets the forward converter produces; a facet that starts inside the
    previous one is clamped to the previous end.
    """
    if not facets:
        return text

    data = text.encode("utf-8")
    out = bytearray()
    last_end = 0
    for facet in facets:
        start = min(max(facet.start, last_end), len(data))
        end = min(max(facet.end, start), len(data))
        out += data[last_end:start]
        out += _wrap(data[start:end], facet.features)
        last_end = end
    out += data[last_end:]
    return out.decode("utf-8", errors="replace")


def _wrap(span: bytes, features: Sequence[Feature]) -> bytes:
    for feature in features:
        if isinstance(feature, Bold):
            span = b"**" + span + b"**"
        elif isinstance(feature, Italic):
            span = b"*" + span + b"*"
        elif isinstance(feature, Code):
            fence = b"`" * (_longest_backtick_run(span) + 1)
            pad = b" " if span.startswith(b"`") or span.endswith(b"`") else b""
            span = fence + pad + span + pad + fence
        elif isinstance(feature, Strikethrough):
            span = b"~~" + span + b"~~"
        elif isinstance(feature, Highlight):
            span = b"==" + span + b"=="
        elif isinstance(feature, Link):
            span = b"[" + span + b"](" + feature.uri.encode("utf-8") + b")"
        # Underline has no Markdown syntax; the span stays plain.
    return span


def _longest_backtick_run(span: bytes) -> int:
    return max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(span)), default=0)
