from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from markdown_it import MarkdownIt

from .config import ConverterConfig
from .errors import MarkupParseError
from .images import ImageResolver, gather_images, placeholder_image, resolve_images
from .model import (
    AspectRatio,
    Block,
    Blockquote,
    Bold,
    Code,
    CodeBlock,
    Facet,
    Feature,
    Heading,
    HorizontalRule,
    ImageBlock,
    ImageInfo,
    Italic,
    Link,
    ListBlock,
    ListContent,
    ListItem,
    Paragraph,
    Strikethrough,
)

logger = logging.getLogger(__name__)

_LIST_OPEN = {"bullet_list_open", "ordered_list_open"}

_STYLE_FEATURES = {
    "strong_open": Bold,
    "em_open": Italic,
    "s_open": Strikethrough,
}
_STYLE_CLOSE = {"strong_close", "em_close", "s_close", "link_close"}


@dataclass
class _FormatContext:
    features: Tuple[Feature, ...]
    start: int


@dataclass
class _InlineState:
    """Accumulators for flattening one run of inline tokens into text and facets."""

    images: Dict[str, ImageInfo]
    config: ConverterConfig
    split_images: bool = False
    buffer: bytearray = field(default_factory=bytearray)
    facets: List[Facet] = field(default_factory=list)
    stack: List[_FormatContext] = field(default_factory=list)
    blocks: List[Block] = field(default_factory=list)

    @property
    def offset(self) -> int:
        return len(self.buffer)

    @property
    def text(self) -> str:
        return self.buffer.decode("utf-8")

    def open_features(self) -> Tuple[Feature, ...]:
        features: List[Feature] = []
        for ctx in self.stack:
            features.extend(ctx.features)
        return tuple(features)

    def append(self, content: str, features: Sequence[Feature] = ()) -> None:
        if not content:
            return
        start = self.offset
        self.buffer.extend(content.encode("utf-8"))
        if features:
            self.facets.append(Facet(start=start, end=self.offset, features=tuple(features)))

    def flush(self) -> None:
        text = self.text
        if text.strip():
            self.blocks.append(Paragraph(text=text, facets=tuple(self.facets)))
        self.buffer = bytearray()
        self.facets = []


def build_parser() -> MarkdownIt:
    return MarkdownIt("commonmark").enable("strikethrough")


def to_document(markup: str, config: ConverterConfig | None = None) -> List[Block]:
    """Convert Markdown into leaflet blocks, using placeholders for every image."""
    return _convert(markup, None, None, config or ConverterConfig())


def to_document_with_images(
    markup: str,
    resolver: Optional[ImageResolver],
    base_path: str | Path | None = None,
    config: ConverterConfig | None = None,
) -> List[Block]:
    """Convert Markdown, resolving each distinct image reference once before building blocks."""
    return _convert(markup, resolver, base_path, config or ConverterConfig())


def _convert(
    markup: str,
    resolver: Optional[ImageResolver],
    base_path: str | Path | None,
    config: ConverterConfig,
) -> List[Block]:
    tokens = _parse(markup)
    references = gather_images(tokens)
    logger.debug("Gathered %d image reference(s)", len(references))
    images = resolve_images(references, resolver, base_path)
    return _convert_blocks(tokens, images, config)


def _parse(markup: str) -> list:
    if not isinstance(markup, str):
        raise MarkupParseError(f"Markdown input must be text, got {type(markup).__name__}")
    try:
        return build_parser().parse(markup)
    except (ValueError, RecursionError) as exc:
        raise MarkupParseError(f"failed to parse markdown: {exc}") from exc


def _convert_blocks(tokens: Sequence, images: Dict[str, ImageInfo], config: ConverterConfig) -> List[Block]:
    blocks: List[Block] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == "heading_open":
            state = _flatten(_InlineState(images, config), tokens[i + 1].children or [])
            blocks.append(Heading(level=int(tok.tag[1]), text=state.text, facets=tuple(state.facets)))
            i += 3
        elif tok.type == "paragraph_open":
            blocks.extend(_convert_paragraph(tokens[i + 1], images, config))
            i += 3
        elif tok.type in ("fence", "code_block"):
            blocks.append(_convert_code(tok, config))
            i += 1
        elif tok.type == "blockquote_open":
            end = _find_close(tokens, i)
            blocks.append(_convert_blockquote(tokens[i + 1 : end], images, config))
            i = end + 1
        elif tok.type in _LIST_OPEN:
            end = _find_close(tokens, i)
            blocks.append(ListBlock(items=tuple(_convert_list_items(tokens[i + 1 : end], images, config))))
            i = end + 1
        elif tok.type == "hr":
            blocks.append(HorizontalRule())
            i += 1
        elif tok.nesting == 1:
            # Unknown container: skip it together with everything inside.
            i = _find_close(tokens, i) + 1
        else:
            i += 1
    return blocks


def _find_close(tokens: Sequence, index: int) -> int:
    depth = 0
    for j in range(index, len(tokens)):
        depth += tokens[j].nesting
        if depth == 0:
            return j
    return len(tokens) - 1


def _convert_paragraph(inline, images: Dict[str, ImageInfo], config: ConverterConfig) -> List[Block]:
    state = _flatten(_InlineState(images, config, split_images=True), inline.children or [])
    if state.blocks:
        state.flush()
        return state.blocks
    if not state.text.strip():
        return []
    return [Paragraph(text=state.text, facets=tuple(state.facets))]


def _convert_code(tok, config: ConverterConfig) -> CodeBlock:
    info = (tok.info or "").strip()
    language = info.split()[0] if info else ""
    return CodeBlock(code=tok.content, language=language, theme=config.code_theme)


def _convert_blockquote(tokens: Sequence, images: Dict[str, ImageInfo], config: ConverterConfig) -> Blockquote:
    state = _InlineState(images, config)
    for tok in tokens:
        if tok.type != "inline":
            continue
        if state.offset:
            state.append(" ")
        _flatten(state, tok.children or [])
    return Blockquote(text=state.text, facets=tuple(state.facets))


def _convert_list_items(tokens: Sequence, images: Dict[str, ImageInfo], config: ConverterConfig) -> List[ListItem]:
    items: List[ListItem] = []
    i = 0
    while i < len(tokens):
        if tokens[i].type == "list_item_open":
            end = _find_close(tokens, i)
            items.append(_convert_list_item(tokens[i + 1 : end], images, config))
            i = end + 1
        else:
            i += 1
    return items


def _convert_list_item(tokens: Sequence, images: Dict[str, ImageInfo], config: ConverterConfig) -> ListItem:
    inlines: list = []
    children: List[ListItem] = []
    heading_level: Optional[int] = None
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.type in _LIST_OPEN:
            end = _find_close(tokens, i)
            children.extend(_convert_list_items(tokens[i + 1 : end], images, config))
            i = end + 1
            continue
        if tok.type == "heading_open" and not inlines:
            heading_level = int(tok.tag[1])
        elif tok.type == "inline":
            inlines.append(tok)
        i += 1
    content = _list_item_content(inlines, heading_level, images, config)
    return ListItem(content=content, children=tuple(children))


def _list_item_content(
    inlines: list,
    heading_level: Optional[int],
    images: Dict[str, ImageInfo],
    config: ConverterConfig,
) -> ListContent:
    if heading_level is None and len(inlines) == 1:
        significant = [
            child for child in inlines[0].children or [] if not (child.type == "text" and not child.content.strip())
        ]
        if len(significant) == 1 and significant[0].type == "image":
            return _convert_image(significant[0], images, config)

    state = _InlineState(images, config)
    for inline in inlines:
        if state.offset:
            state.append(" ")
        _flatten(state, inline.children or [])
    if heading_level is not None:
        return Heading(level=heading_level, text=state.text, facets=tuple(state.facets))
    return Paragraph(text=state.text, facets=tuple(state.facets))


def _flatten(state: _InlineState, children: Iterable) -> _InlineState:
    for tok in children:
        if tok.type == "text":
            state.append(tok.content, state.open_features())
        elif tok.type in ("softbreak", "hardbreak"):
            state.append(" ")
        elif tok.type == "code_inline":
            # Code spans never compose with the enclosing styles.
            state.append(tok.content, (Code(),))
        elif tok.type in _STYLE_FEATURES:
            state.stack.append(_FormatContext(features=(_STYLE_FEATURES[tok.type](),), start=state.offset))
        elif tok.type == "link_open":
            href = tok.attrGet("href") or ""
            state.stack.append(_FormatContext(features=(Link(uri=str(href)),), start=state.offset))
        elif tok.type in _STYLE_CLOSE:
            if state.stack:
                state.stack.pop()
        elif tok.type == "image" and state.split_images:
            state.flush()
            state.blocks.append(_convert_image(tok, state.images, state.config))
    return state


def _convert_image(tok, images: Dict[str, ImageInfo], config: ConverterConfig) -> ImageBlock:
    alt = tok.attrGet("title") or ""
    if not alt:
        for child in tok.children or []:
            if child.type == "text":
                alt = child.content
                break

    info = images.get(tok.attrGet("src") or "")
    if info is not None:
        blob = info.blob
        aspect_ratio = AspectRatio(width=info.width, height=info.height)
    else:
        blob, aspect_ratio = placeholder_image(config)
    return ImageBlock(image=blob, aspect_ratio=aspect_ratio, alt=str(alt))
