"""Encode and decode blocks in the leaflet JSON shape.

Every object carries a ``$type`` discriminator. Unknown block and list-item
content types decode to :class:`UnknownBlock`; unknown facet features are
dropped. Anything that is not an object where one is required is an error.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from .errors import StructuralDecodeError
from .model import (
    TYPE_BLOCK,
    TYPE_BYTE_SLICE,
    AspectRatio,
    Blob,
    Block,
    Blockquote,
    Bold,
    Code,
    CodeBlock,
    Document,
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
    Page,
    Paragraph,
    Strikethrough,
    Underline,
    UnknownBlock,
)

_SIMPLE_FEATURES = {cls.TYPE: cls for cls in (Bold, Italic, Code, Strikethrough, Underline, Highlight)}


def dumps_page(blocks: Iterable[Block], indent: Optional[int] = None) -> str:
    return json.dumps(encode_page(Page(blocks=tuple(blocks))), indent=indent, ensure_ascii=False)


def loads_page(text: str) -> List[Block]:
    return list(decode_page(_loads(text, "page")).blocks)


def dumps_document(document: Document, indent: Optional[int] = None) -> str:
    return json.dumps(encode_document(document), indent=indent, ensure_ascii=False)


def loads_document(text: str) -> Document:
    """Decode a ``pub.leaflet.document`` record, keeping every page id."""
    return decode_document(_loads(text, "document"))


def loads_blocks(text: str) -> List[Block]:
    """Blocks of a page record, or of every page of a document record in order."""
    data = _loads(text, "record")
    if data.get("$type") == Document.TYPE:
        return [block for page in decode_document(data).pages for block in page.blocks]
    return list(decode_page(data).blocks)


def _loads(text: str, what: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StructuralDecodeError(f"invalid JSON: {exc}") from exc
    return _require_object(data, what)


def _require_object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise StructuralDecodeError(f"malformed {what}: expected an object, got {type(value).__name__}")
    return value


def encode_document(document: Document) -> Dict[str, Any]:
    return {
        "$type": Document.TYPE,
        "author": document.author,
        "title": document.title,
        "description": document.description,
        "publishedAt": document.published_at,
        "publication": document.publication,
        "pages": [encode_page(page) for page in document.pages],
    }


def encode_page(page: Page) -> Dict[str, Any]:
    data: Dict[str, Any] = {"$type": Page.TYPE}
    if page.id:
        data["id"] = page.id
    data["blocks"] = [{"$type": TYPE_BLOCK, "block": encode_block(block)} for block in page.blocks]
    return data


def encode_block(block: Block) -> Dict[str, Any]:
    if isinstance(block, UnknownBlock):
        return dict(block.data)
    data: Dict[str, Any] = {"$type": block.TYPE}
    if isinstance(block, (Paragraph, Blockquote)):
        data["plaintext"] = block.text
        _put_facets(data, block.facets)
    elif isinstance(block, Heading):
        data["level"] = block.level
        data["plaintext"] = block.text
        _put_facets(data, block.facets)
    elif isinstance(block, CodeBlock):
        data["plaintext"] = block.code
        if block.language:
            data["language"] = block.language
        if block.theme:
            data["syntaxHighlightingTheme"] = block.theme
    elif isinstance(block, ImageBlock):
        data["image"] = {
            "$type": Blob.TYPE,
            "ref": {"$link": block.image.ref},
            "mimeType": block.image.mime_type,
            "size": block.image.size,
        }
        if block.alt:
            data["alt"] = block.alt
        data["aspectRatio"] = {
            "$type": AspectRatio.TYPE,
            "width": block.aspect_ratio.width,
            "height": block.aspect_ratio.height,
        }
    elif isinstance(block, ListBlock):
        data["children"] = [encode_list_item(item) for item in block.items]
    elif not isinstance(block, HorizontalRule):
        raise TypeError(f"cannot encode {type(block).__name__}")
    return data


def encode_list_item(item: ListItem) -> Dict[str, Any]:
    data: Dict[str, Any] = {"$type": ListItem.TYPE, "content": encode_block(item.content)}
    if item.children:
        data["children"] = [encode_list_item(child) for child in item.children]
    return data


def encode_facet(facet: Facet) -> Dict[str, Any]:
    features: List[Dict[str, Any]] = []
    for feature in facet.features:
        entry: Dict[str, Any] = {"$type": feature.TYPE}
        if isinstance(feature, Link):
            entry["uri"] = feature.uri
        features.append(entry)
    return {
        "$type": Facet.TYPE,
        "index": {"$type": TYPE_BYTE_SLICE, "byteStart": facet.start, "byteEnd": facet.end},
        "features": features,
    }


def _put_facets(data: Dict[str, Any], facets) -> None:
    if facets:
        data["facets"] = [encode_facet(facet) for facet in facets]


def decode_document(value: Any) -> Document:
    data = _require_object(value, "document")
    raw_pages = data.get("pages") or []
    if not isinstance(raw_pages, list):
        raise StructuralDecodeError("document pages must be a list")
    return Document(
        author=_string(data, "author"),
        title=_string(data, "title"),
        description=_string(data, "description"),
        published_at=_string(data, "publishedAt"),
        publication=_string(data, "publication"),
        pages=tuple(decode_page(page) for page in raw_pages),
    )


def decode_page(value: Any) -> Page:
    data = _require_object(value, "page")
    raw_blocks = data.get("blocks") or []
    if not isinstance(raw_blocks, list):
        raise StructuralDecodeError("page blocks must be a list")
    return Page(blocks=tuple(decode_block_wrap(item) for item in raw_blocks), id=_string(data, "id"))


def decode_block_wrap(value: Any) -> Block:
    wrap = _require_object(value, "block wrapper")
    # Alignment on the wrapper is accepted but not modelled.
    return decode_block(wrap.get("block"))


def decode_block(value: Any) -> Block:
    data = _require_object(value, "block")
    block_type = data.get("$type")
    try:
        if block_type == Paragraph.TYPE:
            return Paragraph(text=_text(data), facets=_facets(data))
        if block_type == Heading.TYPE:
            return Heading(level=int(data.get("level", 1)), text=_text(data), facets=_facets(data))
        if block_type == Blockquote.TYPE:
            return Blockquote(text=_text(data), facets=_facets(data))
        if block_type == CodeBlock.TYPE:
            return CodeBlock(
                code=_text(data),
                language=str(data.get("language") or ""),
                theme=str(data.get("syntaxHighlightingTheme") or ""),
            )
        if block_type == ImageBlock.TYPE:
            return _decode_image(data)
        if block_type == ListBlock.TYPE:
            return ListBlock(items=tuple(decode_list_item(item) for item in data.get("children") or []))
        if block_type == HorizontalRule.TYPE:
            return HorizontalRule()
    except (TypeError, ValueError) as exc:
        if isinstance(exc, StructuralDecodeError):
            raise
        raise StructuralDecodeError(f"malformed {block_type} block: {exc}") from exc
    return UnknownBlock(type=str(block_type or ""), data=dict(data))


def decode_list_item(value: Any) -> ListItem:
    data = _require_object(value, "list item")
    content = decode_block(data.get("content"))
    if not isinstance(content, (Paragraph, Heading, ImageBlock, UnknownBlock)):
        content = UnknownBlock(type=content.TYPE, data=dict(data["content"]))
    children = tuple(decode_list_item(child) for child in data.get("children") or [])
    return ListItem(content=content, children=children)


def decode_facet(value: Any) -> Facet:
    data = _require_object(value, "facet")
    index = _require_object(data.get("index") or {}, "facet index")
    features = []
    for raw in data.get("features") or []:
        feature = decode_feature(raw)
        if feature is not None:
            features.append(feature)
    try:
        return Facet(start=int(index.get("byteStart", 0)), end=int(index.get("byteEnd", 0)), features=tuple(features))
    except (TypeError, ValueError) as exc:
        raise StructuralDecodeError(f"malformed facet: {exc}") from exc


def decode_feature(value: Any) -> Optional[Feature]:
    """Decode one facet feature, returning None for types this package does not know."""
    data = _require_object(value, "feature")
    feature_type = data.get("$type")
    if feature_type == Link.TYPE:
        return Link(uri=str(data.get("uri") or ""))
    cls = _SIMPLE_FEATURES.get(feature_type)
    return cls() if cls is not None else None


def _decode_image(data: Dict[str, Any]) -> ImageBlock:
    image = _require_object(data.get("image") or {}, "image blob")
    ref = _require_object(image.get("ref") or {}, "blob ref")
    ratio = _require_object(data.get("aspectRatio") or {}, "aspect ratio")
    blob = Blob(ref=str(ref.get("$link") or ""), mime_type=str(image.get("mimeType") or ""), size=int(image.get("size") or 0))
    aspect_ratio = AspectRatio(width=int(ratio.get("width") or 0), height=int(ratio.get("height") or 0))
    return ImageBlock(image=blob, aspect_ratio=aspect_ratio, alt=str(data.get("alt") or ""))


def _text(data: Dict[str, Any]) -> str:
    text = data.get("plaintext") or ""
    if not isinstance(text, str):
        raise StructuralDecodeError("plaintext must be a string")
    return text


def _facets(data: Dict[str, Any]) -> tuple:
    raw = data.get("facets") or []
    if not isinstance(raw, list):
        raise StructuralDecodeError("facets must be a list")
    return tuple(decode_facet(item) for item in raw)


def _string(data: Dict[str, Any], key: str) -> str:
    value = data.get(key) or ""
    if not isinstance(value, str):
        raise StructuralDecodeError(f"{key} must be a string")
    return value
