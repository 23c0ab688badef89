from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Optional, Sequence, Tuple, Union

TYPE_DOCUMENT = "pub.leaflet.document"
TYPE_LINEAR_DOCUMENT = "pub.leaflet.pages.linearDocument"
TYPE_BLOCK = "pub.leaflet.pages.linearDocument#block"

TYPE_TEXT_BLOCK = "pub.leaflet.blocks.text"
TYPE_HEADER_BLOCK = "pub.leaflet.blocks.header"
TYPE_CODE_BLOCK = "pub.leaflet.blocks.code"
TYPE_IMAGE_BLOCK = "pub.leaflet.blocks.image"
TYPE_BLOCKQUOTE_BLOCK = "pub.leaflet.blocks.blockquote"
TYPE_UNORDERED_LIST_BLOCK = "pub.leaflet.blocks.unorderedList"
TYPE_HORIZONTAL_RULE_BLOCK = "pub.leaflet.blocks.horizontalRule"

TYPE_FACET = "pub.leaflet.richtext.facet"
TYPE_BYTE_SLICE = "pub.leaflet.richtext.facet#byteSlice"
TYPE_FACET_BOLD = "pub.leaflet.richtext.facet#bold"
TYPE_FACET_ITALIC = "pub.leaflet.richtext.facet#italic"
TYPE_FACET_CODE = "pub.leaflet.richtext.facet#code"
TYPE_FACET_LINK = "pub.leaflet.richtext.facet#link"
TYPE_FACET_STRIKETHROUGH = "pub.leaflet.richtext.facet#strikethrough"
TYPE_FACET_UNDERLINE = "pub.leaflet.richtext.facet#underline"
TYPE_FACET_HIGHLIGHT = "pub.leaflet.richtext.facet#highlight"

TYPE_LIST_ITEM = "pub.leaflet.blocks.unorderedList#listItem"
TYPE_ASPECT_RATIO = "pub.leaflet.blocks.image#aspectRatio"
TYPE_BLOB = "blob"

DEFAULT_CODE_THEME = "catppuccin-mocha"


@dataclass(frozen=True)
class Feature:
    """Base class for facet features."""

    TYPE: ClassVar[str] = ""


@dataclass(frozen=True)
class Bold(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_BOLD


@dataclass(frozen=True)
class Italic(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_ITALIC


@dataclass(frozen=True)
class Code(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_CODE


@dataclass(frozen=True)
class Strikethrough(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_STRIKETHROUGH


@dataclass(frozen=True)
class Underline(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_UNDERLINE


@dataclass(frozen=True)
class Highlight(Feature):
    TYPE: ClassVar[str] = TYPE_FACET_HIGHLIGHT


@dataclass(frozen=True)
class Link(Feature):
    uri: str
    TYPE: ClassVar[str] = TYPE_FACET_LINK


@dataclass(frozen=True)
class Facet:
    """Annotation over the UTF-8 byte range ``[start, end)`` of a block's text."""

    start: int
    end: int
    features: Tuple[Feature, ...] = ()
    TYPE: ClassVar[str] = TYPE_FACET

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid facet range [{self.start}, {self.end})")
        object.__setattr__(self, "features", tuple(self.features))


@dataclass(frozen=True)
class Block:
    """Base class for block-level nodes."""

    TYPE: ClassVar[str] = ""


def _check_facets(text: str, facets: Sequence[Facet]) -> Tuple[Facet, ...]:
    size = len(text.encode("utf-8"))
    for facet in facets:
        if facet.end > size:
            raise ValueError(f"Facet [{facet.start}, {facet.end}) exceeds text length {size}")
    return tuple(facets)


@dataclass(frozen=True)
class Paragraph(Block):
    text: str
    facets: Tuple[Facet, ...] = ()
    TYPE: ClassVar[str] = TYPE_TEXT_BLOCK

    def __post_init__(self) -> None:
        object.__setattr__(self, "facets", _check_facets(self.text, self.facets))


@dataclass(frozen=True)
class Heading(Block):
    level: int
    text: str
    facets: Tuple[Facet, ...] = ()
    TYPE: ClassVar[str] = TYPE_HEADER_BLOCK

    def __post_init__(self) -> None:
        if not 1 <= self.level <= 6:
            raise ValueError(f"Heading level must be between 1 and 6, got {self.level}")
        object.__setattr__(self, "facets", _check_facets(self.text, self.facets))


@dataclass(frozen=True)
class Blockquote(Block):
    text: str
    facets: Tuple[Facet, ...] = ()
    TYPE: ClassVar[str] = TYPE_BLOCKQUOTE_BLOCK

    def __post_init__(self) -> None:
        object.__setattr__(self, "facets", _check_facets(self.text, self.facets))


@dataclass(frozen=True)
class CodeBlock(Block):
    code: str
    language: str = ""
    theme: str = DEFAULT_CODE_THEME
    TYPE: ClassVar[str] = TYPE_CODE_BLOCK


@dataclass(frozen=True)
class HorizontalRule(Block):
    """Horizontal rule / thematic break."""

    TYPE: ClassVar[str] = TYPE_HORIZONTAL_RULE_BLOCK


@dataclass(frozen=True)
class Blob:
    ref: str
    mime_type: str
    size: int = 0
    TYPE: ClassVar[str] = TYPE_BLOB


@dataclass(frozen=True)
class AspectRatio:
    width: int
    height: int
    TYPE: ClassVar[str] = TYPE_ASPECT_RATIO


@dataclass(frozen=True)
class ImageBlock(Block):
    image: Blob
    aspect_ratio: AspectRatio
    alt: str = ""
    TYPE: ClassVar[str] = TYPE_IMAGE_BLOCK


@dataclass(frozen=True)
class UnknownBlock(Block):
    """Well-formed block whose type tag this package does not know.

    Only the decoder produces these; the raw mapping is kept so the payload can
    be re-encoded untouched.
    """

    type: str
    data: Mapping[str, Any] = field(default_factory=dict)


ListContent = Union[Paragraph, Heading, ImageBlock, UnknownBlock]


@dataclass(frozen=True)
class ListItem:
    content: ListContent
    children: Tuple["ListItem", ...] = ()
    TYPE: ClassVar[str] = TYPE_LIST_ITEM

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class ListBlock(Block):
    items: Tuple[ListItem, ...] = ()
    TYPE: ClassVar[str] = TYPE_UNORDERED_LIST_BLOCK

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Page:
    """One linear page of blocks; ``id`` is empty when the record carries none."""

    blocks: Tuple[Block, ...] = ()
    id: str = ""
    TYPE: ClassVar[str] = TYPE_LINEAR_DOCUMENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocks", tuple(self.blocks))


@dataclass(frozen=True)
class Document:
    """A published leaflet document record.

    ``author`` is a DID, ``published_at`` an ISO 8601 timestamp and
    ``publication`` an ``at://`` URI; none of them are validated here.
    """

    author: str = ""
    title: str = ""
    description: str = ""
    published_at: str = ""
    publication: str = ""
    pages: Tuple[Page, ...] = ()
    TYPE: ClassVar[str] = TYPE_DOCUMENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "pages", tuple(self.pages))


@dataclass(frozen=True)
class ImageInfo:
    """Resolved image metadata, consumed once while blocks are built."""

    blob: Blob
    width: int
    height: int

    @property
    def mime_type(self) -> str:
        return self.blob.mime_type

    @property
    def size(self) -> int:
        return self.blob.size


def block_type(block: Optional[Block]) -> str:
    if isinstance(block, UnknownBlock):
        return block.type
    if isinstance(block, Block) and block.TYPE:
        return block.TYPE
    return type(block).__name__
