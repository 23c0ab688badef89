import json

import pytest

from Leafmark import json_codec
from Leafmark.errors import StructuralDecodeError
from Leafmark.markdown_parser import to_document
from Leafmark.model import (
    Blockquote,
    Bold,
    CodeBlock,
    Document,
    Heading,
    HorizontalRule,
    ImageBlock,
    Italic,
    Link,
    ListBlock,
    Page,
    Paragraph,
    UnknownBlock,
)


def _wrap(block) -> dict:
    return {"$type": "pub.leaflet.pages.linearDocument#block", "block": block}


def test_decodes_text_block():
    block = json_codec.decode_block_wrap(_wrap({"$type": "pub.leaflet.blocks.text", "plaintext": "Hello world"}))
    assert block == Paragraph(text="Hello world")


def test_decodes_header_code_quote_and_rule():
    assert json_codec.decode_block({"$type": "pub.leaflet.blocks.header", "level": 2, "plaintext": "Section"}) == Heading(
        level=2, text="Section"
    )
    code = json_codec.decode_block({"$type": "pub.leaflet.blocks.code", "plaintext": "x", "language": "go"})
    assert isinstance(code, CodeBlock)
    assert (code.code, code.language) == ("x", "go")
    assert json_codec.decode_block({"$type": "pub.leaflet.blocks.blockquote", "plaintext": "q"}) == Blockquote(text="q")
    assert json_codec.decode_block({"$type": "pub.leaflet.blocks.horizontalRule"}) == HorizontalRule()


def test_decodes_image_block():
    block = json_codec.decode_block(
        {
            "$type": "pub.leaflet.blocks.image",
            "image": {"$type": "blob", "ref": {"$link": "bafkreitest"}, "mimeType": "image/png", "size": 1234},
            "alt": "Test image",
            "aspectRatio": {"$type": "pub.leaflet.blocks.image#aspectRatio", "width": 800, "height": 600},
        }
    )
    assert isinstance(block, ImageBlock)
    assert block.image.ref == "bafkreitest"
    assert block.image.size == 1234
    assert block.alt == "Test image"
    assert (block.aspect_ratio.width, block.aspect_ratio.height) == (800, 600)


def test_decodes_nested_list():
    block = json_codec.decode_block(
        {
            "$type": "pub.leaflet.blocks.unorderedList",
            "children": [
                {
                    "$type": "pub.leaflet.blocks.unorderedList#listItem",
                    "content": {"$type": "pub.leaflet.blocks.text", "plaintext": "Parent"},
                    "children": [
                        {
                            "$type": "pub.leaflet.blocks.unorderedList#listItem",
                            "content": {"$type": "pub.leaflet.blocks.header", "level": 3, "plaintext": "Child"},
                        }
                    ],
                }
            ],
        }
    )
    assert isinstance(block, ListBlock)
    assert block.items[0].content == Paragraph(text="Parent")
    assert block.items[0].children[0].content == Heading(level=3, text="Child")


def test_unknown_block_type_degrades_to_unknown_block():
    block = json_codec.decode_block_wrap(_wrap({"$type": "pub.leaflet.blocks.unknown", "customField": "value"}))
    assert isinstance(block, UnknownBlock)
    assert block.type == "pub.leaflet.blocks.unknown"
    assert block.data["customField"] == "value"
    assert json_codec.encode_block(block) == {"$type": "pub.leaflet.blocks.unknown", "customField": "value"}


def test_unknown_list_content_degrades_to_unknown_block():
    item = json_codec.decode_list_item(
        {"$type": "pub.leaflet.blocks.unorderedList#listItem", "content": {"$type": "pub.leaflet.blocks.unknown"}}
    )
    assert isinstance(item.content, UnknownBlock)


def test_alignment_is_accepted():
    wrap = _wrap({"$type": "pub.leaflet.blocks.text", "plaintext": "Centered"})
    wrap["alignment"] = "#textAlignCenter"
    assert json_codec.decode_block_wrap(wrap) == Paragraph(text="Centered")


def test_invalid_json_is_an_error():
    with pytest.raises(StructuralDecodeError):
        json_codec.loads_page("{invalid json")


def test_malformed_block_is_an_error():
    with pytest.raises(StructuralDecodeError):
        json_codec.decode_block_wrap(_wrap("not an object"))


def test_malformed_list_content_is_an_error():
    with pytest.raises(StructuralDecodeError):
        json_codec.decode_list_item({"$type": "pub.leaflet.blocks.unorderedList#listItem", "content": "text"})


def test_decodes_facet_features():
    facet = json_codec.decode_facet(
        {
            "$type": "pub.leaflet.richtext.facet",
            "index": {"$type": "pub.leaflet.richtext.facet#byteSlice", "byteStart": 0, "byteEnd": 10},
            "features": [
                {"$type": "pub.leaflet.richtext.facet#bold"},
                {"$type": "pub.leaflet.richtext.facet#italic"},
                {"$type": "pub.leaflet.richtext.facet#link", "uri": "https://test.com"},
            ],
        }
    )
    assert (facet.start, facet.end) == (0, 10)
    assert facet.features == (Bold(), Italic(), Link(uri="https://test.com"))


def test_unknown_features_are_skipped():
    facet = json_codec.decode_facet(
        {
            "index": {"byteStart": 0, "byteEnd": 10},
            "features": [
                {"$type": "pub.leaflet.richtext.facet#bold"},
                {"$type": "pub.leaflet.richtext.facet#unknown"},
                {"$type": "pub.leaflet.richtext.facet#italic"},
            ],
        }
    )
    assert facet.features == (Bold(), Italic())


def test_malformed_feature_is_an_error():
    with pytest.raises(StructuralDecodeError):
        json_codec.decode_facet({"index": {"byteStart": 0, "byteEnd": 1}, "features": ["not an object"]})


def test_facet_outside_text_is_an_error():
    payload = {
        "$type": "pub.leaflet.blocks.text",
        "plaintext": "short",
        "facets": [{"index": {"byteStart": 0, "byteEnd": 99}, "features": []}],
    }
    with pytest.raises(StructuralDecodeError):
        json_codec.decode_block(payload)


def test_page_round_trip():
    blocks = to_document(
        "# Title\n\nText with **bold** and [a link](https://x.com).\n\n```py\nprint(1)\n```\n\n"
        "> quote\n\n- one\n  - two\n\n---\n\n![pic](pic.png)"
    )
    text = json_codec.dumps_page(blocks)
    assert json_codec.loads_page(text) == blocks


def test_encoding_omits_empty_fields():
    page = json.loads(json_codec.dumps_page([Paragraph(text="plain"), CodeBlock(code="x", theme="")]))
    assert page["$type"] == "pub.leaflet.pages.linearDocument"
    first, second = (wrap["block"] for wrap in page["blocks"])
    assert first == {"$type": "pub.leaflet.blocks.text", "plaintext": "plain"}
    assert second == {"$type": "pub.leaflet.blocks.code", "plaintext": "x"}


def test_heading_level_out_of_range_is_an_error():
    for level in (0, 7):
        with pytest.raises(StructuralDecodeError):
            json_codec.decode_block({"$type": "pub.leaflet.blocks.header", "level": level, "plaintext": "Bad"})


def test_heading_level_defaults_to_one_when_absent():
    block = json_codec.decode_block({"$type": "pub.leaflet.blocks.header", "plaintext": "Top"})
    assert block == Heading(level=1, text="Top")


COMPLEX_DOCUMENT = {
    "$type": "pub.leaflet.document",
    "author": "did:plc:abc123",
    "title": "Complex Document",
    "description": "Testing complex structures",
    "publishedAt": "2024-01-15T10:30:00Z",
    "publication": "at://did:plc:abc123/pub.leaflet.publication/xyz",
    "pages": [
        {
            "$type": "pub.leaflet.pages.linearDocument",
            "id": "page1",
            "blocks": [
                _wrap(
                    {
                        "$type": "pub.leaflet.blocks.header",
                        "level": 1,
                        "plaintext": "Introduction",
                        "facets": [
                            {
                                "$type": "pub.leaflet.richtext.facet",
                                "index": {"$type": "pub.leaflet.richtext.facet#byteSlice", "byteStart": 0, "byteEnd": 12},
                                "features": [{"$type": "pub.leaflet.richtext.facet#bold"}],
                            }
                        ],
                    }
                ),
                _wrap(
                    {
                        "$type": "pub.leaflet.blocks.text",
                        "plaintext": "This is a link to example",
                        "facets": [
                            {
                                "$type": "pub.leaflet.richtext.facet",
                                "index": {"$type": "pub.leaflet.richtext.facet#byteSlice", "byteStart": 10, "byteEnd": 14},
                                "features": [{"$type": "pub.leaflet.richtext.facet#link", "uri": "https://example.com"}],
                            }
                        ],
                    }
                ),
                _wrap(
                    {
                        "$type": "pub.leaflet.blocks.unorderedList",
                        "children": [
                            {
                                "$type": "pub.leaflet.blocks.unorderedList#listItem",
                                "content": {"$type": "pub.leaflet.blocks.text", "plaintext": "First item"},
                                "children": [
                                    {
                                        "$type": "pub.leaflet.blocks.unorderedList#listItem",
                                        "content": {"$type": "pub.leaflet.blocks.text", "plaintext": "Nested item"},
                                    }
                                ],
                            }
                        ],
                    }
                ),
                _wrap({"$type": "pub.leaflet.blocks.horizontalRule"}),
            ],
        }
    ],
}


def test_decodes_complex_document():
    document = json_codec.loads_document(json.dumps(COMPLEX_DOCUMENT))
    assert document.title == "Complex Document"
    assert document.author == "did:plc:abc123"
    assert len(document.pages) == 1
    page = document.pages[0]
    assert page.id == "page1"
    assert len(page.blocks) == 4

    header, text, listing, rule = page.blocks
    assert isinstance(header, Heading)
    assert header.level == 1
    assert len(header.facets) == 1
    assert text.facets[0].features == (Link(uri="https://example.com"),)
    assert isinstance(listing, ListBlock)
    assert len(listing.items) == 1
    assert len(listing.items[0].children) == 1
    assert listing.items[0].children[0].content == Paragraph(text="Nested item")
    assert rule == HorizontalRule()


def test_complex_document_reencodes_unchanged():
    document = json_codec.loads_document(json.dumps(COMPLEX_DOCUMENT))
    assert json.loads(json_codec.dumps_document(document)) == COMPLEX_DOCUMENT


def test_document_round_trip_keeps_metadata_and_page_ids():
    document = Document(
        author="did:plc:test123",
        title="Test Document",
        description="A test document",
        published_at="2024-01-01T00:00:00Z",
        publication="at://did:plc:test123/pub.leaflet.publication/rkey",
        pages=(
            Page(blocks=to_document("# One\n\nFirst page"), id="page1"),
            Page(blocks=to_document("Second *page*")),
        ),
    )
    encoded = json.loads(json_codec.dumps_document(document))
    assert encoded["$type"] == "pub.leaflet.document"
    assert encoded["publishedAt"] == "2024-01-01T00:00:00Z"
    assert encoded["pages"][0]["id"] == "page1"
    assert "id" not in encoded["pages"][1]
    assert json_codec.loads_document(json.dumps(encoded)) == document


def test_malformed_document_pages_are_an_error():
    with pytest.raises(StructuralDecodeError):
        json_codec.loads_document(json.dumps({"$type": "pub.leaflet.document", "pages": "page1"}))
    with pytest.raises(StructuralDecodeError):
        json_codec.loads_document(json.dumps({"$type": "pub.leaflet.document", "title": 3}))


def test_loads_blocks_flattens_document_pages():
    document = Document(title="Two pages", pages=(Page(blocks=(Paragraph("one"),)), Page(blocks=(Paragraph("two"),))))
    assert json_codec.loads_blocks(json_codec.dumps_document(document)) == [Paragraph("one"), Paragraph("two")]
    assert json_codec.loads_blocks(json_codec.dumps_page([Paragraph("solo")])) == [Paragraph("solo")]
