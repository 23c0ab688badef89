from __future__ import annotations


class ConversionError(Exception):
    """Base class for conversion failures."""


class MarkupParseError(ConversionError):
    """The Markdown parser rejected the input."""


class ImageResolutionError(ConversionError):
    def __init__(self, reference: str, cause: object = None) -> None:
        self.reference = reference
        message = f"failed to resolve image {reference}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UnsupportedBlockError(ConversionError):
    def __init__(self, block_type: str) -> None:
        self.block_type = block_type
        super().__init__(f"unsupported block type: {block_type}")


class StructuralDecodeError(ConversionError, ValueError):
    """Malformed document envelope, block or feature payload."""
