from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import json_codec, markdown_parser, renderer_markdown
from .config import ConverterConfig, load_config
from .images import LocalImageResolver
from .utils import configure_logging, read_text, resolve_output_path, write_text

JSON_SUFFIX = ".json"
MARKDOWN_SUFFIX = ".md"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leafmark",
        description="Convert Markdown into leaflet page JSON, or page and document JSON back into Markdown.",
    )
    parser.add_argument("input", type=str, help="Markdown file, or a .json page or document to render back to Markdown")
    parser.add_argument("-o", "--output", type=str, help="Output path")
    parser.add_argument("--config", type=str, help="YAML converter config")
    parser.add_argument(
        "--resolve-images",
        action="store_true",
        help="Measure local images relative to the input file instead of using placeholders",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    config = load_config(args.config) if args.config else ConverterConfig()

    logging.info("Reading %s", input_path)
    text = read_text(input_path)
    logging.debug("Input length: %d chars", len(text))

    if input_path.suffix.lower() == JSON_SUFFIX:
        output_path = resolve_output_path(input_path, args.output, MARKDOWN_SUFFIX)
        logging.info("Rendering Markdown...")
        result = renderer_markdown.to_markup(json_codec.loads_blocks(text)) + "\n"
    else:
        output_path = resolve_output_path(input_path, args.output, JSON_SUFFIX)
        logging.info("Parsing markdown...")
        if args.resolve_images:
            blocks = markdown_parser.to_document_with_images(
                text, LocalImageResolver(), base_path=input_path.parent, config=config
            )
        else:
            blocks = markdown_parser.to_document(text, config=config)
        logging.debug("Converted %d block(s)", len(blocks))
        result = json_codec.dumps_page(blocks, indent=2)

    write_text(output_path, result)
    logging.info("Done. Saved to %s", output_path)


if __name__ == "__main__":
    main()
