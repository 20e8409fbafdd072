"""Command-line entry point: render an OpenDocument template with JSON data."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from lxml import etree

from documatic.exceptions import DocumaticError
from documatic.jinja_env import prepare_jinja2_env
from documatic.opendocument.template import process_template

logger = logging.getLogger("documatic")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="documatic",
        description="Render an OpenDocument Text template into a finished document",
    )
    parser.add_argument("template_file", help="Path to the .odt template")
    parser.add_argument("output_file", help="Where to write the rendered document")
    parser.add_argument("--data", help="JSON file whose contents are bound to 'data' in the template")
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Render undefined names as empty text and report them instead of failing",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    data = None
    if args.data:
        try:
            data = json.loads(Path(args.data).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Could not load data from %s: %s", args.data, exc)
            return 2

    jinja_env, undefined_vars = prepare_jinja2_env(debug=args.lenient)
    try:
        output = process_template(args, data, jinja_env=jinja_env)
    except (DocumaticError, etree.XMLSyntaxError, OSError) as exc:
        logger.error("%s", exc)
        return 1

    if undefined_vars:
        logger.warning("Undefined names rendered empty: %s", ", ".join(sorted(undefined_vars)))
    logger.info("Wrote %s", output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
