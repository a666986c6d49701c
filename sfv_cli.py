"""CLI tool to parse structured field headers and convert them to JSON."""

import argparse
import json
import logging
import os
from typing import List, Optional

from sfv_conversion import value_to_json_dict, value_to_simple_json
from sfv_parser import ParseError, join_multi_lines, parse_dict_line, parse_item_line, parse_list_line

logger = logging.getLogger(__name__)

PARSERS = {
    "dict": parse_dict_line,
    "list": parse_list_line,
    "item": parse_item_line,
}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Parse a structured field header (RFC 8941), print its canonical form and convert to JSON."
    )
    parser.add_argument("path", help="Path to a file holding the header value, one fragment per line")
    parser.add_argument(
        "--type",
        dest="field_type",
        choices=sorted(PARSERS),
        default="dict",
        help="Top-level type of the field (default: dict)",
    )
    parser.add_argument(
        "--json",
        dest="emit_json",
        action="store_true",
        help="Emit tagged JSON (<name>.json)",
    )
    parser.add_argument(
        "--simple",
        dest="emit_simple",
        action="store_true",
        help="Emit simplified JSON (<name>_simple.json)",
    )
    parser.add_argument(
        "--strict-byteseq",
        dest="strict_byte_seq",
        action="store_true",
        help="Fail on malformed base64 in byte sequences instead of decoding them as empty.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path = args.path
    with open(path, "r", encoding="utf-8") as f:
        header = join_multi_lines(f.read().splitlines())
    try:
        value = PARSERS[args.field_type](header, strict_byte_seq=args.strict_byte_seq)
    except ParseError as e:
        raise SystemExit(f"Error parsing structured field: {e}")

    print(value.encode())

    base = os.path.splitext(path)[0]
    if args.emit_json:
        json_path = base + ".json"
        with open(json_path, "w", encoding="utf-8") as fw:
            json.dump(value_to_json_dict(value), fw, indent=4)
        logger.info(f"Wrote {json_path}")

    if args.emit_simple:
        simple_json_path = base + "_simple.json"
        with open(simple_json_path, "w", encoding="utf-8") as fw:
            json.dump(value_to_simple_json(value), fw, indent=4)
        logger.info(f"Wrote {simple_json_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
