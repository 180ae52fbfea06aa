# =============================================================================
# Lens Overlay Protocol - Message Inspection Script
# =============================================================================
# Developer utility that decodes one binary protocol message and prints it as
# JSON, followed by any diagnostics found while decoding.  Useful for looking
# at captured traffic or at fixtures produced by another implementation.
#
# Usage:
#   python3 scripts/inspect_message.py --type OverlayObject capture.bin
#   python3 scripts/inspect_message.py --type LensOverlayRequestId --hex 082a1001
#
# Exit codes:
#   0  decoded (diagnostics are printed but tolerated unless --strict)
#   1  diagnostics found and --strict was given
#   2  the bytes could not be decoded
# =============================================================================

import argparse
import binascii
import logging
import sys
from typing import List, Optional

from codec import MESSAGE_TYPES, MalformedWireError, decode
from config import get_config


def _read_input(args) -> bytes:
    if args.hex is not None:
        return binascii.unhexlify("".join(args.hex.split()))
    if args.path == "-":
        return sys.stdin.buffer.read()
    with open(args.path, "rb") as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse CLI arguments, decode the message and print the result."""
    parser = argparse.ArgumentParser(
        description="Lens Overlay Protocol - decode and inspect a binary message",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--type", dest="message_type", required=True, choices=sorted(MESSAGE_TYPES),
        help="Message type to decode",
    )
    parser.add_argument("--hex", type=str, default=None, help="Hex-encoded message instead of a file")
    parser.add_argument("path", nargs="?", default="-", help="File with the encoded message ('-' for stdin)")
    parser.add_argument("--no-validate", action="store_true", help="Skip coordinate range checks")
    parser.add_argument("--strict", action="store_true", help="Exit with status 1 when diagnostics are found")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_config().log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        data = _read_input(args)
    except (OSError, binascii.Error) as exc:
        print(f"Could not read input: {exc}", file=sys.stderr)
        return 2

    try:
        result = decode(
            MESSAGE_TYPES[args.message_type],
            data,
            validate_coordinates=False if args.no_validate else None,
        )
    except MalformedWireError as exc:
        print(f"Decode failed: {exc}", file=sys.stderr)
        return 2

    print(result.message.model_dump_json(indent=2))

    if result.diagnostics:
        print(f"\n{len(result.diagnostics)} diagnostic(s):")
        for diagnostic in result.diagnostics:
            print(f"  {diagnostic}")
        if args.strict:
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
