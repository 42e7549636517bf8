import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from models.errors import StencilError
from services.stencil_service import StencilService
from pipeline.generate_stencil import render_stencil_file

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkflow-stencil",
        description="Turn a photo into a printable line-work stencil (PNG).",
    )
    parser.add_argument("input", type=Path, help="PNG or JPEG photo")
    parser.add_argument("-o", "--output", type=Path,
                        help="output PNG (default: <input>-stencil.png next to the input)")
    parser.add_argument("--low", dest="low_threshold", type=int, help="lower hysteresis threshold [0-255]")
    parser.add_argument("--high", dest="high_threshold", type=int, help="upper hysteresis threshold [0-255]")
    parser.add_argument("--blur", dest="blur_radius", type=int,
                        help="Gaussian kernel size; even values use the next odd one")
    parser.add_argument("--no-invert", dest="inverted", action="store_false", default=None,
                        help="white lines on black instead of black on white")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    stencil_service = StencilService()
    output = args.output or args.input.with_name(f"{args.input.stem}-stencil.png")

    try:
        settings = stencil_service.defaults.with_changes(
            low_threshold=args.low_threshold,
            high_threshold=args.high_threshold,
            blur_radius=args.blur_radius,
            inverted=args.inverted,
        ).normalized()
        render_stencil_file(args.input, output, settings, stencil_service=stencil_service)
    except StencilError as err:
        logger.error(f"Could not create stencil: {err}")
        return 2

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
