# main.py

"""Entry point for the stockwatch service (bot + poller + ping endpoint)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("stockwatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="stockwatch",
        description=(
            "Telegram bot that watches a storefront product page and "
            "reports when it can be ordered for a pincode."
        ),
    )
    parser.add_argument(
        "--probe",
        nargs=2,
        metavar=("PRODUCT_URL", "PINCODE"),
        default=None,
        help="Check availability once, print the verdict and exit.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format for --probe (default: json).",
    )
    return parser


def _run_probe(args: argparse.Namespace) -> None:
    """Run a one-shot availability check and exit."""
    from src.cli.runner import run_single_probe

    product_url, pincode = args.probe
    exit_code = asyncio.run(
        run_single_probe(product_url, pincode, args.output_format)
    )
    sys.exit(exit_code)


def _run_service() -> None:
    """Run the long-lived bot service until interrupted."""
    from src.cli.runner import run_service

    try:
        exit_code = asyncio.run(run_service())
    except KeyboardInterrupt:
        exit_code = 0
    except Exception:
        logger.critical("Fatal error in service", exc_info=True)
        raise
    finally:
        logger.info("stockwatch shutting down")
    sys.exit(exit_code)


def main() -> None:
    """Route to the one-shot probe or the long-lived service."""
    log_file = setup_logging()
    logger.info("stockwatch starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.probe is not None:
        _run_probe(args)
    else:
        _run_service()


if __name__ == "__main__":
    main()
