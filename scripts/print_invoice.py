"""
Print an invoice or memo the way the download button does.

Loads the document from the configured ledger store, waits the print delay,
writes the PDF (or prints the text view) and returns once the print
session completes.

Usage:
    python scripts/print_invoice.py --invoice 1
    python scripts/print_invoice.py --memo M-1004 --output-dir downloads
    python scripts/print_invoice.py --invoice 1 --text
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import build_store, get_settings
from controllers.notices import NoticeBoard
from core.observability.logging import configure_logging, get_logger
from printing.coordinator import PrintCoordinator
from printing.platform import EventPrintPlatform, PdfPrintPlatform


logger = get_logger("scripts.print_invoice")


async def run(args) -> int:
    settings = get_settings()
    store = build_store(settings)
    notices = NoticeBoard()

    if args.text:
        platform = EventPrintPlatform()
    else:
        platform = PdfPrintPlatform(args.output_dir or settings.print_output_dir)

    coordinator = PrintCoordinator(
        platform,
        notices=notices,
        print_delay=settings.print_delay,
        return_delay=settings.print_return_delay,
        letterhead=settings.letterhead,
    )

    try:
        if args.invoice is not None:
            document = await coordinator.print_invoice(store, args.invoice)
        else:
            document = await coordinator.print_memo(store, args.memo)

        if document is not None:
            await coordinator.wait(timeout=args.timeout)
    except asyncio.TimeoutError:
        logger.error(f"Print did not complete within {args.timeout}s")
        coordinator.teardown()
        return 1
    finally:
        await store.close()

    if not coordinator.completed:
        for notice in notices.notices:
            print(f"ERROR: {notice.message}", file=sys.stderr)
        return 1

    if args.text:
        print(platform.printed[-1].to_text())
    else:
        print(f"Saved {platform.last_path}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Print an invoice or memo")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--invoice", type=int, help="Invoice id")
    target.add_argument("--memo", help="Memo number")
    parser.add_argument("--output-dir", help="Directory for the PDF (default: PRINT_OUTPUT_DIR)")
    parser.add_argument("--text", action="store_true", help="Print the text view instead of writing a PDF")
    parser.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for completion")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
