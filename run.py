#!/usr/bin/env python3
"""
Invoice normalization - CLI entry point.

Usage:
  python run.py                     # Process ./input, output to ./output
  python run.py --input Invoices --output ./output
  python run.py --input ./input --parallel 4 --verbose

Drop invoice images (JPG/PNG/WEBP) or PDFs into the input folder and run to
generate one normalized JSON per invoice.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from invoice_normalizer.config import get_settings
from invoice_normalizer.pipeline import run_on_folder


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Extract and normalize invoice line items, reconciling against the printed total."
    )
    parser.add_argument(
        "--input",
        "-i",
        type=str,
        default="./input",
        help="Input directory containing invoice images or PDFs (default: ./input)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="./output",
        help="Output directory for normalized JSON files (default: ./output)",
    )
    parser.add_argument(
        "--parallel",
        "-j",
        type=int,
        default=1,
        metavar="N",
        help="Process N invoices in parallel (default: 1)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log per-line normalization decisions",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input)
    output_path = Path(args.output)

    if not input_path.exists():
        input_path.mkdir(parents=True, exist_ok=True)
        print(f"Created input directory: {input_path.absolute()}. Add invoices and run again.")
        return

    if not settings.has_api_key:
        print("No OPENROUTER_API_KEY / OPENAI_API_KEY found; extraction will fail for every invoice.")

    results = run_on_folder(input_path, output_path, max_workers=max(1, args.parallel))

    print(f"Processed {len(results)} invoice(s). Output in: {output_path.absolute()}")
    for path, result, error in results:
        if error is not None:
            print(f"  - {path.name}: ERROR {error}")
            continue
        status = "total matches" if result.total_matches else "REVIEW"
        warnings = f" [{', '.join(result.warnings)}]" if result.warnings else ""
        print(
            f"  - {path.name}: {len(result.items)} line items, grand total {result.grand_total:.2f} "
            f"({status}){warnings}"
        )


if __name__ == "__main__":
    main()
