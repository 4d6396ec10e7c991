"""
Diagnostic tool to check the positional layout of a sheet export.
Shows the letter, index, header and sample values of every mapped column.
"""

import argparse
import sys
from pathlib import Path

from ingestion.config.sheet_columns import COL, HEADER_ROWS, cell, column_letter
from ingestion.utils.csv_reader import detect_encoding, get_csv_headers, get_sample_rows


def diagnose_file(file_path: str, num_samples: int = 3):
    """Show header and sample values for every mapped sheet column."""
    print(f"\n{'='*80}")
    print(f"DIAGNOSING: {Path(file_path).name}")
    print(f"{'='*80}\n")

    print(f"Detected encoding: {detect_encoding(file_path)}")
    headers = get_csv_headers(file_path, header_row=HEADER_ROWS - 1)
    samples = get_sample_rows(file_path, num_samples)
    print(f"Header columns: {len(headers)}, sample rows: {len(samples)}\n")

    print(f"{'key':<16} {'col':<4} {'idx':>4}  {'header':<20} samples")
    print("-" * 80)
    for key, index in sorted(COL.items(), key=lambda item: item[1]):
        header = headers[index] if index < len(headers) else "(missing)"
        values = " | ".join((cell(row, key) or "-")[:12] for row in samples)
        print(f"{key:<16} {column_letter(index):<4} {index:>4}  {header[:20]:<20} {values}")

    short_rows = [i for i, row in enumerate(samples, 1) if len(row) <= max(COL.values())]
    if short_rows:
        print(f"\nRows shorter than the mapped layout: {short_rows}")


def main():
    parser = argparse.ArgumentParser(description="Show the positional column layout of a sheet export")
    parser.add_argument("csv", help="Sheet export (CSV)")
    parser.add_argument("--samples", type=int, default=3, help="Number of sample rows")
    args = parser.parse_args()

    if not Path(args.csv).exists():
        print(f"Error: File not found: {args.csv}", file=sys.stderr)
        sys.exit(1)
    diagnose_file(args.csv, args.samples)


if __name__ == "__main__":
    main()
