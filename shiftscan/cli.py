"""
Run the extraction pipeline on a local shift report and print the result.

Usage:
    shiftscan-analyze report.jpg
    shiftscan-analyze report.pdf --store-id store-1 --save
"""

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from shiftscan.config import settings
from shiftscan.services.analysis import ShiftAnalysisService
from shiftscan.services.errors import ShiftScanError
from shiftscan.services.storage import ShiftReportStorage, calculate_file_hash


def main(argv=None):
    parser_args = argparse.ArgumentParser(description='Analyze a shift report photo or PDF')
    parser_args.add_argument('path', type=Path, help='Image or PDF to analyze')
    parser_args.add_argument('--mime', type=str, help='MIME type (guessed from the extension by default)')
    parser_args.add_argument('--store-id', type=str, help='Store id used with --save')
    parser_args.add_argument('--save', action='store_true', help='Save the extract to Supabase')
    parser_args.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser_args.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.LOG_LEVEL)

    if not args.path.exists():
        print(f"Error: file not found: {args.path}")
        return 1

    if args.save and not args.store_id:
        print("Error: --save requires --store-id")
        return 1

    mime_type = args.mime or mimetypes.guess_type(str(args.path))[0] or 'application/octet-stream'
    file_data = args.path.read_bytes()

    try:
        result = ShiftAnalysisService().analyze(file_data, mime_type)
    except ShiftScanError as e:
        print(f"Extraction failed: {type(e).__name__}: {e}")
        return 2

    print("=" * 60)
    quality = result.quality.to_dict()
    print(f"QUALITY: {quality.pop('score')} ({quality.pop('recommendation')})")
    for name, value in quality.items():
        print(f"  {name}: {value}")
    print(f"METHOD:  {result.method}")
    print(f"CONFIDENCE: {result.extract.extraction_confidence}")
    for skipped in result.skipped_tiers:
        print(f"  skipped {skipped['tier']}: {skipped['reason']}")
    print("=" * 60)
    print(json.dumps(result.extract.model_dump(mode='json', exclude={'raw_text'}), indent=2))

    if args.save:
        saved = ShiftReportStorage().save(args.store_id, result.extract, calculate_file_hash(file_data))
        print(f"\nSaved {saved.id}: {saved.status} (upload #{saved.upload_count}, report date {saved.report_date})")

    return 0


if __name__ == '__main__':
    sys.exit(main())
