#!/usr/bin/env python3
"""
Analyze Local Image Files

Sends one or more image files through the badgescan pipeline (the same
code path the HTTP endpoint uses) and prints the extracted records or the
normalized error for each file.

This script:
1. Encodes each file as a data URI
2. Runs it through handle_analysis()
3. Prints the text, or the error kind, suggestion and retry hint

Usage:
    python scripts/analyze_file.py badge.jpg
    python scripts/analyze_file.py --model claude-3-5-haiku-latest a.png b.png
    python scripts/analyze_file.py --resolve-only --model gpt-4o
"""

import argparse
import asyncio
import base64
import json
import mimetypes
import sys
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from badgescan.analyzer import handle_analysis
from badgescan.config import configure_logging, get_settings
from badgescan.registry import resolve_target
from badgescan.schemas import AnalysisResult


def to_data_uri(path: Path) -> str:
    """Read a file and encode it as a base64 data URI."""
    media_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


async def analyze_files(paths: list[Path], model: str | None) -> int:
    """Analyze each file in turn; returns the number of failures."""
    failures = 0
    for path in paths:
        payload = {"imageBase64": to_data_uri(path), "filename": path.name}
        if model:
            payload["selectedModel"] = model

        outcome = await handle_analysis("POST", json.dumps(payload))

        print("\n" + "=" * 60)
        print(path.name)
        print("=" * 60)
        if isinstance(outcome, AnalysisResult):
            print(f"Model: {outcome.model_used}  ({outcome.processing_time_ms or 0:.0f}ms)")
            print("-" * 60)
            print(outcome.extracted_text)
        else:
            failures += 1
            print(f"ERROR [{outcome.kind.value}, HTTP {outcome.http_status}]: {outcome.message}")
            if outcome.rate_limit_type is not None:
                print(f"  Rate limit type: {outcome.rate_limit_type.value}")
            if outcome.retry_after_seconds is not None:
                print(f"  Retry after:     {outcome.retry_after_seconds}s")
            if outcome.suggestion:
                print(f"  Suggestion:      {outcome.suggestion}")
    return failures


def main():
    """Main entry point for the file analyzer."""

    parser = argparse.ArgumentParser(
        description="Extract badge/business-card records from local images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/analyze_file.py badge.jpg
  python scripts/analyze_file.py --model claude-3-5-haiku-latest a.png b.png
  python scripts/analyze_file.py --resolve-only --model gpt-4o
        """
    )

    parser.add_argument(
        "files",
        nargs="*",
        type=Path,
        help="Image files to analyze"
    )
    parser.add_argument(
        "--model", "-m",
        help="Model to use (defaults to DEFAULT_MODEL)"
    )
    parser.add_argument(
        "--resolve-only",
        action="store_true",
        help="Show which provider and upstream model would be used, then exit"
    )

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    if args.resolve_only:
        target = resolve_target(args.model or settings.default_model, settings)
        print(f"Requested: {target.requested_model}")
        print(f"Provider:  {target.provider.value} ({target.endpoint})")
        print(f"Upstream:  {target.upstream_model}{' (aliased)' if target.aliased else ''}")
        sys.exit(0)

    if not args.files:
        parser.error("at least one image file is required")

    missing = [p for p in args.files if not p.is_file()]
    if missing:
        for path in missing:
            print(f"ERROR: File not found: {path}")
        sys.exit(1)

    failures = asyncio.run(analyze_files(args.files, args.model))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
