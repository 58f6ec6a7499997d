#!/usr/bin/env python3
"""
Rewrite a text file from the command line.

Plans the document into chunks, runs the transform over all of them (or a
selection), and writes the result to stdout or a file.

Usage:
    python scripts/rewrite_document.py essay.txt -i "Make it formal"
    python scripts/rewrite_document.py essay.txt -i "Make it formal" --plan-only
    python scripts/rewrite_document.py essay.txt -i "Simplify" --select 0,2
    python scripts/rewrite_document.py essay.txt -i "More examples" --expand --append 2
    python scripts/rewrite_document.py essay.txt -i "Shorter" --provider anthropic -o out.txt
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.config import get_settings
from backend.rewrite.chunking.models import ChunkPlan
from backend.rewrite.errors import RewriteError
from backend.rewrite.models import PROVIDER_NAMES, TransformMode, TransformOptions
from backend.rewrite.service import get_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def progress_callback(current_result: str, current: int, total: int):
    """Display progress during a run."""
    percent = (current / total * 100) if total > 0 else 0
    bar_width = 40
    filled = int(bar_width * current / total) if total > 0 else 0
    bar = "=" * filled + "-" * (bar_width - filled)
    print(
        f"\r[{bar}] {percent:5.1f}% ({current}/{total}) {len(current_result):,} chars",
        end="",
        flush=True,
        file=sys.stderr,
    )


def parse_selection(value: str) -> list[int]:
    """Parse "0,2,5" into chunk indices."""
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid chunk selection: {value}") from None


def show_plan(plan: ChunkPlan):
    print("\n=== Chunk Plan ===", file=sys.stderr)
    print(f"Estimated tokens: {plan.estimated_tokens:,}", file=sys.stderr)
    print(f"Chunks: {len(plan)} (budget {plan.chunk_budget} tokens each)", file=sys.stderr)
    for chunk in plan:
        preview = " ".join(chunk.text.split())[:60]
        print(f"  [{chunk.index}] ~{chunk.token_estimate} tokens  {preview}", file=sys.stderr)


def build_modes(args) -> tuple[TransformMode, ...]:
    modes = []
    if not args.no_rewrite:
        modes.append(TransformMode.REWRITE)
    if args.expand:
        modes.append(TransformMode.EXPAND)
    if args.append:
        modes.append(TransformMode.APPEND)
    return tuple(modes)


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Rewrite a document chunk by chunk with an LLM provider"
    )
    parser.add_argument("file", type=str, help="Path to the text file to rewrite")
    parser.add_argument("--instructions", "-i", required=True, help="How to transform the text")
    parser.add_argument(
        "--provider",
        choices=PROVIDER_NAMES,
        default=settings.default_provider,
        help="LLM provider",
    )
    parser.add_argument("--plan-only", action="store_true", help="Show the chunk plan and exit")
    parser.add_argument("--select", type=parse_selection, help="Chunk indices to process, e.g. 0,2")
    parser.add_argument("--no-rewrite", action="store_true", help="Skip the rewrite pass")
    parser.add_argument("--expand", action="store_true", help="Expand selected chunks in place")
    parser.add_argument("--append", type=int, default=0, metavar="N", help="Append N new sections")
    parser.add_argument("--content-source", type=str, help="File with reference content")
    parser.add_argument("--style-source", type=str, help="File with a writing sample to emulate")
    parser.add_argument("--budget", type=int, help="Override the single-call token budget")
    parser.add_argument("--output", "-o", type=str, help="Write the result here instead of stdout")

    args = parser.parse_args()

    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)

    service = get_service()

    try:
        plan = service.plan(path.read_text(encoding="utf-8"), args.budget)
    except RewriteError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    show_plan(plan)
    if args.plan_only:
        return

    content_source = Path(args.content_source).read_text(encoding="utf-8") if args.content_source else ""
    style_source = Path(args.style_source).read_text(encoding="utf-8") if args.style_source else ""

    options = TransformOptions(
        instructions=args.instructions,
        provider=args.provider,
        content_source=content_source,
        use_content_source=bool(content_source),
        style_source=style_source,
        use_style_source=bool(style_source),
        modes=build_modes(args),
        append_count=args.append,
    )

    if args.provider not in settings.configured_providers:
        print(f"Warning: no API key configured for {args.provider}", file=sys.stderr)

    print(f"\n=== Processing with {args.provider} ===", file=sys.stderr)

    try:
        result = asyncio.run(
            service.run(plan, options, progress_callback, selection=args.select)
        )
    except KeyboardInterrupt:
        print("\n\nProcessing interrupted by user.", file=sys.stderr)
        sys.exit(1)
    except RewriteError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"\n\nProcessing failed: {e}", file=sys.stderr)
        logger.exception("Processing error")
        sys.exit(1)

    print("", file=sys.stderr)

    if args.output:
        Path(args.output).write_text(result, encoding="utf-8")
        print(f"Wrote {len(result):,} chars to {args.output}", file=sys.stderr)
    else:
        print(result)


if __name__ == "__main__":
    main()
