"""
scanner.py — Batch card identification from the command line.

Runs the same pipeline as the live session, one card at a time:
  1. EasyOCR text recognition (ocr.py)
  2. Hint extraction: name, number, set code, rarity, HP (hints.py)
  3. Strategy search against the lookup backend (search.py)
and prints a summary table at the end.

Input is either image files / directories, or a text file of already
recognized lines (--lines), one card per blank-line-separated block.
The text mode skips OCR entirely, which is handy for tuning hint
extraction against recorded OCR output.

Usage:
    python3 scanner.py test_images/                 # every image in a folder
    python3 scanner.py card1.jpg card2.png -v       # extra debug info
    python3 scanner.py --lines recorded_ocr.txt     # no OCR, text blocks
    python3 scanner.py --backend local -q           # offline, table only
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from prettytable import PrettyTable

from config import LOOKUP_BACKEND, MOCK_EXTENSIONS
from errors import RecognitionError, SearchUnavailableError
from hints import extract_hint
from models import RecognizedFragment
from search import search

logger = logging.getLogger("scanner")


# ─────────────────────────────────────────────────────────────
# PIPELINE
# ─────────────────────────────────────────────────────────────

def identify(fragments, lookup, label):
    """Hint + search for one card's fragments. Returns a result dict."""
    t0 = time.time()
    hint = extract_hint(fragments)
    result = {
        "file": label,
        "hint": hint,
        "matches": (),
        "attempted": (),
        "warning": None,
        "error": None,
    }

    if not hint.has_strong_hint:
        result["error"] = "no usable text"
    else:
        try:
            outcome = search(hint, lookup)
        except SearchUnavailableError as e:
            result["error"] = str(e)
            result["attempted"] = e.attempted_queries
        else:
            result["matches"] = outcome.matches
            result["attempted"] = outcome.attempted_queries
            result["warning"] = outcome.warning

    result["time"] = time.time() - t0
    return result


def process_image(img_path, recognizer, lookup):
    t0 = time.time()
    try:
        fragments = recognizer.recognize(str(img_path))
    except RecognitionError as e:
        return {"file": Path(img_path).name, "hint": None, "matches": (),
                "attempted": (), "warning": None, "error": str(e),
                "time": time.time() - t0}

    result = identify(fragments, lookup, Path(img_path).name)
    result["time"] = time.time() - t0
    return result


def read_line_blocks(path):
    """Blank-line-separated blocks of text, one block per card."""
    blocks, current = [], []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                current.append(line)
            elif current:
                blocks.append(current)
                current = []
    if current:
        blocks.append(current)
    return blocks


def find_card_images(paths):
    """Expand files and directories into a sorted list of image files."""
    image_files = []
    for p in map(Path, paths):
        if p.is_dir():
            for ext in MOCK_EXTENSIONS:
                image_files.extend(p.glob(ext))
        elif p.is_file():
            image_files.append(p)
        else:
            logger.warning("Not found: %s", p)
    return sorted(set(image_files))


# ─────────────────────────────────────────────────────────────
# OUTPUT
# ─────────────────────────────────────────────────────────────

def print_summary_table(results):
    """Build the batch results table. Returns (table, stats)."""
    table = PrettyTable()
    table.field_names = ["File", "Hint", "Card (Set)", "Num", "Rarity", "Conf", "Queries", "Time"]
    table.align["File"] = "l"
    table.align["Hint"] = "l"
    table.align["Card (Set)"] = "l"
    table.align["Conf"] = "r"
    table.align["Time"] = "r"
    table.max_width["File"] = 24
    table.max_width["Hint"] = 30
    table.max_width["Card (Set)"] = 30

    identified = 0
    for r in results:
        hint = r["hint"].describe() if r["hint"] else "-"
        elapsed = f"{r.get('time', 0):.1f}s"
        queries = len(r["attempted"])

        if r["error"]:
            table.add_row([r["file"], hint, f"ERROR: {r['error']}", "-", "-", "-", queries, elapsed])
            continue
        if not r["matches"]:
            table.add_row([r["file"], hint, "no match", "-", "-", "-", queries, elapsed])
            continue

        top = r["matches"][0]
        identified += 1
        table.add_row([
            r["file"], hint, f"{top.card.name} ({top.card.set_name or top.card.set_id})",
            top.card.display_number, top.card.rarity.value,
            f"{top.confidence_percentage}%", queries, elapsed,
        ])

    stats = {"identified": identified, "failed": len(results) - identified}
    return table, stats


# ─────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Pokemon Card Scanner — batch mode")
    parser.add_argument("paths", nargs="*", help="Image files or directories")
    parser.add_argument("--lines", help="Text file of recognized lines, one card per block")
    parser.add_argument("--backend", choices=["tcgdex", "pokemontcg", "local"], default=None,
                        help=f"Card lookup backend (default: {LOOKUP_BACKEND})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show extra debug output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Show summary table only")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.paths and not args.lines:
        parser.error("give image paths or --lines FILE")

    from lookup_cache import build_lookup
    overall_start = time.time()
    lookup = build_lookup(args.backend)

    results = []
    if args.lines:
        for i, block in enumerate(read_line_blocks(args.lines), start=1):
            fragments = [RecognizedFragment(text=line, confidence=1.0) for line in block]
            results.append(identify(fragments, lookup, f"block {i}"))
    else:
        from ocr import TextRecognizer

        image_files = find_card_images(args.paths)
        if not image_files:
            print("No images found")
            sys.exit(1)

        recognizer = TextRecognizer()
        for i, img_path in enumerate(image_files, start=1):
            if not args.quiet:
                print(f"[{i}/{len(image_files)}] {img_path.name}")
            results.append(process_image(img_path, recognizer, lookup))

    if not args.quiet:
        for r in results:
            if r["warning"]:
                print(f"  {r['file']}: {r['warning']}")

    table, stats = print_summary_table(results)
    print(table)

    total_time = time.time() - overall_start
    print(f"\n  Cards scanned:    {len(results)}")
    print(f"  Identified:       {stats['identified']}")
    print(f"  Failed:           {stats['failed']}")
    print(f"  Total time:       {total_time:.1f}s ({total_time / max(len(results), 1):.1f}s avg)")


if __name__ == "__main__":
    main()
