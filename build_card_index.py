"""
build_card_index.py
Builds the offline card index used by LOOKUP_BACKEND=local.
Output: data/card_index.json

Source is the public pokemon-tcg-data GitHub archive. The zip is read in
place (no extraction); only the fields the scanner matches or displays
are kept, so the index stays small enough to load at startup.

Usage:
    python3 build_card_index.py
    python3 build_card_index.py --no-download   # Reuse data/pokemon_tcg_data.zip
"""

import argparse
import json
import posixpath
import sys
import time
import zipfile

import requests

from config import DATA_DIR, DATABASE_FILE

# ============================================
# CONFIG
# ============================================
ZIP_URL = "https://github.com/PokemonTCG/pokemon-tcg-data/archive/refs/heads/master.zip"
ZIP_FILE = DATA_DIR / "pokemon_tcg_data.zip"

SET_FIELDS = ("id", "name", "series", "printedTotal", "total", "releaseDate", "ptcgoCode")
CARD_FIELDS = ("id", "name", "number", "supertype", "subtypes", "types", "hp",
               "rarity", "artist", "images")


def download_zip(dest=ZIP_FILE):
    """Stream the archive to disk. Returns False on failure."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    print(f"Downloading {ZIP_URL}")
    try:
        with requests.get(ZIP_URL, stream=True, timeout=60) as resp:
            resp.raise_for_status()
            total = int(resp.headers.get("content-length", 0))
            downloaded = 0
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=65536):
                    f.write(chunk)
                    downloaded += len(chunk)
                    if total:
                        print(f"\r  {downloaded / (1024 * 1024):.1f} MB "
                              f"({downloaded / total:.0%})", end="", flush=True)
        print(f"\n  Saved to: {dest}")
        return True
    except requests.RequestException as e:
        print(f"  Download failed: {e}")
        if dest.exists():
            dest.unlink()
        return False


def read_archive(zip_path=ZIP_FILE):
    """
    Return (sets_by_id, cards_by_set) straight from the zip.

    sets/en.json holds set metadata; cards/en/<set_id>.json one list of
    cards per set.
    """
    sets_by_id = {}
    cards_by_set = {}
    with zipfile.ZipFile(zip_path) as z:
        for member in z.namelist():
            parts = member.split("/")
            if member.endswith("/sets/en.json"):
                for s in json.loads(z.read(member)):
                    sets_by_id[s["id"]] = {k: s.get(k) for k in SET_FIELDS}
            elif len(parts) >= 3 and parts[-3:-1] == ["cards", "en"] and member.endswith(".json"):
                set_id = posixpath.splitext(parts[-1])[0]
                cards = json.loads(z.read(member))
                if isinstance(cards, list):
                    cards_by_set[set_id] = cards
    return sets_by_id, cards_by_set


def slim_card(card, set_meta):
    record = {k: card[k] for k in CARD_FIELDS if card.get(k) not in (None, "", [], {})}
    record["set"] = set_meta
    return record


def build_indexes(cards):
    """by_id → record, by_set_number "set/num" → id, by_name lowercase → [ids]."""
    by_id = {}
    by_set_number = {}
    by_name = {}

    for card in cards:
        card_id = card["id"]
        by_id[card_id] = card
        by_set_number[f"{card['set']['id']}/{card.get('number', '')}"] = card_id
        by_name.setdefault(card.get("name", "").lower(), []).append(card_id)

    return {"by_id": by_id, "by_set_number": by_set_number, "by_name": by_name}


def build_card_index(sets_by_id, cards_by_set):
    cards = []
    for set_id in sorted(cards_by_set):
        set_meta = sets_by_id.get(set_id) or {"id": set_id}
        cards.extend(slim_card(card, set_meta) for card in cards_by_set[set_id])

    return {
        "meta": {
            "source": "https://github.com/PokemonTCG/pokemon-tcg-data",
            "built_at": time.strftime("%Y-%m-%d %H:%M:%S"),
            "card_count": len(cards),
            "set_count": len(sets_by_id),
        },
        "index": build_indexes(cards),
    }


# ============================================
# MAIN
# ============================================
def main():
    parser = argparse.ArgumentParser(description="Build the offline card index")
    parser.add_argument("--no-download", action="store_true", help="Reuse the existing zip")
    parser.add_argument("--output", default=str(DATABASE_FILE), help="Output JSON path")
    args = parser.parse_args()

    if not args.no_download and not download_zip():
        sys.exit(1)
    if not ZIP_FILE.exists():
        print(f"Error: {ZIP_FILE} not found. Run without --no-download.")
        sys.exit(1)

    sets_by_id, cards_by_set = read_archive()
    card_index = build_card_index(sets_by_id, cards_by_set)
    if not card_index["meta"]["card_count"]:
        print("No cards found in archive.")
        sys.exit(1)

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(card_index, f)

    meta = card_index["meta"]
    print(f"Wrote {args.output}: {meta['card_count']} cards, {meta['set_count']} sets")


if __name__ == "__main__":
    main()
