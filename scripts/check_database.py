"""
Check the group directory's JSON document and uploads directory.

Reports:
1. Whether the document loads (the same check the API runs at startup)
2. Duplicate listing ids
3. Listings whose imagePath points at a missing file
4. Files in the uploads directory no listing references

Exit code 0 when everything is consistent, 1 otherwise.
"""

import sys
from collections import Counter
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.config import Settings  # noqa: E402
from app.core.exceptions import StorageFault  # noqa: E402
from app.db.json_store import JsonRecordStore  # noqa: E402


def check_database(settings: Settings) -> bool:
    print("\n" + "="*80)
    print("GROUP DIRECTORY DATABASE CHECK")
    print("="*80 + "\n")

    print("1. Loading document...")
    print(f"   Path: {settings.db_path}")
    if not settings.db_path.is_file():
        print("   ❌ Document does not exist (it is created on first API startup)\n")
        return False

    try:
        listings = JsonRecordStore(settings.db_path).all()
    except StorageFault as e:
        print(f"   ❌ {e.message}")
        print(f"      {e.detail}\n")
        return False
    print(f"   ✅ {len(listings)} listings\n")

    ok = True

    print("2. Checking for duplicate ids...")
    duplicates = [listing_id for listing_id, n in Counter(l.id for l in listings).items() if n > 1]
    if duplicates:
        ok = False
        for listing_id in duplicates:
            print(f"   ❌ Duplicate id: {listing_id}")
    else:
        print("   ✅ All ids unique")
    print()

    print("3. Checking referenced images...")
    print(f"   Uploads: {settings.uploads_dir}")
    referenced = set()
    for listing in listings:
        if not listing.image_path:
            continue
        filename = Path(listing.image_path).name
        referenced.add(filename)
        if not (settings.uploads_dir / filename).is_file():
            ok = False
            print(f"   ❌ Listing {listing.id} ({listing.group_name}): missing {listing.image_path}")
    print(f"   {len(referenced)} images referenced\n")

    print("4. Checking for unreferenced uploads...")
    if settings.uploads_dir.is_dir():
        orphans = sorted(p.name for p in settings.uploads_dir.iterdir() if p.is_file() and p.name not in referenced)
        for name in orphans:
            print(f"   ⚠️  Unreferenced: {name}")
        if not orphans:
            print("   ✅ None")
    else:
        print("   ⚠️  Uploads directory does not exist")

    print("\n" + "="*80)
    print("✅ CHECK PASSED" if ok else "❌ CHECK FAILED")
    print("="*80 + "\n")
    return ok


if __name__ == "__main__":
    success = check_database(Settings())
    sys.exit(0 if success else 1)
