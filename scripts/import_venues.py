"""Import venues into the directory from an .xlsx file.

Usage: python scripts/import_venues.py [path/to/venues.xlsx]

Without an argument the first .xlsx file in data/ is used.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.api_client import api
from services.directory import directory
from services.import_excel import parse_venues_excel
from utils.logger import logger


def find_source_file(argv: list[str]) -> Path | None:
    if len(argv) > 1:
        return Path(argv[1])

    data_dir = Path("data")
    xlsx_files = sorted(f for f in data_dir.glob("*.xlsx") if not f.name.startswith("~$"))
    return xlsx_files[0] if xlsx_files else None


async def import_all(xlsx_file: Path) -> int:
    print(f"Processing file: {xlsx_file.name}")

    items, errors = parse_venues_excel(xlsx_file)
    for err in errors:
        print(f"  {err}")

    if not items:
        print("Nothing to import.")
        return 1

    print(f"Parsed {len(items)} venues, sending to the directory...")
    try:
        created, failed = await directory.import_venues(items)
    finally:
        await api.close()

    for err in failed:
        print(f"  ERROR {err}")

    print("\n=== DONE ===")
    print(f"Added:  {created}")
    print(f"Errors: {len(failed)}")
    logger.info(f"Venue import from {xlsx_file.name}: {created} added, {len(failed)} failed")
    return 0 if not failed else 2


if __name__ == "__main__":
    source = find_source_file(sys.argv)
    if source is None or not source.exists():
        print(f"No .xlsx file found ({source or Path('data').resolve()})")
        sys.exit(1)
    sys.exit(asyncio.run(import_all(source)))
