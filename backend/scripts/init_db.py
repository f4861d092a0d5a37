from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from finance_api.errors import FinanceDatabaseError  # noqa: E402
from finance_api.service import DatabaseService  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the personal finance database schema from DB_* environment settings")
    parser.add_argument("--stats", action="store_true", help="Print table statistics after initialization")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with DatabaseService() as db:
        db.create_connection()
        try:
            result = db.initialize_schema()
        except FinanceDatabaseError as exc:
            print(json.dumps(exc.to_dict(), indent=2))
            return 1
        if args.stats:
            result = {**result, "stats": db.get_table_stats()}

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
