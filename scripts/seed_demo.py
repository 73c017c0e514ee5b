#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import random
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from hris.db import SessionLocal
from hris.errors import ApiError
from hris.logging_utils import setup_json_logging
from hris.services.seed import seed_demo_data
from hris.settings import get_settings


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the demo identities and sample HR data.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for hire dates, phones and clock times.")
    args = parser.parse_args(argv)

    setup_json_logging(get_settings().log_level)
    db = SessionLocal()
    try:
        result = seed_demo_data(db, rng=random.Random(args.seed))
    except ApiError as exc:
        print(json.dumps({"error": exc.message}, ensure_ascii=False, indent=2))
        return 1
    finally:
        db.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
