#!/usr/bin/env python3
"""Daily job: zero every menu item's order counter for the new business day."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from swaadgharka.core.database import SessionLocal  # noqa: E402
from swaadgharka.core.logging_setup import configure_logging  # noqa: E402
from swaadgharka.services.menu_catalog import reset_daily_order_counters  # noqa: E402

logger = logging.getLogger("reset_daily_counters")


def main() -> int:
    configure_logging()
    db = SessionLocal()
    try:
        rows = reset_daily_order_counters(db)
    finally:
        db.close()
    logger.info("Reset %s menu item counters", rows)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
