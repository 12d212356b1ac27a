"""Load coupons from a JSON data file into the coupon table.

Accepts either a bare list of coupons or ``{"coupons": [...]}``, in the
camelCase form the storefront data files use::

    python -m scripts.seed_coupons data/coupons.json
"""

import argparse
import json
import logging
import sys
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.orm import Session

from couponengine.core.database import init_db, session_scope
from couponengine.repositories.coupon_repository import CouponRepository
from couponengine.schemas.coupon import Coupon

logger = logging.getLogger(__name__)


def load_coupons(path: Path) -> list[Coupon]:
    """Parse the data file, skipping entries that fail validation."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("coupons", [])

    coupons: list[Coupon] = []
    for index, item in enumerate(raw):
        try:
            coupons.append(Coupon.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping coupon #%d: %s", index, exc)
    return coupons


def seed(
    coupons: list[Coupon],
    session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
) -> int:
    with session_factory() as db:
        repo = CouponRepository(db)
        for coupon in coupons:
            repo.upsert(coupon)
    return len(coupons)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the coupon table from a JSON file.")
    parser.add_argument("path", type=Path, help="JSON file with the coupon definitions")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    init_db()
    count = seed(load_coupons(args.path))
    logger.info("Seeded %d coupons from %s", count, args.path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
