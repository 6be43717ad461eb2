#!/usr/bin/env python3
"""
Counter Reconciliation Script

Recounts likes, bookmarks, comments and views for every blog (or one blog)
and corrects any blog counter that drifted from its table.

Usage (from the api/ directory):
    python scripts/reconcile_counters.py

Options:
    --dry-run      Report drift without writing corrections
    --blog-id ID   Reconcile only a specific blog
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

load_dotenv()

from inkwell.db import SessionLocal
from inkwell.errors import NotFound
from inkwell.services.counters import reconcile_all, reconcile_blog


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile blog engagement counters")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    parser.add_argument("--blog-id", type=int, help="Reconcile only this blog")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.blog_id is not None:
            try:
                results = [reconcile_blog(db, args.blog_id, dry_run=args.dry_run)]
            except NotFound:
                logger.error(f"Blog {args.blog_id} not found")
                return 1
        else:
            results = reconcile_all(db, dry_run=args.dry_run)
    finally:
        db.close()

    drifted = [r for r in results if r.drifted]
    for result in drifted:
        for counter, (stored, actual) in result.corrections.items():
            logger.info(f"blog {result.blog_id}: {counter} {stored} -> {actual}")

    logger.info(
        f"{len(drifted)} blog(s) drifted"
        f"{' (dry run, nothing written)' if args.dry_run else ''}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
