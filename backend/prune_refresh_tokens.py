"""
Refresh token cleanup for Tollgate

Deletes refresh token records that expired or were revoked more than
--days days ago. Active sessions are never touched.

Run periodically (cron, k8s CronJob):
    python prune_refresh_tokens.py --days 30
"""
import argparse
import sys
from datetime import datetime, timedelta

from tollgate.database import SessionLocal
from tollgate.services.refresh_registry import RefreshTokenRegistry
from tollgate.utils.logger import logger


def prune(days: int, dry_run: bool = False) -> int:
    """Delete stale records older than ``days`` and return how many matched."""
    cutoff = datetime.utcnow() - timedelta(days=days)
    db = SessionLocal()
    try:
        registry = RefreshTokenRegistry(db)
        if dry_run:
            return registry.count_purgeable(cutoff)
        deleted = registry.purge_expired(cutoff)
        logger.info(
            f"Pruned {deleted} refresh token record(s) older than {cutoff.isoformat()}",
            extra={"action": "prune_refresh_tokens"},
        )
        return deleted
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete expired and revoked refresh token records")
    parser.add_argument("--days", type=int, default=30, help="retention in days for dead records (default: 30)")
    parser.add_argument("--dry-run", action="store_true", help="only report how many records would be deleted")
    args = parser.parse_args(argv)

    if args.days < 0:
        parser.error("--days must be zero or positive")

    count = prune(args.days, dry_run=args.dry_run)
    verb = "Would delete" if args.dry_run else "Deleted"
    print(f"  ✓ {verb} {count} refresh token record(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
