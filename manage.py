#!/usr/bin/env python3
"""
Database management script.
Creates or resets the schema and runs the orphan photo reconciliation sweep
outside the request path.
"""

import asyncio
import sys
import argparse
import json
import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app.config import settings
from app.database import engine, Base, AsyncSessionLocal
from app.models import Photo, Property  # noqa: F401  (registers tables on Base.metadata)
from app.services.reconciler import PhotoReconciler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class DatabaseManager:
    """Schema management and maintenance jobs."""

    def __init__(
        self,
        db_engine: AsyncEngine = engine,
        session_factory: async_sessionmaker = AsyncSessionLocal
    ):
        self.engine = db_engine
        self.session_factory = session_factory

    async def create_tables(self) -> None:
        """Create any missing tables and indexes."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("All tables created")

    async def reset_database(self) -> None:
        """Reset the database by dropping and recreating all tables."""
        logger.warning("Resetting database - all data will be lost!")

        if not (settings.is_development or settings.is_testing):
            raise RuntimeError("Database reset is only allowed in development or test mode")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info("All tables dropped")
            await conn.run_sync(Base.metadata.create_all)
            logger.info("All tables created")

        logger.info("Database reset completed")

    async def reconcile_photos(self, batch_size: Optional[int] = None) -> List[Dict[str, str]]:
        """Run one orphan photo reconciliation sweep."""
        async with self.session_factory() as session:
            reconciler = PhotoReconciler(session, batch_size=batch_size)
            return await reconciler.reconcile_orphan_photos()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Database management for the property photo sync API")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("create-tables", help="Create missing tables")

    reset_parser = subparsers.add_parser("reset", help="Reset database (development only)")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm database reset")

    reconcile_parser = subparsers.add_parser("reconcile", help="Link orphan photos to their properties")
    reconcile_parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.reconcile_batch_size,
        help="Maximum number of orphan photos to examine"
    )

    return parser


async def _run(args: argparse.Namespace, manager: DatabaseManager) -> None:
    try:
        if args.command == "create-tables":
            await manager.create_tables()

        elif args.command == "reset":
            await manager.reset_database()

        elif args.command == "reconcile":
            reconciled = await manager.reconcile_photos(batch_size=args.batch_size)
            print(json.dumps({"reconciled": reconciled, "count": len(reconciled)}, indent=2))
    finally:
        await manager.engine.dispose()


def main(argv: Optional[List[str]] = None, manager: Optional[DatabaseManager] = None) -> int:
    """Main CLI interface for database management."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "reset" and not args.confirm:
        print("Database reset requires --confirm flag")
        return 1

    try:
        asyncio.run(_run(args, manager or DatabaseManager()))
    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
