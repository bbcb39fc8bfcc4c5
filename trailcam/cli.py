"""Command-line entry point: serve, migrate, cleanup, token."""

import argparse
import asyncio
import sys

from trailcam.core.config import get_settings
from trailcam.core.database import DatabaseManager, PoolConfig
from trailcam.core.logging import setup_logging
from trailcam.migrations.runner import MigrationRunner
from trailcam.services.auth_service import AuthService
from trailcam.storage import ChunkStore


def cmd_serve(args: argparse.Namespace) -> int:
    from trailcam.main import run

    run()
    return 0


async def _migrate(dry: bool) -> int:
    settings = get_settings()
    db_manager = DatabaseManager(settings.database_url, PoolConfig(ssl=settings.database_ssl))
    await db_manager.connect()
    try:
        runner = MigrationRunner(db_manager.pool)
        if dry:
            pending = await runner.get_pending()
            if not pending:
                print("No pending migrations.")
            for version in pending:
                print(f"  pending: {version}")
            return 0

        applied = await runner.run_pending()
        print(f"Applied {len(applied)} migration(s)")
        for version in applied:
            print(f"  ✓ {version}")
        return 0
    except Exception as e:
        print(f"✗ Migration failed: {e}")
        return 1
    finally:
        await db_manager.disconnect()


def cmd_migrate(args: argparse.Namespace) -> int:
    return asyncio.run(_migrate(args.dry))


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Delete stored segments across every stream directory."""
    settings = get_settings()
    store = ChunkStore(settings.storage_dir)

    if not store.root.is_dir():
        print(f"Storage directory does not exist: {store.root}")
        return 0

    if args.all:
        print("Deleting ALL live stream chunks...")
        report = store.sweep_storage(everything=True)
    else:
        print(f"Deleting chunks older than {args.age} hour(s)...")
        report = store.sweep_storage(max_age_seconds=args.age * 3600)

    print(
        f"Cleanup complete: {report.files_deleted} file(s) deleted, "
        f"{report.megabytes_freed} MB freed, {report.dirs_removed} empty dir(s) removed"
    )
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    settings = get_settings()
    auth = AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )
    print(auth.create_access_token(args.user_id, name=args.name))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trailcam", description="Trail live camera relay")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.set_defaults(func=cmd_serve)

    migrate = sub.add_parser("migrate", help="Apply pending database migrations")
    migrate.add_argument("--dry", action="store_true", help="List pending migrations only")
    migrate.set_defaults(func=cmd_migrate)

    cleanup = sub.add_parser("cleanup", help="Delete old live stream chunks")
    cleanup.add_argument("--all", action="store_true", help="Delete every chunk")
    cleanup.add_argument(
        "--age", type=float, default=None, help="Delete chunks older than N hours"
    )
    cleanup.set_defaults(func=cmd_cleanup)

    token = sub.add_parser("token", help="Issue a broadcaster JWT")
    token.add_argument("user_id")
    token.add_argument("--name", default=None)
    token.set_defaults(func=cmd_token)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "cleanup" and args.age is None:
        args.age = get_settings().cleanup_max_age_hours
    if args.command != "serve":
        setup_logging(get_settings())
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
