"""Script to run database migrations."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def get_config() -> Config:
    return Config("alembic.ini")


def upgrade(revision: str = "head") -> None:
    """Upgrade the database to ``revision``."""
    try:
        print(f"Upgrading database to {revision}...")
        command.upgrade(get_config(), revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Downgrade the database to ``revision``."""
    try:
        print(f"Downgrading database to {revision}...")
        command.downgrade(get_config(), revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a migration from the table metadata."""
    try:
        print(f"Creating migration: {message}")
        command.revision(get_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage clinic queue database migrations")
    sub = parser.add_subparsers(dest="command")

    up = sub.add_parser("upgrade", help="Apply migrations")
    up.add_argument("revision", nargs="?", default="head")

    down = sub.add_parser("downgrade", help="Revert migrations")
    down.add_argument("revision")

    create = sub.add_parser("create", help="Autogenerate a migration")
    create.add_argument("message", nargs="+")

    args = parser.parse_args()
    if args.command == "downgrade":
        downgrade(args.revision)
    elif args.command == "create":
        create_migration(" ".join(args.message))
    else:
        upgrade(getattr(args, "revision", "head"))
