#!/usr/bin/env python3
"""
Data migration script: Encrypt existing sensitive data

This script encrypts plaintext values of sensitive fields in place using
AES-256-GCM. Values that already look encrypted are never touched, so the
script can be run again safely after an interruption.

Usage:
    python -m database.migrate_encrypt_data [--dry-run | --live] [--batch-size 100]

Prerequisites:
    1. Set ENCRYPTION_KEY (and ENCRYPTION_SALT if salts were rotated)
    2. Back up the database before a live run
    3. Stop writers: batches are paged by offset, and the pages shift if a
       collection is modified while it is being migrated

Collections and fields are listed in database/mappings.py.
"""

import argparse
import asyncio
import json
import sys
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from common.database import CollectionStore, StoreFactory
from common.security import EncryptionService, EncryptionSettings
from database.mappings import MIGRATION_MAPPINGS, Collection, MigrationMapping


@dataclass
class MigrationResult:
    """Outcome of migrating one collection"""

    collection: str
    total_records: int = 0
    processed_records: int = 0
    encrypted_records: int = 0
    encrypted_fields: int = 0
    dry_run: bool = False
    success: bool = True
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MigrationSettings(BaseSettings):
    """Migration tool settings loaded from environment variables"""

    batch_size: int = 100
    log_level: str = "INFO"

    # "postgresql", or "memory" to rehearse against a JSON export
    store: str = "postgresql"
    data_file: Optional[str] = None

    # PostgreSQL; DATABASE_URL wins over the individual values
    database_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MIGRATION_DATABASE_URL", "DATABASE_URL")
    )
    postgres_host: str = Field(
        default="localhost", validation_alias=AliasChoices("MIGRATION_POSTGRES_HOST", "POSTGRES_HOST")
    )
    postgres_port: int = Field(
        default=5432, validation_alias=AliasChoices("MIGRATION_POSTGRES_PORT", "POSTGRES_PORT")
    )
    postgres_db: str = Field(
        default="mellow", validation_alias=AliasChoices("MIGRATION_POSTGRES_DB", "POSTGRES_DB")
    )
    postgres_user: str = Field(
        default="mellow", validation_alias=AliasChoices("MIGRATION_POSTGRES_USER", "POSTGRES_USER")
    )
    postgres_password: str = Field(
        default="", validation_alias=AliasChoices("MIGRATION_POSTGRES_PASSWORD", "POSTGRES_PASSWORD")
    )

    class Config:
        env_prefix = "MIGRATION_"
        case_sensitive = False
        populate_by_name = True

    def postgres_params(self) -> Dict[str, Any]:
        """Connection kwargs for PostgreSQLStore"""
        params = {
            "host": self.postgres_host,
            "port": self.postgres_port,
            "database": self.postgres_db,
            "user": self.postgres_user,
            "password": self.postgres_password,
        }
        if self.database_url:
            parsed = StoreFactory.parse_database_url(self.database_url)
            if parsed:
                params.update(parsed)
            else:
                logger.warning("DATABASE_URL is not a postgresql:// URL, using POSTGRES_* settings")
        return params


class DataEncryptionMigrator:
    """Migrates existing plaintext fields to encrypted format"""

    def __init__(
        self,
        store: CollectionStore,
        encryption: EncryptionService,
        encryption_settings: Optional[EncryptionSettings] = None,
        mappings: Optional[List[MigrationMapping]] = None,
    ):
        self.store = store
        self.encryption = encryption
        self.encryption_settings = encryption_settings
        self.mappings = list(mappings if mappings is not None else MIGRATION_MAPPINGS)

    def initialize(self) -> bool:
        """
        Make sure the encryption service has key material

        Returns:
            True if encryption is active
        """
        if self.encryption.initialized:
            return True

        settings = self.encryption_settings or EncryptionSettings()
        if not self.encryption.initialize(settings.master_secret, settings.salts):
            logger.error("Failed to initialize encryption service for migration")
            return False
        return True

    def needs_encryption(self, value: Any) -> bool:
        """Only non-blank strings that do not already look encrypted"""
        if not isinstance(value, str) or not value.strip():
            return False
        return not self.encryption.is_encrypted(value)

    def process_record(
        self,
        record: Dict[str, Any],
        sensitive_fields: Iterable[str],
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Compute encrypted values for the fields of one record that need it

        Returns:
            (needs_update, updates) where updates holds only changed fields
        """
        updates = {}
        for field in sensitive_fields:
            value = record.get(field)
            if self.needs_encryption(value):
                updates[field] = self.encryption.encrypt(value)
        return bool(updates), updates

    async def migrate_model(
        self,
        collection: Collection,
        sensitive_fields: Iterable[str],
        batch_size: int = 100,
        dry_run: bool = False,
    ) -> MigrationResult:
        """
        Encrypt plaintext fields of one collection

        Args:
            collection: Collection to migrate
            sensitive_fields: Fields to encrypt
            batch_size: Records per page
            dry_run: Count what would change without writing

        Returns:
            MigrationResult; failures are reported in it rather than raised
        """
        name = Collection(collection).value
        sensitive_fields = tuple(sensitive_fields)
        result = MigrationResult(collection=name, dry_run=dry_run)

        try:
            if batch_size < 1:
                raise ValueError(f"batch_size must be at least 1, got {batch_size}")

            logger.info(f"📝 Starting migration for {name}...")

            result.total_records = await self.store.count(name)
            logger.info(f"  → Found {result.total_records} {name} records to process")

            offset = 0
            while True:
                records = await self.store.fetch_batch(name, offset, batch_size)
                if not records:
                    break

                for record in records:
                    needs_update, updates = self.process_record(record, sensitive_fields)

                    if needs_update:
                        if not dry_run:
                            await self.store.update_fields(name, record["id"], updates)
                        result.encrypted_records += 1
                        result.encrypted_fields += len(updates)

                    result.processed_records += 1

                offset += len(records)

                percent = (result.processed_records / result.total_records * 100) if result.total_records else 100.0
                logger.info(
                    f"  → Processed {result.processed_records}/{result.total_records} "
                    f"{name} records ({percent:.2f}%)"
                )

            logger.info(f"✓ {name}: encrypted {result.encrypted_records} records")
            return result

        except Exception as e:
            logger.error(f"✗ Error migrating {name}: {e}")
            result.success = False
            result.error = str(e)
            return result

    async def migrate_all(
        self,
        batch_size: int = 100,
        dry_run: bool = False,
    ) -> List[MigrationResult]:
        """
        Run the migration for every configured collection, one at a time

        Returns:
            One MigrationResult per collection, or a single failed result if
            the encryption service has no key material
        """
        if not self.initialize():
            return [MigrationResult(
                collection="*",
                dry_run=dry_run,
                success=False,
                error="Failed to initialize encryption service",
            )]

        if dry_run:
            logger.warning("🔍 DRY RUN MODE - No data will be modified")

        results = []
        for mapping in self.mappings:
            result = await self.migrate_model(
                mapping.collection,
                mapping.sensitive_fields,
                batch_size=batch_size,
                dry_run=dry_run,
            )
            results.append(result)

        return results


def format_report(results: List[MigrationResult], dry_run: bool, duration: float) -> List[str]:
    """Human-readable summary lines"""
    lines = ["=== Migration Results ===", f"Completed in {duration:.2f} seconds", ""]

    total_processed = 0
    total_records = 0
    total_fields = 0
    for result in results:
        if not result.success:
            lines.append(f"❌ {result.collection}: Error - {result.error}")
            continue
        lines.append(
            f"✅ {result.collection}: Processed {result.processed_records} records, "
            f"encrypted {result.encrypted_fields} fields in {result.encrypted_records} records"
        )
        total_processed += result.processed_records
        total_records += result.encrypted_records
        total_fields += result.encrypted_fields

    lines.append("")
    lines.append(
        f"Total: Processed {total_processed} records, "
        f"encrypted {total_fields} fields in {total_records} records"
    )

    if dry_run:
        lines.append("This was a dry run. No changes were made to the database.")
        lines.append("To perform the actual migration, run again with --live.")
    else:
        lines.append("Migration completed.")
    return lines


def choose_mode(args: argparse.Namespace, ask: Callable[[str], str] = input) -> Optional[bool]:
    """
    Decide between dry run and live run

    Returns:
        True for a dry run, False for a confirmed live run, None if the
        operator cancelled
    """
    if args.dry_run:
        dry_run = True
    elif args.live:
        dry_run = False
    else:
        answer = ask("Would you like to perform a dry run first? (y/n): ")
        dry_run = answer.strip().lower() == "y"

    if dry_run:
        logger.info("Performing DRY RUN - no changes will be made to the database.")
        return True

    logger.warning("⚠️ WARNING: This will modify your database! Make sure you have a backup before proceeding.")
    if args.yes and args.live:
        return False

    answer = ask("Are you sure you want to continue? (yes/no): ")
    if answer.strip().lower() != "yes":
        logger.info("Migration cancelled.")
        return None
    return False


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def load_data_file(path: str) -> Dict[str, List[Dict[str, Any]]]:
    """Read a {collection: [records]} JSON export"""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object keyed by collection")
    return data


async def open_store(settings: MigrationSettings, args: argparse.Namespace) -> CollectionStore:
    """
    Connect the store selected by settings.store

    Command line connection flags win over settings.
    """
    if settings.store.lower() == "memory":
        collections = load_data_file(settings.data_file) if settings.data_file else {}
        logger.info(f"Rehearsing against in-memory data ({len(collections)} collections)")
        return await StoreFactory.create("memory", collections=collections)

    params = settings.postgres_params()
    overrides = {
        "host": args.db_host,
        "port": args.db_port,
        "database": args.db_name,
        "user": args.db_user,
        "password": args.db_password,
    }
    params.update({key: value for key, value in overrides.items() if value is not None})
    return await StoreFactory.create(settings.store, **params)


def parse_args(
    argv: Optional[List[str]] = None,
    settings: Optional[MigrationSettings] = None,
) -> argparse.Namespace:
    settings = settings or MigrationSettings()

    parser = argparse.ArgumentParser(description="Encrypt existing plaintext records")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Count what would be encrypted without modifying data"
    )
    mode.add_argument(
        "--live",
        action="store_true",
        help="Encrypt and write (asks for confirmation)"
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt of a live run"
    )
    parser.add_argument(
        "--batch-size",
        type=positive_int,
        default=settings.batch_size,
        help=f"Number of records to process per batch (default: {settings.batch_size})"
    )
    parser.add_argument("--db-host", default=None, help="Database host")
    parser.add_argument("--db-port", type=int, default=None, help="Database port")
    parser.add_argument("--db-name", default=None, help="Database name")
    parser.add_argument("--db-user", default=None, help="Database user")
    parser.add_argument("--db-password", default=None, help="Database password")
    return parser.parse_args(argv)


async def main(
    argv: Optional[List[str]] = None,
    ask: Callable[[str], str] = input,
    store: Optional[CollectionStore] = None,
    encryption: Optional[EncryptionService] = None,
) -> int:
    """Main entry point; errors are reported, never turned into exit codes"""
    settings = MigrationSettings()
    args = parse_args(argv, settings)

    logger.info("=" * 80)
    logger.info("DATA ENCRYPTION MIGRATION")
    logger.info("Only unencrypted data will be processed - encrypted data is preserved.")
    logger.info("=" * 80)

    dry_run = choose_mode(args, ask)
    if dry_run is None:
        return 0

    own_store = store is None
    try:
        if own_store:
            store = await open_store(settings, args)

        migrator = DataEncryptionMigrator(store, encryption or EncryptionService())

        start = time.monotonic()
        results = await migrator.migrate_all(batch_size=args.batch_size, dry_run=dry_run)
        duration = time.monotonic() - start

        for line in format_report(results, dry_run, duration):
            logger.info(line)

    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
    finally:
        if own_store and store is not None:
            await store.disconnect()

    return 0


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level
    )


def run() -> int:
    """Console script entry point"""
    configure_logging(MigrationSettings().log_level)
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(run())
