"""
Command line interface for Blobvault.

Commands:
- backup: compress, encrypt and upload the source file once
- schedule: run the backup on its cron schedule until interrupted
- restore: decrypt and decompress an artifact
- list: show the artifacts stored in the container
- keygen: print a new base64 AES key and IV
"""

import os
import sys
import argparse
import logging
import tempfile

from blobvault import configure_logging
from blobvault.config import get_config, storage_settings
from blobvault.errors import BackupError
from blobvault.utils.crypto import CryptoMaterial, generate_iv, generate_key


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='blobvault',
        description='Compress, encrypt and upload a file to cloud object storage.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  # One backup with settings from the environment\n"
            "  blobvault backup\n\n"
            "  # Back up another file into another container\n"
            "  blobvault backup --source /var/backups/db.bak --container nightly\n\n"
            "  # Run daily at the configured time\n"
            "  blobvault schedule\n\n"
            "  # Decrypt a downloaded artifact\n"
            "  blobvault restore db_encrypted.zip db.bak\n\n"
            "  # Show what is stored in the container\n"
            "  blobvault list\n"
        ),
    )
    parser.add_argument(
        '--env',
        default=None,
        help="Configuration to use (development, production, testing). Overrides BLOBVAULT_ENV.",
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    backup = subparsers.add_parser('backup', help='Run one backup and exit.')
    backup.add_argument('--source', help='File to back up. Overrides BACKUP_SOURCE_PATH.')
    backup.add_argument('--container', help='Target container. Overrides BACKUP_CONTAINER_NAME.')
    backup.add_argument(
        '--provider',
        choices=['azure', 's3', 'local'],
        help='Storage provider. Overrides STORAGE_PROVIDER.',
    )

    subparsers.add_parser('schedule', help='Run backups on SCHEDULE_CRON until interrupted.')

    restore = subparsers.add_parser('restore', help='Decrypt and decompress an artifact.')
    restore.add_argument('artifact', help='Artifact path, or blob name with --download.')
    restore.add_argument('output', help='Where to write the restored file.')
    restore.add_argument(
        '--download',
        action='store_true',
        help='Fetch the artifact from the configured container first.',
    )
    restore.add_argument('--container', help='Container to download from.')

    list_cmd = subparsers.add_parser('list', help='List artifacts in the container.')
    list_cmd.add_argument('--container', help='Container to list. Overrides BACKUP_CONTAINER_NAME.')
    list_cmd.add_argument('--prefix', default='', help='Only show blobs whose name starts with this.')

    subparsers.add_parser('keygen', help='Print a new base64 AES-256 key and IV.')

    return parser.parse_args(argv)


def cmd_backup(cfg, args) -> int:
    from blobvault.backup.executor import run_backup_from_config

    result = run_backup_from_config(
        cfg,
        source_path=args.source,
        container_name=args.container,
        storage_provider=args.provider
    )

    if result.ok:
        print(f"Uploaded {result.blob_name} to container '{result.container_name}'")
        return EXIT_OK

    print(f"Backup failed: {result.error_message}", file=sys.stderr)
    return EXIT_FAILED


def cmd_schedule(cfg, args) -> int:
    from blobvault.scheduler import init_scheduler, start_scheduler, stop_scheduler

    try:
        init_scheduler(cfg)
    except ValueError as e:
        print(f"ERROR: invalid SCHEDULE_CRON '{cfg.SCHEDULE_CRON}': {e}", file=sys.stderr)
        return EXIT_CONFIG
    except LookupError as e:
        # zoneinfo and pytz both raise KeyError subclasses for unknown zones
        print(
            f"ERROR: invalid SCHEDULER_TIMEZONE '{cfg.SCHEDULER_TIMEZONE}': {e}",
            file=sys.stderr
        )
        return EXIT_CONFIG

    try:
        start_scheduler()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Interrupt received, shutting down")
    finally:
        stop_scheduler()

    return EXIT_OK


def cmd_restore(cfg, args) -> int:
    from blobvault.backup.compression import decrypt_and_decompress
    from blobvault.backup.storage import create_storage

    try:
        material = CryptoMaterial.from_base64(cfg.AES_KEY, cfg.AES_IV)

        if not args.download:
            decrypt_and_decompress(args.artifact, args.output, material)
        else:
            container_name = args.container or cfg.CONTAINER_NAME
            storage = create_storage(
                cfg.STORAGE_PROVIDER, container_name, **storage_settings(cfg)
            )
            with tempfile.TemporaryDirectory(prefix='blobvault_restore_') as temp_dir:
                local_artifact = os.path.join(temp_dir, os.path.basename(args.artifact))
                storage.download(args.artifact, local_artifact)
                decrypt_and_decompress(local_artifact, args.output, material)

    except BackupError as e:
        logger.error(f"Restore failed: {e}")
        print(f"Restore failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    print(f"Restored {args.artifact} to {args.output}")
    return EXIT_OK


def cmd_list(cfg, args) -> int:
    from blobvault.backup.storage import create_storage

    container_name = args.container or cfg.CONTAINER_NAME

    try:
        storage = create_storage(
            cfg.STORAGE_PROVIDER, container_name, **storage_settings(cfg)
        )
        blobs = storage.list_blobs(args.prefix)
    except BackupError as e:
        logger.error(f"Listing failed: {e}")
        print(f"Listing failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    for blob in blobs:
        print(f"{blob['name']}\t{blob['size']}\t{blob['modified'].isoformat()}")

    return EXIT_OK


def cmd_keygen(cfg, args) -> int:
    print(f"BACKUP_AES_KEY={generate_key()}")
    print(f"BACKUP_AES_IV={generate_iv()}")
    print("# Leave BACKUP_AES_IV unset to use a fresh random IV for every artifact.")
    return EXIT_OK


COMMANDS = {
    'backup': cmd_backup,
    'schedule': cmd_schedule,
    'restore': cmd_restore,
    'list': cmd_list,
    'keygen': cmd_keygen,
}


def main(argv=None) -> int:
    args = _parse_args(argv)

    try:
        cfg = get_config(args.env)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG

    if args.command != 'keygen':
        configure_logging(cfg)

    return COMMANDS[args.command](cfg, args)


if __name__ == '__main__':
    sys.exit(main())
