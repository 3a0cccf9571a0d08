"""Command-line interface for the SMS ledger."""

import argparse
import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console

from sms_ledger import __version__
from sms_ledger.config import (
    DEFAULT_CONFIG_DIR,
    Config,
    ConfigError,
    load_config,
    save_mappings,
)
from sms_ledger.models.mapping import MappingRule
from sms_ledger.models.operations import UpdateOp
from sms_ledger.models.transaction import Direction, Transaction
from sms_ledger.utils.decimal_utils import format_amount
from sms_ledger.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

CONFIG_DIR_ENV = "SMS_LEDGER_CONFIG_DIR"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REAUTH = 2


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="sms-ledger",
        description=(
            "Turn bank and payment-app SMS backups into deduplicated, "
            "classified ledger transactions"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sync --backup-dir ./backups/personal --source personal --user-id u1
  %(prog)s sync -b ./backups/personal -s personal -u u1 --dry-run -v
  %(prog)s remap --transactions export.jsonl --user-id u1
  %(prog)s mapping add --name "HDFC Card" --type credit_card --match XX810
  %(prog)s mapping remove --name "HDFC Card" --transactions export.jsonl
  %(prog)s validate
        """,
    )

    # Version
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Configuration
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path(os.environ.get(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR),
        help=f"Base config directory (default: ${CONFIG_DIR_ENV} or ./config)",
    )

    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: <config-dir>/settings.yaml)",
    )

    parser.add_argument(
        "--mappings",
        type=Path,
        default=None,
        help="Path to mappings.yaml (default: <config-dir>/mappings.yaml)",
    )

    # Verbosity
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # sync
    sync_parser = subparsers.add_parser(
        "sync",
        help="Classify the newest backup and write upsert operations",
    )
    sync_parser.add_argument(
        "-b", "--backup-dir",
        type=Path,
        required=True,
        help="Folder holding the profile's backup files",
    )
    sync_parser.add_argument(
        "-s", "--source",
        required=True,
        help="Source label stamped on every transaction (e.g. profile name)",
    )
    sync_parser.add_argument(
        "-u", "--user-id",
        required=True,
        help="Owner of the transactions",
    )
    sync_parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Operations file (default: output/sync_YYYYMMDD_HHMMSS.jsonl)",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and report without writing operations",
    )

    # remap
    remap_parser = subparsers.add_parser(
        "remap",
        help="Re-apply mapping rules to stored transactions",
    )
    remap_parser.add_argument(
        "-t", "--transactions",
        type=Path,
        required=True,
        help="Stored transactions export (JSON array or JSON Lines)",
    )
    remap_parser.add_argument(
        "-u", "--user-id",
        required=True,
        help="Owner of the transactions",
    )
    remap_parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Operations file (default: output/remap_YYYYMMDD_HHMMSS.jsonl)",
    )

    # mapping
    mapping_parser = subparsers.add_parser("mapping", help="Manage mapping rules")
    mapping_sub = mapping_parser.add_subparsers(dest="mapping_command", metavar="ACTION")

    mapping_sub.add_parser("list", help="List mapping rules in priority order")

    add_parser = mapping_sub.add_parser("add", help="Add or replace a mapping rule")
    add_parser.add_argument("--name", required=True, help="Channel name to assign")
    add_parser.add_argument(
        "--type",
        default="other",
        help="Account type to attach (default: other)",
    )
    add_parser.add_argument(
        "--match",
        action="append",
        required=True,
        metavar="TEXT",
        help="Substring to look for in message bodies (repeatable)",
    )

    remove_parser = mapping_sub.add_parser("remove", help="Delete a mapping rule")
    remove_parser.add_argument("--name", required=True, help="Mapping name to delete")

    for sub in (add_parser, remove_parser):
        sub.add_argument(
            "-t", "--transactions",
            type=Path,
            default=None,
            help="Stored transactions export to remap after the change",
        )
        sub.add_argument(
            "-u", "--user-id",
            default=None,
            help="Owner id for remap operations (required with --transactions)",
        )
        sub.add_argument(
            "-o", "--output",
            type=Path,
            default=None,
            help="Remap operations file (default: output/remap_YYYYMMDD_HHMMSS.jsonl)",
        )

    # validate
    subparsers.add_parser("validate", help="Validate configuration files only")

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def generate_default_output_path(command: str) -> Path:
    """Generate default operations path with timestamp.

    Returns:
        Path with format output/<command>_YYYYMMDD_HHMMSS.jsonl
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path(f"output/{command}_{timestamp}.jsonl")


def validate_output_path(path: Path, base_dir: Path | None = None) -> Path:
    """Validate that output path is within allowed directory.

    Args:
        path: The path to validate.
        base_dir: Base directory to constrain paths within (default: cwd).

    Returns:
        The resolved, validated path.

    Raises:
        ValueError: If the path escapes the allowed directory.
    """
    if base_dir is None:
        base_dir = Path.cwd()

    resolved_base = base_dir.resolve()
    resolved_path = (base_dir / path).resolve()

    try:
        resolved_path.relative_to(resolved_base)
    except ValueError:
        raise ValueError(
            f"Invalid path: '{path}' escapes the allowed directory. "
            f"Paths must be within '{resolved_base}'"
        ) from None

    return resolved_path


def resolve_output(args: argparse.Namespace, command: str) -> Path:
    """Return the validated operations path for a command."""
    output = args.output
    if output is None:
        output = generate_default_output_path(command)
        console.print(f"[dim]Using default output: {output}[/dim]")
    return validate_output_path(output)


def mappings_path(args: argparse.Namespace) -> Path:
    """Path of mappings.yaml for this invocation."""
    return args.mappings or (args.config_dir / "mappings.yaml")


def validate_config(args: argparse.Namespace) -> int:
    """Validate configuration files.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 if valid, 1 if errors found.
    """
    console.print("[bold]Validating configuration files...[/bold]\n")

    errors = []
    warnings = []

    # Check config directory
    config_dir = args.config_dir
    if not config_dir.exists():
        warnings.append(f"Config directory not found: {config_dir}")

    # Check settings
    settings_path = args.settings or (config_dir / "settings.yaml")
    if settings_path.exists():
        console.print(f"[green]✓[/green] Settings: {settings_path}")
    else:
        warnings.append(f"Settings file not found: {settings_path}")

    # Check mappings
    rules_path = mappings_path(args)
    if rules_path.exists():
        console.print(f"[green]✓[/green] Mappings: {rules_path}")
    else:
        warnings.append(f"Mappings file not found: {rules_path}")

    # Try to load config
    try:
        config = load_config(
            settings_path=args.settings,
            mappings_path=args.mappings,
            config_dir=config_dir,
        )
        console.print("\n[green]✓[/green] Configuration loaded successfully")
        console.print(f"  - {len(config.classifier.denylist)} denylist terms")
        console.print(f"  - {len(config.classifier.direction)} direction patterns")
        console.print(
            f"  - {len(config.classifier.channel)} channel patterns "
            f"({', '.join(config.classifier.channel_names)})"
        )
        console.print(f"  - merge window {config.merge.window_minutes} minutes")
        console.print(f"  - {len(config.mappings)} mapping rules")
    except (ConfigError, FileNotFoundError) as e:
        errors.append(f"Failed to load configuration: {e}")

    # Report results
    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}")

    if errors:
        console.print("\n[red]Errors:[/red]")
        for err in errors:
            console.print(f"  - {err}")
        return EXIT_ERROR

    console.print("\n[green]Configuration is valid.[/green]")
    return EXIT_OK


def display_summary(
    backup_name: str,
    messages_read: int,
    transactions: list[Transaction],
    classified: int,
    operations: int,
    dry_run: bool,
) -> None:
    """Display sync summary.

    Args:
        backup_name: Backup file that was read.
        messages_read: Messages in the backup.
        transactions: Final transactions.
        classified: Messages recognised as transactions.
        operations: Operations written.
        dry_run: Whether writing was skipped.
    """
    debits = [t for t in transactions if t.direction is Direction.DEBIT and not t.is_failed]
    credits = [t for t in transactions if t.direction is Direction.CREDIT and not t.is_failed]
    failed = [t for t in transactions if t.is_failed]

    console.print("\n[bold]Sync Summary[/bold]")
    console.print(f"  Backup: {backup_name}")
    console.print(f"  Messages read: {messages_read}")
    console.print(f"  Transactions classified: {classified}")
    console.print(f"  After merging duplicates: {len(transactions)}")
    console.print(f"  Debits: {len(debits)} ({format_amount(sum((t.amount for t in debits), Decimal(0)))})")
    console.print(f"  Credits: {len(credits)} ({format_amount(sum((t.amount for t in credits), Decimal(0)))})")
    if failed:
        console.print(f"  [yellow]Failed or reversed: {len(failed)}[/yellow]")

    if dry_run:
        console.print("\n[yellow]Dry run: no operations written[/yellow]")
    else:
        console.print(f"  Operations written: {operations}")


def display_mappings(rules: list[MappingRule]) -> None:
    """Print mapping rules in priority order."""
    if not rules:
        console.print("[yellow]No mapping rules defined.[/yellow]")
        return

    console.print(f"[bold]{len(rules)} mapping rules (first match wins)[/bold]")
    for i, rule in enumerate(rules, 1):
        console.print(
            f"  {i}. {rule.mapping_name} [dim]({rule.account_type})[/dim]: "
            f"{', '.join(rule.match_strings)}"
        )


def run_sync(args: argparse.Namespace, config: Config) -> int:
    """Run the sync command.

    Returns:
        Exit code.
    """
    from sms_ledger.output import OperationWriter, PersistenceError
    from sms_ledger.parsers import (
        BackupSourceError,
        LocalBackupSource,
        ReauthenticationRequiredError,
    )
    from sms_ledger.processing import SyncPipeline

    sink: Optional[OperationWriter] = None
    if not args.dry_run:
        try:
            sink = OperationWriter(resolve_output(args, "sync"))
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return EXIT_ERROR

    source = LocalBackupSource(
        args.backup_dir,
        file_pattern=config.backup.file_pattern,
        max_file_size=config.backup.max_file_size,
    )
    pipeline = SyncPipeline(config.classifier, config.merge.window)

    console.print(f"[bold]SMS Ledger v{__version__}[/bold]\n")
    console.print(f"Backup folder: {args.backup_dir}")
    console.print(f"Source: {args.source}")

    try:
        with console.status("[bold green]Processing backup..."):
            result = pipeline.sync(
                source,
                source_label=args.source,
                user_id=args.user_id,
                mapping_rules=config.mappings,
                sink=sink,
            )
    except ReauthenticationRequiredError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Please re-authenticate the backup source and try again.")
        return EXIT_REAUTH
    except BackupSourceError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    display_summary(
        backup_name=result.backup_name,
        messages_read=result.messages_read,
        transactions=result.transactions,
        classified=result.classified,
        operations=result.written,
        dry_run=args.dry_run,
    )
    if sink is not None:
        console.print(f"\n[green]Operations written to {sink.path}[/green]")
    return EXIT_OK


def write_remap(
    args: argparse.Namespace,
    config: Config,
    transactions_path: Path,
    user_id: str,
) -> int:
    """Remap stored transactions and write the resulting operations.

    Returns:
        Exit code.
    """
    from sms_ledger.output import OperationWriter, PersistenceError, load_persisted_transactions
    from sms_ledger.processing import remap

    try:
        persisted = load_persisted_transactions(transactions_path)
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    operations: list[UpdateOp] = remap(
        persisted,
        config.mappings,
        user_id=user_id,
        manual_id_prefix=config.remap.manual_id_prefix,
        default_channel=config.classifier.default_channel,
    )

    console.print(
        f"Remap: {len(operations)} of {len(persisted)} stored transactions need updating"
    )
    if not operations:
        return EXIT_OK

    try:
        writer = OperationWriter(resolve_output(args, "remap"))
        writer.write(operations)
    except (ValueError, PersistenceError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    console.print(f"[green]Operations written to {writer.path}[/green]")
    return EXIT_OK


def run_mapping(args: argparse.Namespace, config: Config) -> int:
    """Run the mapping list/add/remove commands.

    Returns:
        Exit code.
    """
    path = mappings_path(args)

    if args.mapping_command in (None, "list"):
        display_mappings(config.mappings)
        return EXIT_OK

    if args.transactions is not None and not args.user_id:
        console.print("[red]Error: --user-id is required with --transactions[/red]")
        return EXIT_ERROR

    rules = list(config.mappings)
    existing = config.get_mapping(args.name)

    if args.mapping_command == "add":
        try:
            rule = MappingRule(
                mapping_name=args.name.strip(),
                match_strings=tuple(args.match),
                account_type=args.type,
            )
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return EXIT_ERROR

        if existing is not None:
            # Editing keeps the rule's priority
            rules[rules.index(existing)] = rule
            console.print(f"[green]Updated mapping '{rule.mapping_name}'[/green]")
        else:
            rules.append(rule)
            console.print(f"[green]Added mapping '{rule.mapping_name}'[/green]")
    else:
        if existing is None:
            console.print(f"[red]Error: No mapping named '{args.name}'[/red]")
            return EXIT_ERROR
        rules.remove(existing)
        console.print(f"[green]Removed mapping '{existing.mapping_name}'[/green]")

    save_mappings(path, rules)
    config.mappings = rules

    if args.transactions is not None:
        return write_remap(args, config, args.transactions, args.user_id)
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Arguments to parse (default: sys.argv[1:]).

    Returns:
        Exit code (0 for success, 1 for errors, 2 when the backup source
        needs re-authentication).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    # Console-only logging until the config (and its log file) is known
    log_level = get_log_level(args.verbose)
    setup_logging(level=log_level, log_file="", console_output=args.verbose > 0)

    # Validate only mode
    if args.command == "validate":
        return validate_config(args)

    # Load configuration
    try:
        config = load_config(
            settings_path=args.settings,
            mappings_path=args.mappings,
            config_dir=args.config_dir,
        )
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Run 'sms-ledger validate' to check configuration files.")
        return EXIT_ERROR

    setup_logging(
        level=log_level if args.verbose else config.logging.level,
        log_file=config.logging.file,
        console_output=args.verbose > 0,
    )

    if args.command == "sync":
        return run_sync(args, config)
    if args.command == "remap":
        return write_remap(args, config, args.transactions, args.user_id)
    return run_mapping(args, config)


if __name__ == "__main__":
    sys.exit(main())
