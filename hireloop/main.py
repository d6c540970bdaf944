"""CLI entry point — run the job-alert dispatcher once, or inspect it."""

import argparse
import logging
import sys

from hireloop.config import load_config, validate_config
from hireloop.dispatch.run import DispatchAlreadyRunning, run_dispatch
from hireloop.models import SessionLocal, init_db
from hireloop.notifications.email_sender import EmailCategory, build_email_sender
from hireloop.notifications.templates import render_test_email
from hireloop.storage.saved_searches import SavedSearchStore
from hireloop.utils.logging_config import setup_logging

logger = logging.getLogger("hireloop")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Hireloop - job-alert dispatcher",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--test-email", metavar="ADDRESS",
        help="Send a test email to ADDRESS and exit",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Match saved searches but don't send email or update timestamps",
    )
    parser.add_argument(
        "--stats", action="store_true",
        help="Print dispatch statistics and exit",
    )
    parser.add_argument(
        "--init-db", action="store_true",
        help="Create database tables and exit",
    )
    return parser.parse_args(argv)


def print_stats(store: SavedSearchStore):
    """Print dispatch statistics."""
    stats = store.get_stats()
    print("\n=== Hireloop Dispatch Statistics ===")
    print(f"Active saved searches: {stats['active_searches']}")
    print(f"Total dispatch runs: {stats['total_runs']}")

    if stats.get("last_run"):
        run = stats["last_run"]
        print(f"\nLast run: {run['run_at']}")
        print(f"  Searches: {run['total_searches']}")
        print(f"  Processed: {run['processed']}")
        print(f"  Job alerts sent: {run['emails_sent']}")
        print(f"  Heartbeats sent: {run['heartbeat_sent']}")
        print(f"  Suppressed: {run['suppressed']}")
        print(f"  Errors: {run['errors']}")
        if run["duration_seconds"] is not None:
            print(f"  Duration: {run['duration_seconds']}s")
    print()


def main(argv=None):
    args = parse_args(argv)

    # Load config
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.log_dir)

    # Validate config and print warnings
    for w in validate_config(config):
        logger.warning("Config: %s", w)

    if args.init_db:
        init_db()
        print("Database tables created.")
        return

    if args.stats:
        print_stats(SavedSearchStore(SessionLocal))
        return

    if args.test_email:
        logger.info("Sending test email to %s...", args.test_email)
        email = render_test_email()
        result = build_email_sender(config.email).send(
            to=args.test_email,
            subject=email.subject,
            html=email.html,
            text=email.text,
            category=EmailCategory.SYSTEM,
            tags=[{"name": "type", "value": "test"}],
        )
        if result.success:
            print("Test email sent successfully!")
        else:
            print(f"Failed to send test email: {result.error}", file=sys.stderr)
            sys.exit(1)
        return

    try:
        summary = run_dispatch(config=config, dry_run=args.dry_run)
    except DispatchAlreadyRunning as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception:
        logger.exception("Dispatch run failed")
        sys.exit(1)

    print(
        f"Processed {summary.processed}/{summary.total_searches} searches: "
        f"{summary.emails_sent} alerts, {summary.heartbeat_sent} heartbeats, "
        f"{summary.suppressed} suppressed, {summary.errors} errors"
        + (" (dry run)" if args.dry_run else "")
    )


if __name__ == "__main__":
    main()
