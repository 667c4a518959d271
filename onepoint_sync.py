"""
Reconcile local worklogs and submit them to OnePoint.

Usage:
    # Log in via browser and save the session
    python onepoint_sync.py login

    # Shift simulated EPM timings around entries from other sources
    python onepoint_sync.py reconcile

    # Dry-run - compare against OnePoint without writing
    python onepoint_sync.py submit --dry-run

    # Submit a date range
    python onepoint_sync.py submit --from 2026-03-01 --to 2026-03-31
"""

import argparse
import sys

from auth import AuthStateError, login, session_cookie_header_from_state_file
from clients import DEFAULT_TIMEOUT, ApiError, OnePointClient
from lookup import ResolveError, ResolveOptions
from models import WorklogEntry
from reconcile import run as run_reconcile
from storage import StorageError, WorklogStore
from submitter import ValidationError
from sync import SubmitAborted, TerminalPrompter, print_summary, submit
from utils import CONFIG_FILE, DB_FILE, default_state_file, load_config_safe, parse_cli_day, resolve_onepoint_urls, to_local

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 2


# ============================================================================
# Helpers
# ============================================================================


def _onepoint_url(args, config: dict | None) -> str | None:
    if args.url:
        return args.url
    if config is None:
        return None
    return config["onepoint"]["url"]


def filter_by_day_range(entries: list[WorklogEntry], date_from, date_to) -> list[WorklogEntry]:
    """Keep entries whose local start day lies within [date_from, date_to]."""
    out = []
    for entry in entries:
        day = to_local(entry.start).date()
        if date_from and day < date_from.date():
            continue
        if date_to and day > date_to.date():
            continue
        out.append(entry)
    return out


def _parse_range(args) -> tuple:
    date_from = parse_cli_day(args.date_from) if args.date_from else None
    date_to = parse_cli_day(args.date_to) if args.date_to else None
    if date_from and date_to and date_from > date_to:
        raise ValueError("Invalid range: --from must be <= --to")
    return date_from, date_to


# ============================================================================
# Commands
# ============================================================================


def cmd_login(args) -> int:
    config = None if args.url else load_config_safe(args.config)
    url = _onepoint_url(args, config)
    if not url:
        return EXIT_ERROR

    base_url, home_url, host = resolve_onepoint_urls(url)
    state_file = args.state_file or default_state_file()

    login(home_url, host, state_file, timeout_s=args.timeout)

    if args.no_verify:
        return EXIT_OK

    cookies = session_cookie_header_from_state_file(state_file, host)
    client = OnePointClient(base_url, cookies, referer_url=home_url, timeout=DEFAULT_TIMEOUT)
    projects = client.list_projects()
    print(f"[+] Auth verification successful. Projects visible: {len(projects)}")
    return EXIT_OK


def cmd_reconcile(args) -> int:
    with WorklogStore(args.db) as store:
        result = run_reconcile(store)

    print(
        f"[+] Reconcile completed. Days processed: {result.days_processed}, "
        f"Overlaps before: {result.overlaps_before}, Overlaps after: {result.overlaps_after}, "
        f"EPM entries adjusted: {result.entries_adjusted}, Rows updated: {result.rows_updated}"
    )
    return EXIT_OK


def cmd_submit(args) -> int:
    config = load_config_safe(args.config)
    if config is None:
        return EXIT_ERROR
    url = _onepoint_url(args, config)

    base_url, home_url, host = resolve_onepoint_urls(url)
    cookies = session_cookie_header_from_state_file(args.state_file or default_state_file(), host)

    with WorklogStore(args.db) as store:
        entries = store.list_worklogs()
    if not entries:
        print(f"[!] No worklogs found in {args.db}")
        return EXIT_ERROR

    entries = filter_by_day_range(entries, *_parse_range(args))
    if not entries:
        print("[!] No worklogs matched the selected date range")
        return EXIT_ERROR

    client = OnePointClient(base_url, cookies, referer_url=home_url, timeout=args.timeout)
    options = ResolveOptions(
        include_archived_projects=args.include_archived_projects,
        include_locked_activities=args.include_locked_activities,
    )

    print(f"[*] Submitting {len(entries)} local worklogs to {base_url}")
    try:
        summary = submit(
            client,
            entries,
            config.get("rules", []),
            options=options,
            dry_run=args.dry_run,
            prompter=TerminalPrompter(),
        )
    except SubmitAborted as e:
        print("[!] Submit aborted by user.")
        print_summary(e.summary)
        return EXIT_ABORTED

    print_summary(summary)
    if args.dry_run:
        print()
        print("Run without --dry-run to apply changes.")
    return EXIT_OK


# ============================================================================
# CLI
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile local worklogs and submit them to OnePoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Log in and verify API access
    python onepoint_sync.py login

    # Reconcile overlaps, then preview submit
    python onepoint_sync.py reconcile
    python onepoint_sync.py submit --dry-run
        """,
    )
    parser.add_argument("--config", default=CONFIG_FILE, help=f"Config file (default: {CONFIG_FILE})")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Log in via browser and save the session")
    p.add_argument("--url", help="Override OnePoint URL from config")
    p.add_argument("--state-file", help="Auth state JSON (default: ~/.onepoint-sync/auth-state.json)")
    p.add_argument("--timeout", type=float, default=300, help="Seconds to wait for login (default: 300)")
    p.add_argument("--no-verify", action="store_true", help="Skip the test API call after login")
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("reconcile", help="Shift EPM entries so they no longer overlap other sources")
    p.add_argument("--db", default=DB_FILE, help=f"Local SQLite database (default: {DB_FILE})")
    p.set_defaults(func=cmd_reconcile)

    p = sub.add_parser("submit", help="Submit local worklogs to OnePoint")
    p.add_argument("--db", default=DB_FILE, help=f"Local SQLite database (default: {DB_FILE})")
    p.add_argument("--url", help="Override OnePoint URL from config")
    p.add_argument("--state-file", help="Auth state JSON (default: ~/.onepoint-sync/auth-state.json)")
    p.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT, help="Seconds per OnePoint API call (default: 60)"
    )
    p.add_argument("--from", dest="date_from", help="First day to submit (YYYY-MM-DD)")
    p.add_argument("--to", dest="date_to", help="Last day to submit (YYYY-MM-DD)")
    p.add_argument(
        "--dry-run", action="store_true", help="Compare with remote days and report, but never persist"
    )
    p.add_argument("--include-archived-projects", action="store_true", help="Allow archived projects in lookup")
    p.add_argument("--include-locked-activities", action="store_true", help="Allow locked activities in lookup")
    p.set_defaults(func=cmd_submit)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (ValidationError, ResolveError, ApiError, AuthStateError, StorageError, ValueError) as e:
        print(f"[!] ERROR: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
