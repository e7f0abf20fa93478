"""
Map Veto CLI - Command-line interface for the server.

Usage:
    mapveto serve [--host H] [--port P]    Run the HTTP/WebSocket server
    mapveto formats                        List veto formats
    mapveto history [--page N] [--limit N] Print finished matches
"""

import argparse
import sys

from .config import Settings
from .logging_config import setup_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Map Veto - real-time map veto server",
        prog="mapveto",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=3001, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # Formats command
    subparsers.add_parser("formats", help="List veto formats")

    # History command
    history_parser = subparsers.add_parser("history", help="Print finished matches")
    history_parser.add_argument("--page", type=int, default=1, help="Page number")
    history_parser.add_argument("--limit", type=int, default=10, help="Matches per page")

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "formats":
        cmd_formats(args)
    elif args.command == "history":
        cmd_history(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mapveto.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )


def cmd_formats(args):
    """List veto formats."""
    from .formats.sequences import SEQUENCES

    for format_id, steps in SEQUENCES.items():
        script = ", ".join(f"{s.team.value} {s.action.value}" for s in steps)
        print(f"{format_id:<12} {script}")
    print(f"{'custom':<12} (client-supplied sequence)")


def cmd_history(args, settings):
    """Print one page of finished matches."""
    from .store import MatchStore

    store = MatchStore(settings.database_url)
    store.init()
    try:
        page = store.paginate_finished(args.page, args.limit)
    finally:
        store.close()

    print(f"Page {page['currentPage']} of {page['totalPages']} ({page['totalMatches']} matches)")
    for match in page["matches"]:
        played = ", ".join(match["playedMaps"]) or "-"
        print(f"  {match['date'][:19]}  {match['id']}  {match['teamA']} vs {match['teamB']}"
              f"  [{match['format']}]  {played}")


if __name__ == "__main__":
    main()
