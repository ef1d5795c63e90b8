"""grb CLI -- save, find and reuse clipboard snippets."""

import argparse
import json
import logging
import os
import shlex
import signal
import subprocess
import sys
import tempfile
from datetime import datetime
from pathlib import Path

from grb import __version__
from grb.config import default_db_path, setup_logging
from grb.errors import GrbError, SnippetNotFound, StorageUnavailable
from grb.types import ClearFilter

RULE = "─" * 45
_COLUMNS = (("ID", 5), ("Snippet", 50), ("Tag", 20), ("Alias", 20))


def _clip(value: str, width: int) -> str:
    value = value.replace("\n", " ").replace("\t", " ")
    if len(value) > width:
        return value[: width - 3] + "..."
    return value


def _print_table(snippets) -> None:
    """Print snippets as a fixed-width table."""
    if not snippets:
        return
    print("┌" + "┬".join("─" * (w + 2) for _, w in _COLUMNS) + "┐")
    print("│" + "│".join(f" {name:<{w}} " for name, w in _COLUMNS) + "│")
    print("├" + "┼".join("─" * (w + 2) for _, w in _COLUMNS) + "┤")
    for s in snippets:
        cells = (s.key, s.text, s.tag or "-", s.alias or "-")
        print("│" + "│".join(
            f" {_clip(cell, w):<{w}} " for cell, (_, w) in zip(cells, _COLUMNS)
        ) + "│")
    print("└" + "┴".join("─" * (w + 2) for _, w in _COLUMNS) + "┘")


def _print_listing(listing) -> None:
    if listing.pinned:
        print("📌 Pinned")
        _print_table(listing.pinned)
        print()
    if listing.others:
        print("Others")
        _print_table(listing.others)
        print()


def _listing_json(listing) -> str:
    return json.dumps(
        {
            "pinned": [s.to_dict() for s in listing.pinned],
            "others": [s.to_dict() for s in listing.others],
            "count": listing.total,
        },
        indent=2,
        ensure_ascii=False,
    )


def _not_found(key: str) -> None:
    print(f'⚠ Snippet not found for "{key}"', file=sys.stderr)
    print("💡 Tip: Run 'grb list' to see available snippets", file=sys.stderr)
    sys.exit(1)


def _ops(store):
    from grb.mutations import MutationOps

    return MutationOps(store)


def _queries(store):
    from grb.queries import QueryEngine

    return QueryEngine(store)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_save(args, store):
    """Save a snippet and copy it to the clipboard."""
    text = " ".join(args.text)
    if not text.strip():
        print("Usage: grb save <text> [--tag TAG] [--alias ALIAS]", file=sys.stderr)
        sys.exit(1)
    snippet = _ops(store).save(text, tag=args.tag, alias=args.alias)
    print(f"✅ Saved snippet [{snippet.key}]")
    _print_table([snippet])
    print("📋 Copied to clipboard!")


def cmd_list(args, store):
    """List snippets, pinned first."""
    listing = _queries(store).list()
    if getattr(args, "json", False):
        print(_listing_json(listing))
        return
    print(RULE)
    print(f"📋 Saved Snippets (total: {listing.total})")
    print(RULE)
    _print_listing(listing)
    if not listing.total:
        print("⚠ No snippets found.")
        print("💡 Tip: Use 'grb save \"text\"' to create your first snippet")


def cmd_search(args, store):
    """Search snippet text, tags and aliases."""
    query = " ".join(args.query)
    listing = _queries(store).search(query)
    if getattr(args, "json", False):
        print(_listing_json(listing))
        return
    if not listing.total:
        print(f'⚠ No snippets found for "{query}"')
        return
    print(RULE)
    print(f'🔍 Search Results for: "{query}"')
    print(RULE)
    _print_listing(listing)


def cmd_copy(args, store):
    """Copy a snippet to the clipboard."""
    try:
        snippet = _ops(store).copy(args.target)
    except SnippetNotFound:
        _not_found(args.target)
    print(f"✅ Copied snippet [{snippet.key}]")
    _print_table([snippet])


def cmd_pin(args, store):
    """Pin or unpin a snippet."""
    try:
        snippet = _ops(store).pin(args.target)
    except SnippetNotFound:
        _not_found(args.target)
    action = "📌 Snippet pinned" if snippet.pinned else "📍 Snippet unpinned"
    print(f"{action} [{snippet.key}]")
    _print_table([snippet])


def cmd_alias(args, store):
    """Change a snippet's alias."""
    try:
        snippet = _ops(store).rename(args.target, args.new_alias)
    except SnippetNotFound:
        _not_found(args.target)
    print(f"✅ Updated alias for snippet [{snippet.key}]")
    _print_table([snippet])


def cmd_delete(args, store):
    """Delete one snippet."""
    try:
        snippet = _ops(store).delete(args.target)
    except SnippetNotFound:
        _not_found(args.target)
    print(f"🗑 Snippet [{snippet.key}] deleted!")


def cmd_clear(args, store):
    """Delete all, tagged or unpinned snippets."""
    if args.all:
        clear_filter = ClearFilter.all()
    elif args.tag:
        clear_filter = ClearFilter.by_tag(args.tag)
    elif args.unpinned:
        clear_filter = ClearFilter.unpinned()
    else:
        print("Usage: grb clear --all | --tag TAG | --unpinned", file=sys.stderr)
        sys.exit(1)
    deleted = _ops(store).clear(clear_filter)
    if deleted:
        print(f"✅ {deleted} snippet(s) deleted.")
    else:
        print("⚠ No matching snippets found.")


def _editor_command() -> list:
    if sys.platform == "win32":
        return ["notepad"]
    return shlex.split(os.environ.get("EDITOR") or "nano")


def run_editor(text: str):
    """Open text in the user's editor; returns the edited text or None."""
    fd, tmp_name = tempfile.mkstemp(prefix="grb_edit_", suffix=".txt")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        try:
            subprocess.run(_editor_command() + [str(tmp_path)], check=False)
        except OSError as e:
            print(f"Cannot launch editor: {e}", file=sys.stderr)
            return None
        return tmp_path.read_text(encoding="utf-8")
    finally:
        tmp_path.unlink(missing_ok=True)


def cmd_edit(args, store):
    """Edit a snippet in $EDITOR."""
    ops = _ops(store)
    try:
        before = ops.begin_edit(args.target)
        new_text = run_editor(before.text)
        if new_text is None:
            sys.exit(1)
        after = ops.finish_edit(before.id, new_text)
    except SnippetNotFound:
        _not_found(args.target)
    print(f"✅ Snippet [{after.key}] updated")
    print("Before")
    _print_table([before])
    print("After")
    _print_table([after])


def cmd_stats(args, store):
    """Show snippet usage stats."""
    stats = _queries(store).stats()
    if getattr(args, "json", False):
        print(json.dumps(stats.to_dict(), indent=2, ensure_ascii=False))
        return
    print(RULE)
    print("📊 grb Stats")
    print(RULE)
    print(f"{'Total snippets':<18} : {stats.total}")
    print(f"{'Store size':<18} : {store.size_bytes() / 1024:.1f} KB")
    if stats.most_used is not None:
        top = stats.most_used
        print(f"{'Most used':<18} : [{top.key}] {_clip(top.text, 40)} (🔥 {top.use_count} times)")
    if stats.top_tag:
        print(f"{'Top tag':<18} : 🏷 {stats.top_tag} ({stats.top_tag_count} snippets)")
    if stats.tag_counts:
        print(RULE)
        print("Tag Breakdown")
        print(RULE)
        for tag, count in stats.tag_breakdown():
            print(f"  🏷 {_clip(tag, 20):<20} {count:>5}")


def cmd_daemon(args, store):
    """Watch the clipboard and save every new value."""
    from grb.daemon import ClipboardDaemon

    def _announce(snippet):
        stamp = datetime.fromtimestamp(snippet.updated_at).strftime("%H:%M:%S")
        print(f"✅ Captured snippet [{snippet.key}] at {stamp}: {_clip(snippet.text, 60)}", flush=True)

    daemon = ClipboardDaemon(_ops(store), interval=args.interval, on_capture=_announce)

    def _handle_signal(signum, frame):
        daemon.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    print("📡 grb daemon started. Watching clipboard... (Ctrl+C to stop)", flush=True)
    captured = daemon.run()
    print(f"\nStopped. {captured} snippet(s) captured.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grb",
        description="grb (grab), a smart clipboard & snippet manager",
    )
    parser.add_argument("--version", action="version", version=f"grb {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--db", type=Path, help=f"Store file (default: {default_db_path()})")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    save_parser = subparsers.add_parser("save", help="Save a snippet (copies it too)")
    save_parser.add_argument("text", nargs="+", help="Snippet text")
    save_parser.add_argument("--tag", default="", help="Add a tag")
    save_parser.add_argument("--alias", default="", help="Give an alias")

    list_parser = subparsers.add_parser("list", help="List snippets, pinned first")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    subparsers.add_parser("tui", help="Browse snippets (plain list)")

    search_parser = subparsers.add_parser("search", help="Search text, tags and aliases")
    search_parser.add_argument("query", nargs="+", help="Search text (case-insensitive)")
    search_parser.add_argument("--json", action="store_true", help="Output as JSON")

    for name, help_text in (
        ("copy", "Copy a snippet to the clipboard"),
        ("pin", "Pin/unpin a snippet"),
        ("delete", "Delete a snippet"),
        ("edit", "Edit a snippet in $EDITOR"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("target", help="Snippet id or alias")

    alias_parser = subparsers.add_parser("alias", help="Update a snippet's alias")
    alias_parser.add_argument("target", help="Snippet id or current alias")
    alias_parser.add_argument("new_alias", help="New alias")

    clear_parser = subparsers.add_parser("clear", help="Clear snippets (dangerous!)")
    group = clear_parser.add_mutually_exclusive_group()
    group.add_argument("--all", action="store_true", help="Delete all snippets")
    group.add_argument("--tag", default="", help="Delete all snippets with a tag")
    group.add_argument("--unpinned", action="store_true", help="Delete all unpinned snippets")

    stats_parser = subparsers.add_parser("stats", help="Show snippet usage stats")
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    daemon_parser = subparsers.add_parser("daemon", help="Run clipboard watcher (history mode)")
    daemon_parser.add_argument("--interval", type=float, default=None,
                               help="Polling interval in seconds (default: GRB_POLL_INTERVAL or 1)")
    return parser


COMMANDS = {
    "save": cmd_save,
    "list": cmd_list,
    "tui": cmd_list,
    "search": cmd_search,
    "copy": cmd_copy,
    "pin": cmd_pin,
    "alias": cmd_alias,
    "delete": cmd_delete,
    "clear": cmd_clear,
    "edit": cmd_edit,
    "stats": cmd_stats,
    "daemon": cmd_daemon,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "list"
    if command == "daemon":
        setup_logging(args.verbose, level=logging.INFO)
    else:
        setup_logging(args.verbose)

    from grb.sqlite_store import SnippetStore

    try:
        store = SnippetStore(args.db)
    except StorageUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    with store:
        try:
            COMMANDS[command](args, store)
        except GrbError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
