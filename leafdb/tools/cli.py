"""
Inspection CLI for LeafDB stores.

This tool loads a store from disk and reports on it:
- stats: Document count and corrupt line count
- find: Print documents matching a JSON query
- get: Print a single document by identifier
- compact: Load and rewrite the log, reporting corrupt lines

Every command opens the store, which compacts the log as a side effect.
stats, find and get refuse to run against a log file that does not exist.

Usage:
    leafdb --directory ./data --name users stats
    leafdb --directory ./data --name users find '{"age": {"$gte": 18}}'
    leafdb --directory ./data --name users --format yaml get 18c2f0a1b2c3d4e5f6
    leafdb --directory ./data --name users compact --strict

Invariants:
    - Exit code 0 on success, 1 when the log file or a document is missing
      or a strict compaction hits a corrupt line, 2 on usage or argument errors
    - Only compact may create a missing log file
    - Output is deterministic for a given log (JSON keys keep document order)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripts parsing it
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from ..errors import CorruptRecordError, LeafDbError
from ..store import LeafDB

logger = logging.getLogger(__name__)


class StoreCLI:
    """CLI commands over an opened store.

    Example:
        >>> cli = StoreCLI(LeafDB(name="users", directory="./data"))
        >>> cli.stats()
        {'name': 'users', 'path': 'data/users.txt', 'documents': 3, 'corrupt': 0}
    """

    def __init__(self, db: LeafDB, strict: bool = False) -> None:
        self.db = db
        self.strict = strict
        self._loaded = False

    def load(self) -> None:
        if not self._loaded:
            self.db.open(strict=self.strict)
            self._loaded = True

    def stats(self) -> Dict[str, Any]:
        """Summarize the store."""
        self.load()
        return {
            "name": self.db.settings.name,
            "path": str(self.db.path),
            "documents": len(self.db),
            "corrupt": len(self.db.corrupt),
        }

    def find(self, query: Dict[str, Any], projection: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        self.load()
        return self.db.find(query, projection=projection)

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        self.load()
        return self.db.get(doc_id)

    def compact(self) -> Dict[str, Any]:
        """Rewrite the log and report what was dropped."""
        self.load()
        return {
            "documents": len(self.db),
            "corrupt": [
                {"line": record.line_number, "reason": record.error.reason, "raw": record.raw}
                for record in self.db.corrupt
            ],
        }


def render(data: Any, fmt: str) -> str:
    """Render command output as JSON or YAML."""
    if fmt == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leafdb", description="LeafDB store inspection tool")
    parser.add_argument("--directory", "-d", required=True, help="Directory holding the log file")
    parser.add_argument("--name", "-n", default="leafdb", help="Store name (log file stem)")
    parser.add_argument(
        "--format", choices=["json", "yaml"], default="json", help="Output format"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show document and corrupt line counts")

    find_parser = subparsers.add_parser("find", help="Print documents matching a query")
    find_parser.add_argument("query", nargs="?", default="{}", help="Query as JSON (default: all)")
    find_parser.add_argument(
        "--projection", "-p", action="append", help="Field path to keep (repeatable)"
    )

    get_parser = subparsers.add_parser("get", help="Print one document by identifier")
    get_parser.add_argument("id", help="Document identifier")

    compact_parser = subparsers.add_parser("compact", help="Rewrite the log without dead lines")
    compact_parser.add_argument(
        "--strict", action="store_true", help="Abort on the first corrupt line"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for the inspection tool."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    db = LeafDB(name=args.name, directory=args.directory)
    if args.command != "compact" and not db.path.exists():
        print(f"Store not found: {db.path}", file=sys.stderr)
        sys.exit(1)
    cli = StoreCLI(db, strict=getattr(args, "strict", False))

    try:
        if args.command == "stats":
            print(render(cli.stats(), args.format))

        elif args.command == "find":
            try:
                query = json.loads(args.query)
            except json.JSONDecodeError as e:
                print(f"Invalid query JSON: {e}", file=sys.stderr)
                sys.exit(2)
            print(render(cli.find(query, projection=args.projection), args.format))

        elif args.command == "get":
            doc = cli.get(args.id)
            if doc is None:
                print(f"Document not found: {args.id}", file=sys.stderr)
                sys.exit(1)
            print(render(doc, args.format))

        elif args.command == "compact":
            report = cli.compact()
            print(render(report, args.format))

    except CorruptRecordError as e:
        print(f"Compaction aborted: {e.message}", file=sys.stderr)
        sys.exit(1)
    except LeafDbError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        sys.exit(2)
    finally:
        if db.is_open:
            db.close()

    sys.exit(0)


if __name__ == "__main__":
    main()
