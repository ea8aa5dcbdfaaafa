#!/usr/bin/env python3
"""
Resolve ISBNs to Open Library book records.

- Reads ISBNs from the command line and/or a text file (one per line)
- Resolves each one with OpenLibraryClient.get_book_by_isbn
- Prints a YAML summary: OLID key and title per ISBN, or the failure reason
"""

from __future__ import annotations

import argparse
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import yaml

from openlibrary_api.clients.openlibrary import (
    OpenLibraryClient,
    OpenLibraryClientError,
    OpenLibraryNotFoundError,
)
from openlibrary_api.observability.logging import configure_logging
from openlibrary_api.observability.metrics import timed


@dataclass
class Resolution:
    isbn: str
    key: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None


def _read_isbn_file(path: Path) -> list[str]:
    isbns: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        isbns.append(value)
    return isbns


def _normalize_isbn(value: str) -> str:
    # "978-0-451-52653-8" -> "9780451526538"
    return value.replace("-", "").replace(" ", "")


def _resolve_one(client: OpenLibraryClient, isbn: str) -> Resolution:
    try:
        book = client.get_book_by_isbn(isbn)
    except OpenLibraryNotFoundError:
        return Resolution(isbn=isbn, error="no match")
    except OpenLibraryClientError as exc:
        if exc.status_code is not None:
            return Resolution(isbn=isbn, error=f"{exc} (status {exc.status_code})")
        return Resolution(isbn=isbn, error=str(exc))

    if not isinstance(book, dict):
        return Resolution(isbn=isbn, error="unexpected payload")

    key = book.get("key")
    title = book.get("title")
    return Resolution(
        isbn=isbn,
        key=str(key) if key else None,
        title=str(title).strip() if title else None,
    )


def resolve_isbns(
    client: OpenLibraryClient,
    isbns: Iterable[str],
    max_workers: int = 4,
) -> list[Resolution]:
    normalized = [_normalize_isbn(isbn) for isbn in isbns]
    if not normalized:
        return []

    with timed("resolve_isbns.batch_ms"), ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        return list(executor.map(lambda isbn: _resolve_one(client, isbn), normalized))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve ISBNs to Open Library book records.")
    parser.add_argument("isbns", nargs="*", help="ISBN-10 or ISBN-13 values")
    parser.add_argument("--file", type=Path, help="text file with one ISBN per line")
    parser.add_argument("--workers", type=int, default=4, help="concurrent lookups (default: 4)")
    parser.add_argument("--verbose", action="store_true", help="emit JSON request logs on stdout")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        configure_logging(logging.INFO)

    isbns = list(args.isbns)
    if args.file is not None:
        if not args.file.exists():
            raise SystemExit(f"Could not find {args.file}")
        isbns.extend(_read_isbn_file(args.file))

    if not isbns:
        raise SystemExit("No ISBNs given")

    with OpenLibraryClient() as client:
        results = resolve_isbns(client, isbns, max_workers=args.workers)

    summary: dict[str, Any] = {
        "resolved": [asdict(r) for r in results if r.error is None],
        "failed": [{"isbn": r.isbn, "error": r.error} for r in results if r.error is not None],
    }
    print(yaml.safe_dump(summary, sort_keys=False, allow_unicode=True), end="")

    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
