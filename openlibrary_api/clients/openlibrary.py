from __future__ import annotations

import json
import logging
from types import TracebackType
from typing import Any
from urllib.parse import urlsplit

from openlibrary_api.clients.transport import RawResponse, RequestHandler
from openlibrary_api.core.config import ClientConfig
from openlibrary_api.observability.metrics import increment, timed

logger = logging.getLogger(__name__)

ISBN_LENGTHS = (10, 13)
LCCN_LENGTH = 12


class OpenLibraryClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OpenLibraryInvalidArgumentError(OpenLibraryClientError, ValueError):
    pass


class OpenLibraryRequestError(OpenLibraryClientError):
    """The service answered with a status of 400 or more.

    ``body`` is the raw response body; error pages are not guaranteed to be JSON.
    """

    def __init__(self, status_code: int, body: bytes, message: str | None = None) -> None:
        super().__init__(message or f"Open Library request failed with status {status_code}", status_code)
        self.body = body


class OpenLibraryNotFoundError(OpenLibraryRequestError):
    def __init__(self, identifier: str, message: str) -> None:
        super().__init__(404, message.encode("utf-8"), message)
        self.identifier = identifier


class OpenLibraryResponseError(OpenLibraryClientError):
    def __init__(self, message: str, status_code: int | None = None, body: bytes = b"") -> None:
        super().__init__(message, status_code)
        self.body = body


def _require_identifier(value: str, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise OpenLibraryInvalidArgumentError(f"{name} must be a non-empty string.")
    return value


def _coerce_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise OpenLibraryInvalidArgumentError(f"{name} must be an integer, got {value!r}.") from exc


def _validate_isbn(isbn: str) -> str:
    if not isinstance(isbn, str) or len(isbn) not in ISBN_LENGTHS:
        raise OpenLibraryInvalidArgumentError("ISBN must be 10 or 13 characters.")
    return isbn


def _validate_lccn(lccn: str) -> str:
    if not isinstance(lccn, str) or len(lccn) != LCCN_LENGTH:
        raise OpenLibraryInvalidArgumentError("LCCN must be 12 characters.")
    return lccn


def parse_response(response: RawResponse) -> Any:
    if response.status >= 400:
        raise OpenLibraryRequestError(response.status, response.body)

    try:
        return json.loads(response.body)
    except ValueError as exc:
        raise OpenLibraryResponseError(
            "Open Library returned invalid JSON", status_code=response.status, body=response.body
        ) from exc


def _olid_from_info_url(info_url: str) -> str | None:
    # "/books/OL12345M" -> ["", "books", "OL12345M"]
    segments = urlsplit(info_url).path.split("/")
    if len(segments) < 3 or not segments[2]:
        return None
    return segments[2]


class OpenLibraryClient:
    def __init__(
        self,
        request_handler: RequestHandler | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        self._request_handler = request_handler or RequestHandler(config=config)

    def get_book_by_olid(self, olid: str) -> Any:
        olid = _require_identifier(olid, "OLID")
        return self._get_request("get_book_by_olid", f"/books/{olid}.json")

    def get_book_by_isbn(self, isbn: str) -> Any:
        """Resolve an ISBN to its canonical book record.

        Searches the books API for ``ISBN:<isbn>``, takes the catalog id from
        the matched record's ``info_url`` (``/books/<OLID>``) and fetches
        ``/books/<OLID>.json``. Raises :class:`OpenLibraryNotFoundError`
        without a second request when the search has no match.
        """
        search_results = self.search_by_isbn(isbn)
        bibkey = f"ISBN:{isbn}"

        record = search_results.get(bibkey) if isinstance(search_results, dict) else None
        if record is None:
            increment("openlibrary.error", labels={"operation": "get_book_by_isbn", "status": 404})
            raise OpenLibraryNotFoundError(isbn, f"No match for ISBN {isbn}")

        info_url = record.get("info_url") if isinstance(record, dict) else None
        if not isinstance(info_url, str):
            raise OpenLibraryResponseError(f"Search result for {bibkey} has no info_url")

        olid = _olid_from_info_url(info_url)
        if olid is None:
            raise OpenLibraryResponseError(f"Unexpected info_url for {bibkey}: {info_url}")

        logger.info(
            "openlibrary.isbn.resolved",
            extra={"operation": "get_book_by_isbn", "identifier": olid},
        )
        return self.get_book_by_olid(olid)

    def search_by_isbn(self, isbn: str) -> Any:
        isbn = _validate_isbn(isbn)
        return self._get_request(
            "search_by_isbn",
            "/api/books",
            {"format": "json", "bibkeys": f"ISBN:{isbn}"},
        )

    def search_by_lccn(self, lccn: str) -> Any:
        lccn = _validate_lccn(lccn)
        return self._get_request(
            "search_by_lccn",
            "/api/books",
            {"format": "json", "bibkeys": f"LCCN:{lccn}"},
        )

    def query_editions_by_lccn(self, lccn: str) -> Any:
        return self._get_request(
            "query_editions_by_lccn",
            "/query.json",
            {"type": "/type/edition", "lccn": lccn, "*": ""},
        )

    def query_editions_by_oclc(self, oclc: str) -> Any:
        return self._get_request(
            "query_editions_by_oclc",
            "/query.json",
            {"type": "/type/edition", "oclc_numbers": oclc, "*": ""},
        )

    def get_author_by_key(self, key: str) -> Any:
        key = _require_identifier(key, "Author key")
        return self._get_request("get_author_by_key", f"/authors/{key}.json")

    def get_editions_of_work(self, work: str, limit: int | str = 20, offset: int | str = 0) -> Any:
        params = {
            "limit": _coerce_int(limit, "limit"),
            "offset": _coerce_int(offset, "offset"),
            "*": "",
        }
        return self._get_request("get_editions_of_work", f"/works/{work}/editions.json", params)

    def _get_request(self, operation: str, path: str, params: dict[str, Any] | None = None) -> Any:
        with timed("openlibrary.operation_ms", labels={"operation": operation}):
            response = self._request_handler.request("GET", path, params)
        try:
            return parse_response(response)
        except OpenLibraryRequestError as exc:
            increment("openlibrary.error", labels={"operation": operation, "status": exc.status_code})
            raise

    def close(self) -> None:
        self._request_handler.close()

    def __enter__(self) -> OpenLibraryClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
