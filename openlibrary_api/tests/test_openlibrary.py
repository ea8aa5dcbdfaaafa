from typing import Any, Callable

import httpx
import pytest

from openlibrary_api.clients.openlibrary import (
    OpenLibraryClient,
    OpenLibraryInvalidArgumentError,
    OpenLibraryRequestError,
    OpenLibraryResponseError,
    parse_response,
)
from openlibrary_api.clients.transport import RawResponse, RequestHandler
from openlibrary_api.core.config import ClientConfig
from openlibrary_api.observability.metrics import counter_value, reset


def _client(
    respond: Callable[[httpx.Request], httpx.Response],
) -> tuple[OpenLibraryClient, list[httpx.Request]]:
    calls: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return respond(request)

    handler = RequestHandler(config=ClientConfig(), transport=httpx.MockTransport(record))
    return OpenLibraryClient(request_handler=handler), calls


def _ok(payload: Any) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(200, json=payload)


def test_get_book_by_olid_builds_path_and_returns_payload() -> None:
    client, calls = _client(_ok({"key": "/books/OL7353617M", "title": "Fantastic Mr. Fox"}))

    book = client.get_book_by_olid("OL7353617M")

    assert book == {"key": "/books/OL7353617M", "title": "Fantastic Mr. Fox"}
    assert [c.url.path for c in calls] == ["/books/OL7353617M.json"]
    assert calls[0].url.query == b""


def test_get_author_by_key_builds_path() -> None:
    client, calls = _client(_ok({"name": "Roald Dahl"}))

    author = client.get_author_by_key("OL34184A")

    assert author["name"] == "Roald Dahl"
    assert calls[0].url.path == "/authors/OL34184A.json"


@pytest.mark.parametrize("method_name", ["get_book_by_olid", "get_author_by_key"])
def test_empty_identifier_is_rejected_without_request(method_name: str) -> None:
    client, calls = _client(_ok({}))

    with pytest.raises(OpenLibraryInvalidArgumentError):
        getattr(client, method_name)("")

    assert calls == []


def test_get_editions_of_work_defaults() -> None:
    client, calls = _client(_ok({"entries": [], "size": 0}))

    client.get_editions_of_work("OL45804W")

    request = calls[0]
    assert request.url.path == "/works/OL45804W/editions.json"
    assert dict(request.url.params) == {"limit": "20", "offset": "0", "*": ""}


def test_get_editions_of_work_coerces_limit_and_offset() -> None:
    client, calls = _client(_ok({"entries": []}))

    client.get_editions_of_work("OL45804W", limit="5", offset=2.0)

    assert calls[0].url.params["limit"] == "5"
    assert calls[0].url.params["offset"] == "2"


def test_get_editions_of_work_rejects_non_numeric_limit() -> None:
    client, calls = _client(_ok({}))

    with pytest.raises(OpenLibraryInvalidArgumentError):
        client.get_editions_of_work("OL45804W", limit="many")

    assert calls == []


@pytest.mark.parametrize("isbn", ["0451526538", "9780451526538"])
def test_search_by_isbn_builds_bibkeys_query(isbn: str) -> None:
    client, calls = _client(_ok({}))

    client.search_by_isbn(isbn)

    assert calls[0].url.path == "/api/books"
    assert dict(calls[0].url.params) == {"format": "json", "bibkeys": f"ISBN:{isbn}"}


@pytest.mark.parametrize("isbn", ["", "123", "045152653", "04515265388", "978045152653", "97804515265388"])
def test_search_by_isbn_rejects_bad_length_without_request(isbn: str) -> None:
    client, calls = _client(_ok({}))

    with pytest.raises(OpenLibraryInvalidArgumentError, match="ISBN must be 10 or 13 characters"):
        client.search_by_isbn(isbn)

    assert calls == []


def test_search_by_lccn_builds_bibkeys_query() -> None:
    client, calls = _client(_ok({}))

    client.search_by_lccn("  2001000001")

    assert calls[0].url.path == "/api/books"
    assert dict(calls[0].url.params) == {"format": "json", "bibkeys": "LCCN:  2001000001"}


@pytest.mark.parametrize("lccn", ["", "2001000001", "20010000011", "2001000001111"])
def test_search_by_lccn_rejects_bad_length_without_request(lccn: str) -> None:
    client, calls = _client(_ok({}))

    with pytest.raises(OpenLibraryInvalidArgumentError, match="LCCN must be 12 characters"):
        client.search_by_lccn(lccn)

    assert calls == []


def test_query_editions_by_lccn() -> None:
    client, calls = _client(_ok([{"key": "/books/OL1M"}]))

    result = client.query_editions_by_lccn("93005405")

    assert result == [{"key": "/books/OL1M"}]
    assert calls[0].url.path == "/query.json"
    assert dict(calls[0].url.params) == {"type": "/type/edition", "lccn": "93005405", "*": ""}


def test_query_editions_by_oclc() -> None:
    client, calls = _client(_ok([]))

    client.query_editions_by_oclc("28419896")

    assert calls[0].url.path == "/query.json"
    assert dict(calls[0].url.params) == {"type": "/type/edition", "oclc_numbers": "28419896", "*": ""}


def test_remote_404_raises_request_error_with_raw_body() -> None:
    client, _ = _client(lambda request: httpx.Response(404, content=b"<html>Not Found</html>"))

    with pytest.raises(OpenLibraryRequestError) as exc_info:
        client.get_book_by_olid("OL0M")

    assert exc_info.value.status_code == 404
    assert exc_info.value.body == b"<html>Not Found</html>"


def test_transport_fault_matches_remote_500() -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    faulty, _ = _client(fail)
    remote, _ = _client(lambda request: httpx.Response(500, content=b"No Response"))

    with pytest.raises(OpenLibraryRequestError) as fault_info:
        faulty.get_author_by_key("OL1A")
    with pytest.raises(OpenLibraryRequestError) as remote_info:
        remote.get_author_by_key("OL1A")

    assert type(fault_info.value) is type(remote_info.value)
    assert fault_info.value.status_code == remote_info.value.status_code == 500
    assert fault_info.value.body == remote_info.value.body == b"No Response"


def test_success_status_with_invalid_json_raises_response_error() -> None:
    client, _ = _client(lambda request: httpx.Response(200, content=b"not json"))

    with pytest.raises(OpenLibraryResponseError) as exc_info:
        client.get_book_by_olid("OL1M")

    assert exc_info.value.status_code == 200
    assert exc_info.value.body == b"not json"


def test_redirect_is_classified_as_success_status() -> None:
    client, calls = _client(
        lambda request: httpx.Response(
            301, headers={"Location": "/books/OL2M.json"}, json={"moved": True}
        )
    )

    assert client.get_book_by_olid("OL1M") == {"moved": True}
    assert len(calls) == 1


def test_repeated_lookups_return_identical_results() -> None:
    payload = {"key": "/works/OL45804W", "title": "Fantastic Mr Fox", "covers": [6498519]}
    client, calls = _client(_ok(payload))

    first = client.get_editions_of_work("OL45804W", limit=3)
    second = client.get_editions_of_work("OL45804W", limit=3)

    assert first == second == payload
    assert first is not second
    assert str(calls[0].url) == str(calls[1].url)


def test_remote_errors_are_counted() -> None:
    reset()
    client, _ = _client(lambda request: httpx.Response(503, content=b"busy"))

    with pytest.raises(OpenLibraryRequestError):
        client.query_editions_by_oclc("1")

    assert counter_value("openlibrary.error", labels={"operation": "query_editions_by_oclc", "status": 503}) == 1


def test_parse_response_does_not_decode_error_bodies() -> None:
    with pytest.raises(OpenLibraryRequestError) as exc_info:
        parse_response(RawResponse(status=400, body=b"{broken", headers={}))

    assert exc_info.value.body == b"{broken"


def test_parse_response_returns_scalars() -> None:
    assert parse_response(RawResponse(status=200, body=b"42")) == 42
