"""
Unit tests for the HTTP remote adapter.

The requests session is replaced by a mock; no network is used.
"""

import pytest
import requests
from unittest.mock import MagicMock
from urllib3.connection import HTTPConnection
from urllib3.exceptions import NewConnectionError

from quotesync.remote.client import HttpRemote, RemoteUnavailable

from conftest import FixedClock, make_item


def make_response(status_code: int = 200, payload=None, json_error: bool = False) -> MagicMock:
    """Build a fake requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code

    if status_code >= 400:
        error = requests.exceptions.HTTPError(f"{status_code} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    else:
        response.raise_for_status.return_value = None

    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def remote():
    client = HttpRemote("https://quotes.test/posts", snapshot_limit=5, clock=FixedClock())
    client._session = client._push_session = MagicMock()
    yield client
    client.close()


def posts(count: int) -> list[dict]:
    return [{"userId": 1, "id": n, "title": f"title {n}", "body": "..."} for n in range(1, count + 1)]


class TestFetchSnapshot:
    """Tests for HttpRemote.fetch_snapshot."""

    def test_normalizes_records(self, remote: HttpRemote):
        """Test records become items with string ids and default category."""
        remote._session.request.return_value = make_response(payload=posts(2))

        items = remote.fetch_snapshot()

        assert [(i.id, i.text, i.category) for i in items] == [
            ("1", "title 1", "Server"),
            ("2", "title 2", "Server"),
        ]
        call = remote._session.request.call_args
        assert call.kwargs["method"] == "GET"
        assert call.kwargs["url"] == "https://quotes.test/posts"
        assert call.kwargs["timeout"] == remote.timeout

    def test_truncates_to_snapshot_limit(self, remote: HttpRemote):
        """Test only the first snapshot_limit records are kept."""
        remote._session.request.return_value = make_response(payload=posts(100))

        items = remote.fetch_snapshot()

        assert [i.id for i in items] == ["1", "2", "3", "4", "5"]

    def test_no_limit(self, remote: HttpRemote):
        """Test snapshot_limit=None keeps everything."""
        remote.snapshot_limit = None
        remote._session.request.return_value = make_response(payload=posts(12))

        assert len(remote.fetch_snapshot()) == 12

    def test_malformed_records_dropped(self, remote: HttpRemote):
        """Test one bad record does not fail the snapshot."""
        payload = [{"id": 1, "title": "ok"}, {"title": "no id"}, {"id": 3, "title": ""}, {"id": 4, "title": "fine"}]
        remote._session.request.return_value = make_response(payload=payload)

        assert [i.id for i in remote.fetch_snapshot()] == ["1", "4"]

    def test_repeated_ids_dropped(self, remote: HttpRemote):
        """Test a repeated id keeps the first record."""
        payload = [{"id": 1, "title": "first"}, {"id": 1, "title": "again"}]
        remote._session.request.return_value = make_response(payload=payload)

        assert [i.text for i in remote.fetch_snapshot()] == ["first"]

    def test_http_error_raises_unavailable(self, remote: HttpRemote):
        """Test a non-success status becomes RemoteUnavailable."""
        remote._session.request.return_value = make_response(status_code=503)

        with pytest.raises(RemoteUnavailable) as exc_info:
            remote.fetch_snapshot()

        assert exc_info.value.status_code == 503

    def test_connection_error_raises_unavailable(self, remote: HttpRemote):
        """Test transport failures become RemoteUnavailable."""
        remote._session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RemoteUnavailable, match="refused"):
            remote.fetch_snapshot()

    def test_timeout_raises_unavailable(self, remote: HttpRemote):
        """Test timeouts become RemoteUnavailable."""
        remote._session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(RemoteUnavailable):
            remote.fetch_snapshot()

    def test_invalid_json_raises_unavailable(self, remote: HttpRemote):
        """Test an undecodable body becomes RemoteUnavailable."""
        remote._session.request.return_value = make_response(json_error=True)

        with pytest.raises(RemoteUnavailable, match="invalid JSON"):
            remote.fetch_snapshot()

    def test_non_list_body_raises_unavailable(self, remote: HttpRemote):
        """Test a JSON object instead of a list is rejected."""
        remote._session.request.return_value = make_response(payload={"error": "nope"})

        with pytest.raises(RemoteUnavailable, match="not a list"):
            remote.fetch_snapshot()


class TestPushItem:
    """Tests for HttpRemote.push_item."""

    def test_posts_serialized_item(self, remote: HttpRemote):
        """Test the item is POSTed as JSON and returned."""
        item = make_item("local-1", "Be bold.", "Courage")
        remote._session.request.return_value = make_response(
            status_code=201, payload={**item.to_dict(), "id": 101},
        )

        accepted = remote.push_item(item)

        assert accepted == item
        call = remote._session.request.call_args
        assert call.kwargs["method"] == "POST"
        assert call.kwargs["json"] == item.to_dict()

    def test_push_failure_raises_unavailable(self, remote: HttpRemote):
        """Test a failed POST becomes RemoteUnavailable."""
        remote._session.request.return_value = make_response(status_code=500)

        with pytest.raises(RemoteUnavailable):
            remote.push_item(make_item("local-1", "Be bold."))

    def test_failed_push_is_attempted_once(self, monkeypatch):
        """Test a refused POST is not retried by the transport."""
        attempts = []

        def refuse(conn):
            attempts.append(conn.host)
            raise NewConnectionError(conn, "Connection refused")

        monkeypatch.setattr(HTTPConnection, "_new_conn", refuse)
        monkeypatch.setenv("NO_PROXY", "*")

        with HttpRemote("http://127.0.0.1:9/posts", max_retries=3) as client:
            with pytest.raises(RemoteUnavailable):
                client.push_item(make_item("local-1", "Be bold."))

        assert len(attempts) == 1


class TestClient:
    """Tests for client setup."""

    def test_repr(self):
        """Test repr shows only the endpoint."""
        with HttpRemote("https://quotes.test/posts") as client:
            assert repr(client) == "HttpRemote(url='https://quotes.test/posts')"

    def test_retry_adapter_mounted(self):
        """Test GET retries are configured on the session."""
        with HttpRemote("https://quotes.test/posts", max_retries=4) as client:
            adapter = client._session.get_adapter("https://quotes.test/posts")
            assert adapter.max_retries.total == 4
            assert 503 in adapter.max_retries.status_forcelist

    def test_push_session_has_no_retries(self):
        """Test POSTs use an adapter without transport retries."""
        with HttpRemote("https://quotes.test/posts", max_retries=4) as client:
            adapter = client._push_session.get_adapter("https://quotes.test/posts")
            assert adapter.max_retries.total == 0
