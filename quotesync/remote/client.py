"""
Remote endpoint adapter.

Fetches the authoritative item snapshot and notifies the remote of
newly created local items. Transport details stay behind the
RemoteAdapter protocol so the sync engine never sees HTTP.
"""

import logging
from typing import Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..storage.models import Clock, Item, utc_now
from .models import DEFAULT_CATEGORY, MalformedRemoteItem, item_from_record

logger = logging.getLogger(__name__)


DEFAULT_REMOTE_URL = "https://jsonplaceholder.typicode.com/posts"


class RemoteUnavailable(Exception):
    """Raised when the remote cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteAdapter(Protocol):
    def fetch_snapshot(self) -> list[Item]:
        ...

    def push_item(self, item: Item) -> Item:
        ...


class HttpRemote:
    """
    HTTP implementation of the remote adapter.

    Handles:
    - GET of the full snapshot, truncated to ``snapshot_limit`` records
    - POST of a single new item
    - Transport retries for idempotent GETs on 429/5xx
    - A single attempt per POST, with no transport retries
    - Dropping malformed records without failing the snapshot

    Usage:
        remote = HttpRemote("https://jsonplaceholder.typicode.com/posts")
        items = remote.fetch_snapshot()
    """

    def __init__(
        self,
        url: str = DEFAULT_REMOTE_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        snapshot_limit: Optional[int] = 5,
        default_category: str = DEFAULT_CATEGORY,
        clock: Clock = utc_now,
    ):
        """
        Initialize remote adapter.

        Args:
            url: Endpoint serving the snapshot (GET) and accepting items (POST)
            timeout: Request timeout in seconds
            max_retries: Maximum transport retries for GET requests
            snapshot_limit: Keep only the first N records, None for all
            default_category: Category for records that carry none
            clock: Timestamp source for normalized items
        """
        self.url = url
        self.timeout = timeout
        self.snapshot_limit = snapshot_limit
        self.default_category = default_category
        self._clock = clock

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        self._session = self._build_session(retry_strategy)

        # POSTs get exactly one attempt; failures go back to the caller
        self._push_session = self._build_session(Retry(total=0, read=False))

        logger.info(f"Remote adapter initialized for {self.url}")

    def __repr__(self) -> str:
        return f"HttpRemote(url='{self.url}')"

    @staticmethod
    def _build_session(retry_strategy: Retry) -> requests.Session:
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        return session

    def _make_request(self, method: str, data: Optional[dict] = None):
        """
        Send a request to the endpoint and decode the JSON body.

        Raises:
            RemoteUnavailable: On transport failure, timeout, non-success
                status or an undecodable body
        """
        session = self._session if method == "GET" else self._push_session

        try:
            response = session.request(
                method=method,
                url=self.url,
                json=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            error_msg = f"Remote {method} failed: {e}"
            logger.error(error_msg)
            raise RemoteUnavailable(error_msg, status_code=status_code) from e

        except requests.exceptions.RequestException as e:
            error_msg = f"Remote {method} request failed: {e}"
            logger.error(error_msg)
            raise RemoteUnavailable(error_msg) from e

        except ValueError as e:
            error_msg = f"Remote {method} returned invalid JSON: {e}"
            logger.error(error_msg)
            raise RemoteUnavailable(error_msg) from e

    def fetch_snapshot(self) -> list[Item]:
        """
        Fetch and normalize the remote snapshot.

        Malformed records and repeated ids are dropped with a warning.

        Returns:
            Items in remote order

        Raises:
            RemoteUnavailable: If the snapshot cannot be fetched
        """
        logger.debug(f"Fetching snapshot from {self.url}")

        data = self._make_request("GET")
        if not isinstance(data, list):
            raise RemoteUnavailable(
                f"Remote snapshot is not a list (got {type(data).__name__})"
            )

        records = data if self.snapshot_limit is None else data[:self.snapshot_limit]

        items = []
        seen = set()
        for record in records:
            try:
                item = item_from_record(record, self.default_category, self._clock)
            except MalformedRemoteItem as e:
                logger.warning(f"Skipping malformed remote record: {e}")
                continue

            if item.id in seen:
                logger.warning(f"Skipping repeated remote record {item.id}")
                continue
            seen.add(item.id)
            items.append(item)

        logger.info(f"Fetched {len(items)} remote items")
        return items

    def push_item(self, item: Item) -> Item:
        """
        Notify the remote of a newly created local item.

        Only the request's success matters; the response body is logged
        and otherwise unused.

        Returns:
            The accepted item

        Raises:
            RemoteUnavailable: If the POST fails
        """
        logger.info(f"Pushing item {item.id}")

        response = self._make_request("POST", data=item.to_dict())

        if isinstance(response, dict):
            logger.debug(f"Remote accepted item {item.id} as {response.get('id')}")
        return item

    def close(self) -> None:
        """Close the HTTP sessions."""
        self._session.close()
        self._push_session.close()
        logger.debug("Remote sessions closed")

    def __enter__(self) -> "HttpRemote":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
