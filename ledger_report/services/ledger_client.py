"""HTTP client for the ledger API (account rewards, activity, oracle prices)."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar
from urllib.parse import urljoin

import requests
import structlog
from pydantic import ValidationError

from config import get_settings
from ledger_report.services._helpers import from_smallest_units, oracle_price_from_units
from ledger_report.services.errors import (
    DeserializationError,
    LedgerApiError,
    OraclePriceUnavailableError,
    TransportError,
)
from ledger_report.services.retry import RetryPolicy
from ledger_report.services.schemas.ledger import ReportWindow, RewardTransaction
from ledger_report.services.schemas.transactions import TransactionRecord, parse_transaction

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_TRANSIENT_STATUSES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


class NotFoundError(LedgerApiError):
    """The API answered 404 for the requested resource."""


class LedgerClient:
    """Client for the ledger's public HTTP API.

    Every page request runs through ``retry_policy``, so a list returned from
    here is complete: either every page arrived or the call raised.
    """

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ledger_api.base_url).rstrip("/") + "/"
        self.timeout = timeout or settings.ledger_api.timeout
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings.retry)
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent or settings.ledger_api.user_agent,
                "Accept": "application/json",
            }
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_once(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        url = urljoin(self.base_url, path)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {path} failed: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"GET {path}: not found")
        if resp.status_code in _TRANSIENT_STATUSES:
            raise TransportError(f"GET {path}: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise LedgerApiError(f"GET {path}: HTTP {resp.status_code} {resp.text[:200]}")

        try:
            body: object = resp.json()
        except ValueError as e:
            raise DeserializationError(f"GET {path}: response is not JSON") from e
        if not isinstance(body, dict):
            raise DeserializationError(f"GET {path}: expected an object, got {type(body).__name__}")
        return body

    def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        return self.retry_policy.call(self._get_once, path, params, description=f"GET {path}")

    def _fetch_page(
        self, path: str, params: dict[str, str], parse: Callable[[object], T]
    ) -> tuple[list[T], str | None]:
        body = self._get_once(path, params)
        data = body.get("data", [])
        if not isinstance(data, list):
            raise DeserializationError(f"GET {path}: 'data' is not a list")
        cursor = body.get("cursor")
        return [parse(item) for item in data], str(cursor) if cursor else None

    def _paginate(
        self, path: str, params: dict[str, str] | None, parse: Callable[[object], T]
    ) -> Iterator[T]:
        """Yield every parsed item of a cursor-paginated listing.

        A page is fetched and parsed as one unit under the retry policy.
        """
        query: dict[str, str] = dict(params or {})
        while True:
            items, cursor = self.retry_policy.call(
                self._fetch_page, path, query, parse, description=f"GET {path}"
            )
            yield from items

            if not cursor:
                return
            # the cursor already encodes the original filters
            query = {"cursor": str(cursor)}

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_rewards(self, address: str, window: ReportWindow) -> list[RewardTransaction]:
        """All reward entries for ``address`` with timestamps inside ``window``."""
        params = {
            "min_time": window.start.isoformat(),
            "max_time": window.end.isoformat(),
        }
        rewards: list[RewardTransaction] = []
        for reward in self._paginate(f"accounts/{address}/rewards", params, _reward_from_api):
            if window.contains(reward.timestamp):
                rewards.append(reward)

        logger.debug("Fetched rewards", address=address, count=len(rewards))
        return rewards

    def get_transactions(
        self, address: str, filter_types: list[str] | None = None
    ) -> list[TransactionRecord]:
        params = {"filter_types": ",".join(filter_types)} if filter_types else None
        transactions: list[TransactionRecord] = list(
            self._paginate(f"accounts/{address}/activity", params, _transaction_from_api)
        )
        logger.debug("Fetched transactions", address=address, count=len(transactions))
        return transactions

    def get_oracle_price(self, block: int) -> Decimal:
        """Oracle price in effect at ``block``."""
        try:
            body = self._get(f"oracle/prices/{block}")
        except NotFoundError as e:
            raise OraclePriceUnavailableError(block) from e

        data = body.get("data")
        if not isinstance(data, dict) or data.get("price") is None:
            raise OraclePriceUnavailableError(block, "response carried no price")
        try:
            return oracle_price_from_units(int(data["price"]))
        except (TypeError, ValueError) as e:
            raise DeserializationError(f"Bad oracle price at block {block}: {data['price']!r}") from e


def _transaction_from_api(item: object) -> TransactionRecord:
    try:
        return parse_transaction(item)
    except ValidationError as e:
        ref = item.get("hash", "?") if isinstance(item, dict) else "?"
        raise DeserializationError(f"Unreadable transaction {ref!r}: {e}") from e


def _reward_from_api(item: object) -> RewardTransaction:
    if not isinstance(item, dict):
        raise DeserializationError(f"Reward entry is not an object: {item!r}")
    try:
        timestamp = datetime.fromisoformat(str(item["timestamp"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return RewardTransaction(
            timestamp=timestamp,
            hash=str(item["hash"]),
            block=int(item["block"]),
            amount=from_smallest_units(int(item["amount"])),
            gateway=item.get("gateway"),
            type=item.get("type"),
        )
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        raise DeserializationError(f"Malformed reward entry {item!r}: {e}") from e
