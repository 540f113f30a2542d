"""Service for fetching and caching oracle prices by block."""

import threading
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from db.models import OraclePrices
from ledger_report.services._helpers import now_iso
from ledger_report.services.ledger_client import LedgerClient

logger = structlog.get_logger(__name__)


class OraclePriceService:
    """Resolves the oracle price in effect at a block.

    Prices are immutable once a block is final, so each block is fetched from
    the ledger API once and then served from the ``oracle_prices`` table.
    Session access is serialized so one service can be shared by the
    per-account worker threads. Network fetches run outside the lock.
    """

    def __init__(self, session: Session, client: LedgerClient):
        self.session = session
        self.client = client
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_price_at_block(self, block_number: int) -> Decimal:
        """Price at ``block_number``. Raises OraclePriceUnavailableError."""
        with self._lock:
            record = self.session.get(OraclePrices, block_number)
            if record is not None:
                self.hits += 1
                return Decimal(record.price)

        # fetched unlocked; two threads may race on one block, first write wins
        price = self.client.get_oracle_price(block_number)

        with self._lock:
            if self.session.get(OraclePrices, block_number) is not None:
                return price
            self.session.add(
                OraclePrices(
                    block_number=block_number,
                    price=str(price),
                    source="ledger_api",
                    created_at=now_iso(),
                )
            )
            self.session.flush()
            self.misses += 1

        logger.debug("Cached oracle price", block=block_number, price=str(price))
        return price
