"""Exchange rate resolution (Bs per USD).

The resolver walks a fixed chain: live primary source, live secondary
source, the last persisted rate, then a hardcoded constant. It never raises
to its caller; every failure along the way is logged and skipped.
"""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import httpx

from condopay.config import DEFAULT_PRIMARY_RATE_URL, DEFAULT_SECONDARY_RATE_URL
from condopay.database.base import Database
from condopay.domain.entities import ExchangeRate, Obligation
from condopay.domain.errors import RateUnavailable
from condopay.utils.amount_parser import to_money

logger = logging.getLogger(__name__)

MIN_VALID_RATE = Decimal("20")
FALLBACK_RATE = Decimal("37.50")
FALLBACK_SOURCE = "fallback"
DEFAULT_SOURCE_NAME = "DolarApi"

# Payload fields tried in order for the rate and for the source name
_RATE_FIELDS = ("venta", "compra", "promedio", "precio")
_SOURCE_FIELDS = ("nombre", "fuente")


def parse_rate_payload(data: Any) -> tuple[Decimal, str]:
    """Extract ``(rate, source)`` from a DolarApi-style JSON payload.

    Raises:
        RateUnavailable: If no usable rate is present
    """
    if not isinstance(data, dict):
        raise RateUnavailable("Rate payload is not an object")
    raw = next((data[f] for f in _RATE_FIELDS if data.get(f) is not None), None)
    if raw is None:
        raise RateUnavailable("No rate in response")
    try:
        rate = Decimal(str(raw))
    except InvalidOperation as e:
        raise RateUnavailable(f"Rate is not numeric: {raw!r}") from e
    if not rate.is_finite() or rate <= 0:
        raise RateUnavailable(f"Rate is not positive: {raw!r}")
    source = next((str(data[f]) for f in _SOURCE_FIELDS if data.get(f)), DEFAULT_SOURCE_NAME)
    return rate, source


def display_amount(obligation: Obligation, rate: ExchangeRate) -> Decimal:
    """Amount to show in local currency.

    The stored local amount wins; USD-only obligations are converted at
    ``rate``.
    """
    if obligation.amount > 0 or obligation.amount_usd is None:
        return obligation.amount
    return to_money(obligation.amount_usd * rate.rate)


class RateResolver:
    """Injectable source of the current display exchange rate."""

    def __init__(
        self,
        db: Optional[Database] = None,
        primary_url: str = DEFAULT_PRIMARY_RATE_URL,
        secondary_url: str = DEFAULT_SECONDARY_RATE_URL,
        ttl_seconds: int = 3600,
        timeout_seconds: float = 8,
        client: Optional[httpx.Client] = None,
        persist_live: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the resolver.

        Args:
            db: Database holding persisted rates (optional)
            primary_url: First live source
            secondary_url: Second live source
            ttl_seconds: How long a live rate is reused
            timeout_seconds: Per-request timeout for live sources
            client: httpx client to use; one is created when omitted
            persist_live: Store each freshly fetched live rate in the database
            clock: Monotonic clock, replaceable in tests
        """
        self.db = db
        self.sources = [url for url in (primary_url, secondary_url) if url]
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._client = client
        self.persist_live = persist_live
        self._clock = clock
        self._cached: Optional[ExchangeRate] = None
        self._cached_at = 0.0

    def _fetch(self, url: str) -> ExchangeRate:
        client = self._client or httpx.Client(timeout=self.timeout_seconds)
        try:
            response = client.get(url, timeout=self.timeout_seconds)
            response.raise_for_status()
            rate, source = parse_rate_payload(response.json())
        except httpx.HTTPError as e:
            raise RateUnavailable(f"{url}: {e}") from e
        except ValueError as e:
            # JSON decoding errors and RateUnavailable both land here
            raise RateUnavailable(f"{url}: {e}") from e
        finally:
            if self._client is None:
                client.close()
        if rate < MIN_VALID_RATE:
            raise RateUnavailable(f"{url}: rate {rate} below minimum {MIN_VALID_RATE}")
        return ExchangeRate(rate=rate, source=source, is_live=True)

    def _persisted(self) -> Optional[ExchangeRate]:
        if self.db is None:
            return None
        try:
            stored = self.db.get_latest_exchange_rate()
        except Exception:
            logger.warning("Could not read persisted exchange rate", exc_info=True)
            return None
        if stored is None or stored.rate < MIN_VALID_RATE:
            return None
        return stored

    def invalidate(self) -> None:
        """Drop the cached live rate."""
        self._cached = None

    def current_rate(self) -> ExchangeRate:
        """Return the current Bs-per-USD rate. Never raises."""
        now = self._clock()
        if self._cached is not None and now - self._cached_at < self.ttl_seconds:
            return self._cached

        for url in self.sources:
            try:
                live = self._fetch(url)
            except RateUnavailable as e:
                logger.warning("Exchange rate source failed: %s", e)
                continue
            self._cached = live
            self._cached_at = now
            if self.persist_live and self.db is not None:
                try:
                    self.db.save_exchange_rate(live.rate, live.source)
                except Exception:
                    logger.warning("Could not persist live exchange rate", exc_info=True)
            logger.info("Using live exchange rate %s from %s", live.rate, live.source)
            return live

        stored = self._persisted()
        if stored is not None:
            logger.info("Using persisted exchange rate %s from %s", stored.rate, stored.source)
            return stored

        logger.warning("No exchange rate available; using fallback %s", FALLBACK_RATE)
        return ExchangeRate(rate=FALLBACK_RATE, source=FALLBACK_SOURCE, is_live=False)

    def display_amount(self, obligation: Obligation) -> Decimal:
        """Local-currency amount of ``obligation`` at the current rate."""
        return display_amount(obligation, self.current_rate())
