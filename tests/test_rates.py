"""Tests for the exchange rate resolver."""

import pytest
from datetime import datetime
from decimal import Decimal

import httpx

from condopay.domain.entities import ExchangeRate, Obligation, ObligationOrigin, ObligationStatus, ObligationType
from condopay.domain.errors import RateUnavailable
from condopay.domain.rates import (
    FALLBACK_RATE,
    FALLBACK_SOURCE,
    RateResolver,
    display_amount,
    parse_rate_payload,
)

PRIMARY = "https://primary.test/oficial"
SECONDARY = "https://secondary.test/bolivar"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_client(routes, calls=None):
    """httpx client answering from ``routes`` (url -> response or exception)."""

    def handler(request):
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        answer = routes.get(url)
        if answer is None:
            return httpx.Response(404)
        if isinstance(answer, Exception):
            raise answer
        # Fresh response per request so cached tests can be answered twice
        return httpx.Response(answer.status_code, content=answer.content, headers=answer.headers)

    return httpx.Client(transport=httpx.MockTransport(handler))


def make_resolver(routes, db=None, calls=None, **kwargs):
    return RateResolver(
        db=db,
        primary_url=PRIMARY,
        secondary_url=SECONDARY,
        client=make_client(routes, calls),
        **kwargs,
    )


def _obligation(amount, amount_usd):
    now = datetime(2024, 5, 1, 12, 0)
    return Obligation(
        id=1,
        debtor_id=1,
        unit_id=1,
        concept="Cuota",
        obligation_type=ObligationType.ORDINARY_FEE,
        origin=ObligationOrigin.ASSIGNED,
        amount=Decimal(amount),
        amount_usd=Decimal(amount_usd) if amount_usd is not None else None,
        paid_amount=Decimal("0.00"),
        status=ObligationStatus.PENDING,
        due_date=None,
        paid_at=None,
        created_at=now,
        updated_at=now,
    )


class TestParseRatePayload:
    def test_prefers_venta(self):
        assert parse_rate_payload({"venta": 36.6, "compra": 36.1, "nombre": "Oficial"}) == (
            Decimal("36.6"),
            "Oficial",
        )

    def test_falls_through_fields(self):
        assert parse_rate_payload({"venta": None, "promedio": "40.25", "fuente": "BCV"}) == (
            Decimal("40.25"),
            "BCV",
        )
        assert parse_rate_payload({"precio": 41})[0] == Decimal("41")

    def test_default_source_name(self):
        assert parse_rate_payload({"compra": 39})[1] == "DolarApi"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"venta": None}, {"venta": "abc"}, {"venta": 0}, {"venta": -3}, [1, 2], "36.5"],
    )
    def test_unusable_payloads(self, payload):
        with pytest.raises(RateUnavailable):
            parse_rate_payload(payload)


class TestResolverChain:
    def test_primary_source(self):
        resolver = make_resolver({PRIMARY: httpx.Response(200, json={"venta": 36.5, "nombre": "Oficial"})})
        rate = resolver.current_rate()
        assert rate.rate == Decimal("36.5")
        assert rate.source == "Oficial"
        assert rate.is_live

    def test_secondary_when_primary_fails(self):
        resolver = make_resolver({
            PRIMARY: httpx.Response(503),
            SECONDARY: httpx.Response(200, json={"promedio": 38.2}),
        })
        rate = resolver.current_rate()
        assert rate.rate == Decimal("38.2")
        assert rate.source == "DolarApi"
        assert rate.is_live

    def test_network_error_falls_through(self):
        resolver = make_resolver({
            PRIMARY: httpx.ConnectTimeout("timed out"),
            SECONDARY: httpx.Response(200, json={"venta": 39}),
        })
        assert resolver.current_rate().rate == Decimal("39")

    def test_invalid_json_falls_through(self):
        resolver = make_resolver({
            PRIMARY: httpx.Response(200, text="<html>maintenance</html>"),
            SECONDARY: httpx.Response(200, json={"venta": 39}),
        })
        assert resolver.current_rate().rate == Decimal("39")

    def test_rate_below_minimum_is_rejected(self):
        resolver = make_resolver({
            PRIMARY: httpx.Response(200, json={"venta": 4.5}),
            SECONDARY: httpx.Response(200, json={"venta": 36}),
        })
        assert resolver.current_rate().rate == Decimal("36")

    def test_persisted_rate_when_sources_fail(self, temp_db):
        temp_db.save_exchange_rate(Decimal("35.80"), "manual")
        resolver = make_resolver({}, db=temp_db)
        rate = resolver.current_rate()
        assert rate.rate == Decimal("35.80")
        assert rate.source == "manual"
        assert not rate.is_live

    def test_persisted_rate_below_minimum_is_ignored(self, temp_db):
        temp_db.save_exchange_rate(Decimal("5.00"), "typo")
        rate = make_resolver({}, db=temp_db).current_rate()
        assert rate.rate == FALLBACK_RATE
        assert rate.source == FALLBACK_SOURCE

    def test_fallback_without_anything(self):
        rate = make_resolver({}).current_rate()
        assert rate.rate == Decimal("37.50")
        assert rate.source == "fallback"
        assert not rate.is_live

    def test_persist_live(self, temp_db):
        resolver = make_resolver({PRIMARY: httpx.Response(200, json={"venta": 36.5})}, db=temp_db,
                                 persist_live=True)
        resolver.current_rate()
        stored = temp_db.get_latest_exchange_rate()
        assert stored.rate == Decimal("36.5")
        assert stored.source == "DolarApi"


class TestCaching:
    def test_live_rate_is_cached_until_ttl(self):
        calls = []
        clock = FakeClock()
        resolver = make_resolver(
            {PRIMARY: httpx.Response(200, json={"venta": 36.5})}, calls=calls, ttl_seconds=60, clock=clock
        )
        resolver.current_rate()
        clock.now += 59
        resolver.current_rate()
        assert calls == [PRIMARY]

        clock.now += 2
        resolver.current_rate()
        assert calls == [PRIMARY, PRIMARY]

    def test_invalidate(self):
        calls = []
        resolver = make_resolver({PRIMARY: httpx.Response(200, json={"venta": 36.5})}, calls=calls)
        resolver.current_rate()
        resolver.invalidate()
        resolver.current_rate()
        assert len(calls) == 2

    def test_fallback_is_not_cached(self):
        calls = []
        resolver = make_resolver({}, calls=calls)
        resolver.current_rate()
        resolver.current_rate()
        assert calls == [PRIMARY, SECONDARY, PRIMARY, SECONDARY]


class TestDisplayAmount:
    def test_stored_local_amount_wins(self):
        resolver = make_resolver({PRIMARY: httpx.Response(200, json={"venta": 50})})
        assert resolver.display_amount(_obligation("100.00", "3.00")) == Decimal("100.00")

    def test_usd_only_is_converted(self):
        resolver = make_resolver({PRIMARY: httpx.Response(200, json={"venta": 36.55})})
        assert resolver.display_amount(_obligation("0.00", "10.00")) == Decimal("365.50")

    def test_plain_function(self):
        rate = ExchangeRate(rate=Decimal("40"), source="test", is_live=False)
        assert display_amount(_obligation("0.00", "2.505"), rate) == Decimal("100.20")
        assert display_amount(_obligation("0.00", None), rate) == Decimal("0.00")
