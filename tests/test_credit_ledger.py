"""Tests for CreditLedgerService."""

import pytest
from datetime import date
from decimal import Decimal

from condopay.domain.entities import ObligationEventKind, ObligationOrigin, ObligationStatus, SettlementReason
from condopay.database.factories import create_sqlite_database
from condopay.domain.credit import CreditLedgerService
from condopay.domain.errors import (
    AlreadyFinalized,
    AlreadySubmitted,
    ConcurrentModification,
    NotFoundError,
    ValidationError,
)


def test_new_resident_has_no_credit(credit_service, sample_resident):
    assert credit_service.available_credit(sample_resident.id) == Decimal("0.00")
    assert credit_service.entries(sample_resident.id) == []


def test_record_excess(credit_service, sample_resident):
    credit_service.record_excess(sample_resident.id, Decimal("12.5"), None)
    credit_service.record_excess(sample_resident.id, Decimal("7.50"), None)
    assert credit_service.available_credit(sample_resident.id) == Decimal("20.00")


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_record_excess_rejects_non_positive(credit_service, sample_resident, amount):
    with pytest.raises(ValidationError):
        credit_service.record_excess(sample_resident.id, Decimal(amount), None)


class TestApplyCredit:
    def test_partial_application_splits_entry(self, credit_service, obligation_service, sample_resident):
        first = credit_service.record_excess(sample_resident.id, Decimal("30"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("20"))

        applied = credit_service.apply_credit(sample_resident.id, obligation_id)
        assert applied == Decimal("20.00")

        obligation = obligation_service.get_obligation(obligation_id)
        assert obligation.status == ObligationStatus.PAID
        assert obligation.settlement_reason == SettlementReason.CARRIED_CREDIT
        assert obligation.paid_at is not None

        entries = credit_service.entries(sample_resident.id)
        assert len(entries) == 2
        consumed, leftover = entries
        assert consumed.id == first
        assert consumed.consumed
        assert consumed.consumed_by_obligation_id == obligation_id
        assert consumed.amount == Decimal("30.00")
        assert not leftover.consumed
        assert leftover.amount == Decimal("10.00")
        assert leftover.split_from_entry_id == first
        assert credit_service.available_credit(sample_resident.id) == Decimal("10.00")

    def test_capped_by_available_credit(self, credit_service, obligation_service, sample_resident):
        credit_service.record_excess(sample_resident.id, Decimal("15"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("40"))

        applied = credit_service.apply_credit(sample_resident.id, obligation_id)
        assert applied == Decimal("15.00")
        obligation = obligation_service.get_obligation(obligation_id)
        assert obligation.paid_amount == Decimal("15.00")
        assert obligation.status == ObligationStatus.PARTIALLY_PAID
        assert credit_service.available_credit(sample_resident.id) == Decimal("0.00")

    def test_capped_by_requested_amount(self, credit_service, obligation_service, sample_resident):
        credit_service.record_excess(sample_resident.id, Decimal("50"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("40"))

        applied = credit_service.apply_credit(sample_resident.id, obligation_id, amount=Decimal("5"))
        assert applied == Decimal("5.00")
        assert credit_service.available_credit(sample_resident.id) == Decimal("45.00")

    def test_consumes_oldest_entries_first(self, credit_service, obligation_service, sample_resident):
        older = credit_service.record_excess(sample_resident.id, Decimal("10"), None)
        newer = credit_service.record_excess(sample_resident.id, Decimal("10"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))

        credit_service.apply_credit(sample_resident.id, obligation_id)
        by_id = {e.id: e for e in credit_service.entries(sample_resident.id)}
        assert by_id[older].consumed
        assert by_id[newer].consumed
        leftovers = [e for e in by_id.values() if not e.consumed]
        assert [(e.amount, e.split_from_entry_id) for e in leftovers] == [(Decimal("5.00"), newer)]

    def test_no_credit_applies_nothing(self, credit_service, obligation_service, sample_resident):
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        assert credit_service.apply_credit(sample_resident.id, obligation_id) == Decimal("0.00")
        assert obligation_service.history(obligation_id)[-1].event == ObligationEventKind.CREATED

    def test_records_history(self, credit_service, obligation_service, sample_resident):
        entry_id = credit_service.record_excess(sample_resident.id, Decimal("5"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        credit_service.apply_credit(sample_resident.id, obligation_id, actor_id=sample_resident.id)

        event = obligation_service.history(obligation_id)[-1]
        assert event.event == ObligationEventKind.CREDIT_APPLIED
        assert event.details["amount"] == "5.00"
        assert event.details["entry_ids"] == [entry_id]

    def test_other_residents_obligation(self, credit_service, obligation_service, sample_resident,
                                        make_resident, sample_condo):
        other = make_resident(sample_condo)
        credit_service.record_excess(other.id, Decimal("5"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        with pytest.raises(ValidationError):
            credit_service.apply_credit(other.id, obligation_id)

    def test_missing_obligation(self, credit_service, sample_resident):
        with pytest.raises(NotFoundError):
            credit_service.apply_credit(sample_resident.id, 77)

    def test_closed_obligation(self, credit_service, obligation_service, sample_resident, pay):
        credit_service.record_excess(sample_resident.id, Decimal("5"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        pay(obligation_id, "15")
        with pytest.raises(AlreadyFinalized):
            credit_service.apply_credit(sample_resident.id, obligation_id)

    def test_awaiting_validation(self, credit_service, obligation_service, sample_resident):
        credit_service.record_excess(sample_resident.id, Decimal("5"), None)
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        obligation_service.submit_evidence(obligation_id, sample_resident.id, Decimal("15"))
        with pytest.raises(AlreadySubmitted):
            credit_service.apply_credit(sample_resident.id, obligation_id)
        assert credit_service.available_credit(sample_resident.id) == Decimal("5.00")

    def test_superseded_original(self, credit_service, obligation_service, sample_resident, sample_admin, pay):
        obligation_id = obligation_service.create_obligation(
            sample_resident.id, "Cuota", Decimal("100"), origin=ObligationOrigin.ASSIGNED, actor_id=sample_admin.id
        )
        pay(obligation_id, "60")
        credit_service.record_excess(sample_resident.id, Decimal("5"), None)
        with pytest.raises(AlreadyFinalized):
            credit_service.apply_credit(sample_resident.id, obligation_id)

    def test_rejects_non_positive_amount(self, credit_service, obligation_service, sample_resident):
        obligation_id = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("15"))
        with pytest.raises(ValidationError):
            credit_service.apply_credit(sample_resident.id, obligation_id, amount=Decimal("0"))


class TestApplyAvailableCredit:
    def test_pays_oldest_due_first_and_undated_last(self, credit_service, obligation_service, sample_resident):
        undated = obligation_service.create_obligation(sample_resident.id, "Sin fecha", Decimal("10"))
        later = obligation_service.create_obligation(
            sample_resident.id, "Febrero", Decimal("10"), due_date=date(2030, 2, 28)
        )
        earlier = obligation_service.create_obligation(
            sample_resident.id, "Enero", Decimal("10"), due_date=date(2030, 1, 31)
        )
        credit_service.record_excess(sample_resident.id, Decimal("15"), None)

        applied = credit_service.apply_available_credit(sample_resident.id)
        assert applied == {earlier: Decimal("10.00"), later: Decimal("5.00")}
        assert obligation_service.get_obligation(earlier).status == ObligationStatus.PAID
        assert obligation_service.get_obligation(later).status == ObligationStatus.PARTIALLY_PAID
        assert obligation_service.get_obligation(undated).paid_amount == Decimal("0.00")
        assert credit_service.available_credit(sample_resident.id) == Decimal("0.00")

    def test_skips_obligations_awaiting_validation(self, credit_service, obligation_service, sample_resident):
        awaiting = obligation_service.create_obligation(
            sample_resident.id, "Enero", Decimal("10"), due_date=date(2030, 1, 31)
        )
        free = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("10"))
        obligation_service.submit_evidence(awaiting, sample_resident.id, Decimal("10"))
        credit_service.record_excess(sample_resident.id, Decimal("4"), None)

        assert credit_service.apply_available_credit(sample_resident.id) == {free: Decimal("4.00")}

    def test_without_credit(self, credit_service, obligation_service, sample_resident):
        obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("10"))
        assert credit_service.apply_available_credit(sample_resident.id) == {}


def test_money_is_conserved(credit_service, obligation_service, sample_resident, pay):
    """Claimed money ends up either paid or as credit, never both or neither."""
    a = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("80"))
    b = obligation_service.create_obligation(sample_resident.id, "Luz", Decimal("45.50"))
    pay(a, "100")
    pay(b, "20", apply_credit=True)

    paid = sum(obligation_service.get_obligation(i).paid_amount for i in (a, b))
    assert paid + credit_service.available_credit(sample_resident.id) == Decimal("120.00")


def test_entry_consumed_on_other_connection(credit_service, obligation_service, temp_db, sample_resident,
                                            monkeypatch):
    """Two handles spend the same entry; only the first application lands."""
    entry_id = credit_service.record_excess(sample_resident.id, Decimal("30"), None)
    agua = obligation_service.create_obligation(sample_resident.id, "Agua", Decimal("40"))
    luz = obligation_service.create_obligation(sample_resident.id, "Luz", Decimal("20"))

    other = create_sqlite_database(database_path=temp_db.database_path)
    listing = temp_db.list_credit_entries
    spent = []

    def list_then_spend(*args, **kwargs):
        entries = listing(*args, **kwargs)
        if not spent:
            spent.append(CreditLedgerService(other).apply_credit(sample_resident.id, luz))
        return entries

    monkeypatch.setattr(temp_db, "list_credit_entries", list_then_spend)
    try:
        with pytest.raises(ConcurrentModification):
            credit_service.apply_credit(sample_resident.id, agua)
    finally:
        other.disconnect()

    assert spent == [Decimal("20.00")]
    assert obligation_service.get_obligation(agua).paid_amount == Decimal("0.00")
    assert obligation_service.get_obligation(luz).status == ObligationStatus.PAID
    consumed = [e for e in credit_service.entries(sample_resident.id) if e.consumed]
    assert [(e.id, e.consumed_by_obligation_id) for e in consumed] == [(entry_id, luz)]

    # The leftover is still there for a retry
    assert credit_service.apply_credit(sample_resident.id, agua) == Decimal("10.00")
