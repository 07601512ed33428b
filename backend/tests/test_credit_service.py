"""
Store credit ledger tests.

The cached customer balance must always equal the summed ledger, postings
must record balance_after, and a reversal must undo exactly its entry.
"""

from decimal import Decimal

import pytest

from onestop.errors import NotFoundError, ValidationError
from onestop.extensions import db
from onestop.models import CreditCustomer, CreditLedgerEntry
from onestop.services import credit_service


def _post(owner_id, customer_id, entry_type, amount, **extra):
    payload = {"customer_id": customer_id, "type": entry_type, "amount": amount}
    payload.update(extra)
    return credit_service.post_credit_transaction(owner_id, payload)


def _balance(customer_id) -> Decimal:
    db.session.expire_all()
    return db.session.get(CreditCustomer, customer_id).current_balance


class TestBalanceCalculator:
    def test_credit_raises_balance(self):
        assert credit_service.compute_balance(Decimal("0"), "credit", Decimal("100")) == Decimal("100")

    def test_payment_lowers_balance_and_may_go_negative(self):
        assert credit_service.compute_balance(Decimal("20"), "payment", Decimal("50")) == Decimal("-30")

    def test_reversal_is_inverse_of_posting(self):
        prior = Decimal("42.50")
        for entry_type in ("credit", "payment"):
            amount = Decimal("17.25")
            after = credit_service.compute_balance(prior, entry_type, amount)
            assert after + credit_service.reversal_delta(entry_type, amount) == prior

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            credit_service.compute_balance(Decimal("0"), "refund", Decimal("10"))

    def test_non_positive_amount_rejected(self):
        with pytest.raises(ValidationError):
            credit_service.compute_balance(Decimal("0"), "credit", Decimal("0"))


class TestPostAndReverse:
    def test_post_reverse_walkthrough(self, user_a, customer_a):
        credit = _post(user_a.id, customer_a.id, "credit", "100.00", description="Market alışverişi")
        assert credit.balance_after == Decimal("100.00")
        assert _balance(customer_a.id) == Decimal("100.00")

        payment = _post(user_a.id, customer_a.id, "payment", 40)
        assert payment.balance_after == Decimal("60.00")
        assert _balance(customer_a.id) == Decimal("60.00")

        credit_id, payment_id = credit.id, payment.id

        credit_service.reverse_credit_transaction(user_a.id, payment_id)
        assert _balance(customer_a.id) == Decimal("100.00")
        assert db.session.get(CreditLedgerEntry, payment_id) is None

        credit_service.reverse_credit_transaction(user_a.id, credit_id)
        assert _balance(customer_a.id) == Decimal("0.00")
        assert db.session.query(CreditLedgerEntry).count() == 0

    def test_balance_after_of_older_entries_is_not_rewritten(self, user_a, customer_a):
        first = _post(user_a.id, customer_a.id, "credit", "30")
        second = _post(user_a.id, customer_a.id, "credit", "20")
        credit_service.reverse_credit_transaction(user_a.id, first.id)

        db.session.expire_all()
        assert db.session.get(CreditLedgerEntry, second.id).balance_after == Decimal("50.00")
        assert _balance(customer_a.id) == Decimal("20.00")

    def test_credit_over_limit_is_accepted(self, user_a, customer_a):
        entry = _post(user_a.id, customer_a.id, "credit", "750.00")
        assert entry.balance_after == Decimal("750.00")

    def test_other_owner_cannot_post(self, user_a, user_b, customer_a):
        with pytest.raises(NotFoundError):
            _post(user_b.id, customer_a.id, "credit", "10")
        assert _balance(customer_a.id) == Decimal("0.00")

    def test_inactive_customer_cannot_receive_postings(self, user_a, customer_a):
        credit_service.deactivate_customer(user_a.id, customer_a.id)
        with pytest.raises(NotFoundError):
            _post(user_a.id, customer_a.id, "credit", "10")

    def test_other_owner_cannot_reverse(self, user_a, user_b, customer_a):
        entry = _post(user_a.id, customer_a.id, "credit", "10")
        with pytest.raises(NotFoundError):
            credit_service.reverse_credit_transaction(user_b.id, entry.id)
        assert _balance(customer_a.id) == Decimal("10.00")

    def test_reverse_unknown_entry(self, user_a):
        with pytest.raises(NotFoundError):
            credit_service.reverse_credit_transaction(user_a.id, 999999)

    @pytest.mark.parametrize("payload, message", [
        ({"type": "credit", "amount": 10}, "Customer ID is required"),
        ({"customer_id": 1, "type": "gift", "amount": 10}, 'Type must be either "credit" or "payment"'),
        ({"customer_id": 1, "type": "credit", "amount": 0}, "Amount must be a positive number"),
        ({"customer_id": 1, "type": "credit", "amount": -5}, "Amount must be a positive number"),
    ])
    def test_invalid_payloads(self, user_a, payload, message):
        with pytest.raises(ValidationError) as exc:
            credit_service.post_credit_transaction(user_a.id, payload)
        assert exc.value.message == message


class TestCustomers:
    def test_create_starts_at_zero_balance(self, user_a):
        customer = credit_service.create_customer(
            user_a.id, {"name": "Mehmet", "house_no": "4", "current_balance": "999"}
        )
        assert customer.current_balance == Decimal("0")

    def test_create_requires_name(self, user_a):
        with pytest.raises(ValidationError):
            credit_service.create_customer(user_a.id, {"house_no": "4"})

    def test_search_matches_house_no(self, user_a, customer_a):
        credit_service.create_customer(user_a.id, {"name": "Fatma", "house_no": "99"})
        found = credit_service.list_customers(user_a.id, "12B")
        assert [c.id for c in found] == [customer_a.id]

    def test_customers_are_owner_scoped(self, user_a, user_b, customer_a):
        assert credit_service.list_customers(user_b.id) == []
        with pytest.raises(NotFoundError):
            credit_service.get_customer(user_b.id, customer_a.id)


class TestReconciliation:
    def test_consistent_ledger_has_no_drift(self, user_a, customer_a):
        _post(user_a.id, customer_a.id, "credit", "100")
        _post(user_a.id, customer_a.id, "payment", "25")

        report = credit_service.reconcile_balances(owner_id=user_a.id)
        assert report["checked"] == 1
        assert report["drifted"] == []

    def test_drift_is_reported_and_fixed(self, user_a, customer_a):
        _post(user_a.id, customer_a.id, "credit", "100")

        customer = db.session.get(CreditCustomer, customer_a.id)
        customer.current_balance = Decimal("130.00")
        db.session.commit()

        report = credit_service.reconcile_balances(owner_id=user_a.id)
        assert report["fixed"] is False
        assert report["drifted"][0]["drift"] == "30.00"
        assert _balance(customer_a.id) == Decimal("130.00")

        report = credit_service.reconcile_balances(owner_id=user_a.id, fix=True)
        assert report["fixed"] is True
        assert _balance(customer_a.id) == Decimal("100.00")
