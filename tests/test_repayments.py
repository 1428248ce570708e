from decimal import Decimal

import pytest

from ussdloan.errors import NoActiveLoan
from ussdloan.ledger import LoanLedger
from ussdloan.models import Payment, LOAN_ACTIVE, LOAN_CLOSED, LOAN_PENDING
from ussdloan.repayments import RepaymentProcessor


@pytest.fixture
def loan(db, subscriber):
    return LoanLedger(db).apply(subscriber.id, Decimal("100"), rate=Decimal("0.10"))


def test_overpayment_is_capped_and_closes_loan(db, loan):
    result = RepaymentProcessor(db).repay(loan.id, Decimal("150.00"))

    assert result.payment == Decimal("110.00")
    assert result.overpayment_ignored == Decimal("40.00")
    assert result.new_balance == Decimal("0.00")
    assert result.closed
    assert loan.status == LOAN_CLOSED
    assert loan.balance == Decimal("0.00")

    payment = db.query(Payment).filter(Payment.loan_id == loan.id).one()
    assert payment.amount == Decimal("110.00")
    assert payment.balance_after == Decimal("0.00")


def test_partial_payments_reduce_balance(db, loan):
    processor = RepaymentProcessor(db)

    first = processor.repay(loan.id, Decimal("30.25"))
    assert first.payment == Decimal("30.25")
    assert first.new_balance == Decimal("79.75")
    assert first.overpayment_ignored == Decimal("0.00")
    assert not first.closed
    assert loan.status == LOAN_ACTIVE

    second = processor.repay(loan.id, Decimal("79.75"))
    assert second.closed
    assert second.overpayment_ignored == Decimal("0.00")

    balances = [p.balance_after for p in db.query(Payment).order_by(Payment.id).all()]
    assert balances == [Decimal("79.75"), Decimal("0.00")]


@pytest.mark.parametrize("amount", ["0.01", "1", "55", "109.99", "110", "110.01", "5000"])
def test_payment_never_exceeds_balance(db, loan, amount):
    result = RepaymentProcessor(db).repay(loan.id, Decimal(amount))

    assert result.payment == min(Decimal(amount), Decimal("110.00"))
    assert result.new_balance == Decimal("110.00") - result.payment
    assert result.new_balance >= 0
    assert result.closed == (result.new_balance == 0)


def test_closed_loan_cannot_be_repaid(db, loan):
    processor = RepaymentProcessor(db)
    processor.repay(loan.id, loan.total_due)

    with pytest.raises(NoActiveLoan):
        processor.repay(loan.id, 10)


def test_pending_or_missing_loan_cannot_be_repaid(db, subscriber):
    pending = LoanLedger(db, initial_status=LOAN_PENDING).apply(subscriber.id, 100)
    processor = RepaymentProcessor(db)

    with pytest.raises(NoActiveLoan):
        processor.repay(pending.id, 10)
    with pytest.raises(NoActiveLoan):
        processor.repay(4242, 10)


@pytest.mark.parametrize("amount", ["0", "-1", "1e100"])
def test_out_of_range_amount_is_refused(db, loan, amount):
    with pytest.raises(ValueError):
        RepaymentProcessor(db).repay(loan.id, Decimal(amount))
    assert loan.balance == Decimal("110.00")
