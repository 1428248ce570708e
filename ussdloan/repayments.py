import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from .errors import NoActiveLoan
from .models import Loan, Payment, LOAN_ACTIVE, LOAN_CLOSED, utcnow
from .money import fits_ledger, round_money, ZERO

logger = logging.getLogger(__name__)


@dataclass
class RepaymentResult:
    payment: Decimal
    new_balance: Decimal
    overpayment_ignored: Decimal
    closed: bool


class RepaymentProcessor:
    def __init__(self, db: Session):
        self.db = db

    def repay(self, loan_id: int, requested) -> RepaymentResult:
        """
        Apply a payment to an active loan.

        Overpayment is capped at the outstanding balance; the excess is only
        reported back, never credited. The loan row stays locked until the
        caller commits, so a competing repayment reads the updated balance.
        """
        requested = Decimal(str(requested))
        if requested <= 0 or not fits_ledger(requested):
            raise ValueError(f"Repayment amount [{requested}] is out of range")
        requested = round_money(requested)
        loan = self.db.query(Loan).filter(Loan.id == loan_id).with_for_update().first()
        if loan is None or loan.status != LOAN_ACTIVE:
            raise NoActiveLoan(f"Loan [{loan_id}] is not active")

        balance = round_money(loan.balance)
        payment = min(requested, balance)
        new_balance = round_money(balance - payment)

        self.db.add(Payment(loan_id=loan.id, amount=payment, balance_after=max(new_balance, ZERO),
                            created_at=utcnow()))

        closed = new_balance <= ZERO
        if closed:
            loan.balance = ZERO
            loan.status = LOAN_CLOSED
            new_balance = ZERO
        else:
            loan.balance = new_balance
        self.db.flush()

        logger.info(f"Repayment applied - Loan: [{loan.id}], Payment: [{payment}], Balance: [{new_balance}], "
                    f"Closed: [{closed}]")
        return RepaymentResult(
            payment=payment,
            new_balance=new_balance,
            overpayment_ignored=round_money(requested - payment),
            closed=closed,
        )
