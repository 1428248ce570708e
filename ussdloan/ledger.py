import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from . import config
from .errors import ActiveLoanExists, InvalidLoanState, LoanNotFound, UnknownSubscriber
from .models import Loan, Subscriber, LOAN_ACTIVE, LOAN_PENDING, OPEN_LOAN_STATUSES, utcnow
from .money import round_money

logger = logging.getLogger(__name__)


def loan_terms(principal, rate, term_days: int, today: Optional[date] = None) -> dict:
    """
    Compute the terms of a single fixed-term, simple-interest loan.

        loan_terms(100, Decimal("0.10"), 30)
        # principal 100.00, interest 10.00, total_due 110.00, due_date today + 30 days
    """
    principal = round_money(principal)
    interest = round_money(principal * Decimal(str(rate)))
    return {
        "principal": principal,
        "interest_amount": interest,
        "total_due": round_money(principal + interest),
        "due_date": (today or date.today()) + timedelta(days=term_days),
    }


class LoanLedger:
    def __init__(self, db: Session, initial_status: Optional[str] = None):
        initial_status = initial_status or config.LOAN_INITIAL_STATUS
        if initial_status not in OPEN_LOAN_STATUSES:
            raise ValueError(f"Loans cannot start as [{initial_status}]")
        self.db = db
        self.initial_status = initial_status

    def active_loan_for(self, subscriber_id: int) -> Optional[Loan]:
        """The subscriber's open (pending or active) loan, if any."""
        return (
            self.db.query(Loan)
            .filter(Loan.subscriber_id == subscriber_id, Loan.status.in_(OPEN_LOAN_STATUSES))
            .order_by(Loan.id.desc())
            .first()
        )

    def apply(self, subscriber_id: int, principal, rate=None, term_days: Optional[int] = None) -> Loan:
        rate = config.INTEREST_RATE if rate is None else Decimal(str(rate))
        term_days = config.LOAN_TERM_DAYS if term_days is None else term_days

        # Subscriber row lock serializes concurrent applications by the same subscriber
        subscriber = (
            self.db.query(Subscriber)
            .filter(Subscriber.id == subscriber_id)
            .with_for_update()
            .first()
        )
        if subscriber is None:
            raise UnknownSubscriber(f"Subscriber [{subscriber_id}] does not exist")
        if self.active_loan_for(subscriber_id):
            raise ActiveLoanExists(f"Subscriber [{subscriber_id}] already has an open loan")

        terms = loan_terms(principal, rate, term_days)
        loan = Loan(
            subscriber_id=subscriber_id,
            interest_rate=rate,
            balance=terms["total_due"],
            status=self.initial_status,
            created_at=utcnow(),
            **terms
        )
        self.db.add(loan)
        subscriber.last_loan_application = utcnow()
        self.db.flush()

        logger.info(
            f"Loan created - Subscriber: [{subscriber_id}], Loan: [{loan.id}], Principal: [{loan.principal}], "
            f"Total Due: [{loan.total_due}], Status: [{loan.status}]")
        return loan

    def activate(self, loan_id: int) -> Loan:
        """Approve a pending loan so it can be repaid."""
        loan = self.db.query(Loan).filter(Loan.id == loan_id).with_for_update().first()
        if loan is None:
            raise LoanNotFound(f"Loan [{loan_id}] does not exist")
        if loan.status != LOAN_PENDING:
            raise InvalidLoanState(f"Loan [{loan_id}] is {loan.status}, not {LOAN_PENDING}")
        loan.status = LOAN_ACTIVE
        self.db.flush()
        logger.info(f"Loan activated - Loan: [{loan_id}]")
        return loan

    def history(self, subscriber_id: int) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.subscriber_id == subscriber_id)
            .order_by(Loan.id.desc())
            .all()
        )
