import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from . import config
from .errors import ActiveLoanExists, DuplicateIdentity, NoActiveLoan, UnknownSubscriber
from .ledger import LoanLedger
from .models import Loan, Subscriber, USSDSession, LOAN_ACTIVE, LOAN_PENDING
from .money import fits_ledger, money, parse_amount, percent, round_money
from .registry import SubscriberRegistry
from .repayments import RepaymentProcessor
from .sessions import SessionStore, Step, step_of
from .validators import (DOCUMENT_CHOICES, DocumentType, document_hint, is_valid_dob, is_valid_document,
                         is_valid_name)

logger = logging.getLogger(__name__)

MENU_OPTIONS = "1. Register\n2. Apply for Loan\n3. Repay Loan\n4. Check Balance\n5. About\n6. Exit"
DOCUMENT_MENU = "Select ID type:\n1. National ID\n2. Passport\n3. Driver's License"
LOAN_PROCESSING_MESSAGE = "Your application is being processed. You'll receive an SMS confirmation shortly."
LOAN_ACTIVE_MESSAGE = "Your loan is now active."


def welcome_menu() -> str:
    return f"Welcome to {config.SERVICE_NAME}\n{MENU_OPTIONS}"


# Session transitions
@dataclass
class Advance:
    step: Step
    data: dict = field(default_factory=dict)
    reset: bool = False


@dataclass
class Stay:
    """Re-prompt: keep the current step and data."""


@dataclass
class End:
    """Terminal outcome: the session is deleted."""


@dataclass
class Reply:
    message: str
    proceed: bool
    transition: Union[Advance, Stay, End]
    notification: Optional[str] = None  # SMS text to send once the request is committed


def prompt(message: str, step: Step, data: Optional[dict] = None, reset: bool = False) -> Reply:
    return Reply(message, True, Advance(step, data or {}, reset))


def retry(message: str) -> Reply:
    return Reply(message, True, Stay())


def finish(message: str, notification: Optional[str] = None) -> Reply:
    return Reply(message, False, End(), notification)


class MenuStateMachine:
    """
    Drives one USSD conversation step per request.

    Each handler receives the session, the raw input, the subscriber (or None)
    and the subscriber's open loan (or None) and returns a Reply describing the
    message, whether the conversation continues and how the session changes.
    """

    def __init__(self, db: Session):
        self.sessions = SessionStore(db)
        self.registry = SubscriberRegistry(db)
        self.ledger = LoanLedger(db)
        self.repayments = RepaymentProcessor(db)
        self.handlers = {
            Step.MAIN: self.main,
            Step.MENU_CHOICE: self.menu_choice,
            Step.REG_NAME: self.reg_name,
            Step.REG_DOB: self.reg_dob,
            Step.REG_DOCTYPE: self.reg_doctype,
            Step.REG_DOCNUM: self.reg_docnum,
            Step.LOAN_AMOUNT: self.loan_amount,
            Step.REPAY_AMOUNT: self.repay_amount,
        }

    def respond(self, msisdn: str, text: str) -> Reply:
        session = self.sessions.load_or_create(msisdn)
        subscriber = self.registry.find(msisdn)
        loan = self.ledger.active_loan_for(subscriber.id) if subscriber else None

        reply = self.step(session, text or "", subscriber, loan)

        if isinstance(reply.transition, Advance):
            self.sessions.advance(session, reply.transition.step, reply.transition.data, reply.transition.reset)
        elif isinstance(reply.transition, End):
            self.sessions.end(session)
        return reply

    def step(self, session: USSDSession, text: str, subscriber: Optional[Subscriber],
             loan: Optional[Loan]) -> Reply:
        handler = self.handlers.get(step_of(session))
        if handler is None:
            logger.warning(f"Unknown step [{session.step}] for MSISDN [{session.msisdn}], resetting to menu")
            return self.reset()
        try:
            return handler(session, text, subscriber, loan)
        except ValidationError:
            logger.warning(f"Corrupt session data at step [{session.step}] for MSISDN [{session.msisdn}], "
                           f"resetting to menu")
            return self.reset()

    def reset(self) -> Reply:
        return prompt(welcome_menu(), Step.MENU_CHOICE, reset=True)

    # Main menu
    def main(self, session, text, subscriber, loan):
        return prompt(welcome_menu(), Step.MENU_CHOICE)

    def menu_choice(self, session, text, subscriber, loan):
        choice = text.strip()

        if choice == "1":
            return prompt("Enter your full name:", Step.REG_NAME, reset=True)

        if choice in ("2", "3", "4") and not subscriber:
            return finish("You must register first!")

        if choice == "2":
            if loan:
                return finish("You already have an active loan. Repay before applying again.")
            return prompt(f"Enter loan amount ({config.CURRENCY}):", Step.LOAN_AMOUNT,
                          {"subscriber_id": subscriber.id}, reset=True)

        if choice == "3":
            if loan and loan.status == LOAN_PENDING:
                return finish("Your loan application is still being processed.")
            if not loan or loan.status != LOAN_ACTIVE:
                return finish("No active loan found.")
            return prompt(
                f"Outstanding: {config.CURRENCY} {money(loan.balance)} "
                f"(Total Due: {config.CURRENCY} {money(loan.total_due)})\n"
                f"Enter amount to repay:",
                Step.REPAY_AMOUNT, {"loan_id": loan.id}, reset=True)

        if choice == "4":
            if not loan:
                return finish(f"No active loan. Balance: {config.CURRENCY} 0.00")
            return finish(self.loan_summary(loan))

        if choice == "5":
            return finish(f"{config.SERVICE_NAME}: simple microloans with transparent interest.")

        if choice == "6":
            return finish(f"Thank you for using {config.SERVICE_NAME}. Goodbye!")

        return retry(f"Invalid choice. Try again.\n{MENU_OPTIONS}")

    @staticmethod
    def loan_summary(loan: Loan) -> str:
        return (
            f"Loan Summary\n"
            f"Principal: {config.CURRENCY} {money(loan.principal)}\n"
            f"Interest ({percent(loan.interest_rate, 2)}%): {config.CURRENCY} {money(loan.interest_amount)}\n"
            f"Total Due: {config.CURRENCY} {money(loan.total_due)}\n"
            f"Outstanding: {config.CURRENCY} {money(loan.balance)}\n"
            f"Due: {loan.due_date.isoformat()}"
        )

    # Registration
    def reg_name(self, session, text, subscriber, loan):
        if not is_valid_name(text):
            return retry("Please enter your full name (at least first and last name, letters only):")
        return prompt(
            "Enter your date of birth (DDMMYYYY, e.g., 15091990 for 15th September 1990):",
            Step.REG_DOB, {"name": " ".join(text.split())})

    def reg_dob(self, session, text, subscriber, loan):
        if not is_valid_dob(text):
            return retry("Invalid date format. Please enter date of birth as DDMMYYYY "
                         "(e.g., 15091990 for 15th September 1990):")
        return prompt(DOCUMENT_MENU, Step.REG_DOCTYPE, {"dob": text.strip()})

    def reg_doctype(self, session, text, subscriber, loan):
        doc_type = DOCUMENT_CHOICES.get(text.strip())
        if doc_type is None:
            return retry(f"Invalid selection. {DOCUMENT_MENU}")
        return prompt(f"Enter your {doc_type.label} number:", Step.REG_DOCNUM, {"doc_type": doc_type.value})

    def reg_docnum(self, session, text, subscriber, loan):
        data = self.sessions.data_for(session)
        if not (data.name and data.dob and data.doc_type):
            logger.warning(f"Incomplete registration data for MSISDN [{session.msisdn}], resetting to menu")
            return self.reset()

        doc_type = DocumentType(data.doc_type)
        if not is_valid_document(doc_type, text):
            return retry(f"{document_hint(doc_type)}\n\nPlease enter your {doc_type.label} number:")

        try:
            self.registry.register(session.msisdn, data.name, data.dob, doc_type, text)
        except DuplicateIdentity:
            return finish("This phone number or ID number is already registered. "
                          "Please contact support if this is an error.")
        return finish(f"Registration successful!\nThank you, {data.name}.\n\nYou can now apply for a loan.")

    # Loan application
    def loan_amount(self, session, text, subscriber, loan):
        data = self.sessions.data_for(session)
        # Bounds apply to the amount as typed; rounding happens in the ledger
        principal = parse_amount(text, strip_non_numeric=True)

        if principal is None or principal <= 0:
            return retry("Invalid amount. Please enter a valid number:")
        if principal < config.MIN_LOAN_AMOUNT:
            return retry(f"Minimum loan amount is {config.CURRENCY} {config.MIN_LOAN_AMOUNT}. "
                         f"Please enter a higher amount:")
        if principal > config.MAX_LOAN_AMOUNT:
            return retry(f"Maximum loan amount is {config.CURRENCY} {config.MAX_LOAN_AMOUNT}. "
                         f"Please enter a lower amount:")

        try:
            new_loan = self.ledger.apply(data.subscriber_id, principal)
        except ActiveLoanExists:
            return finish("You already have an active loan. Repay before applying again.")
        except UnknownSubscriber:
            return finish("You must register first!")

        due_date = new_loan.due_date.strftime("%d/%m/%Y")
        status_line = LOAN_PROCESSING_MESSAGE if new_loan.status == LOAN_PENDING else LOAN_ACTIVE_MESSAGE
        message = (
            f"Loan application received!\n\n"
            f"Amount: {config.CURRENCY} {money(new_loan.principal)}\n"
            f"Interest ({percent(new_loan.interest_rate)}%): {config.CURRENCY} {money(new_loan.interest_amount)}\n"
            f"Total to repay: {config.CURRENCY} {money(new_loan.total_due)}\n"
            f"Due date: {due_date}\n\n"
            f"{status_line}"
        )
        notification = config.SMS_TEMPLATE.format(
            customer=subscriber.name if subscriber else "Customer",
            currency=config.CURRENCY,
            amount=money(new_loan.principal),
            total=money(new_loan.total_due),
            due_date=due_date,
        )
        return finish(message, notification)

    # Repayment
    def repay_amount(self, session, text, subscriber, loan):
        data = self.sessions.data_for(session)
        amount = parse_amount(text)
        if amount is None or amount <= 0:
            return retry("Invalid amount. Enter amount to repay:")
        if not fits_ledger(amount):
            return retry("Amount too large. Enter amount to repay:")
        if round_money(amount) <= 0:
            return retry("Invalid amount. Enter amount to repay:")

        try:
            result = self.repayments.repay(data.loan_id, amount)
        except NoActiveLoan:
            return finish("No active loan found.")

        lines = [f"Payment received: {config.CURRENCY} {money(result.payment)}"]
        if result.closed:
            if result.overpayment_ignored > 0:
                lines.append(f"Overpayment ignored: {config.CURRENCY} {money(result.overpayment_ignored)}")
            lines.append("Loan fully repaid. Thank you!")
        else:
            lines.append(f"Outstanding balance: {config.CURRENCY} {money(result.new_balance)}")
        return finish("\n".join(lines))
