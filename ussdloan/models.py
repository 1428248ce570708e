from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, JSON, ForeignKey, func
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .database import Base

LOAN_PENDING = "pending"
LOAN_ACTIVE = "active"
LOAN_CLOSED = "closed"
OPEN_LOAN_STATUSES = (LOAN_PENDING, LOAN_ACTIVE)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Subscriber(Base):
    __tablename__ = "subscribers"
    __table_args__ = {'mysql_engine': 'InnoDB', 'mysql_charset': 'utf8mb4', 'comment': 'Registered USSD subscribers'}

    id = Column(Integer, primary_key=True, index=True)
    msisdn = Column(String(20), unique=True, index=True, nullable=False,
                    comment="Mobile subscriber number")
    name = Column(String(100), nullable=False, comment="Full name")
    dob = Column(String(8), nullable=False, comment="Date of birth as DDMMYYYY")
    doc_type = Column(String(20), nullable=False, comment="Identity document type")
    doc_number = Column(String(30), unique=True, index=True, nullable=False,
                        comment="Identity document number")
    registered_at = Column(DateTime, server_default=func.now(),
                           comment="Registration timestamp")
    last_loan_application = Column(DateTime, nullable=True,
                                   comment="Last loan application timestamp")

    loans = relationship("Loan", back_populates="subscriber", order_by="Loan.id.desc()")


class USSDSession(Base):
    __tablename__ = "ussd_sessions"
    __table_args__ = {'mysql_engine': 'InnoDB', 'mysql_charset': 'utf8mb4', 'comment': 'Tracks active USSD conversations'}

    msisdn = Column(String(20), primary_key=True, index=True,
                    comment="Mobile subscriber number")
    step = Column(String(20), nullable=False, comment="Current step in USSD flow")
    data = Column(JSON, nullable=False, default=dict,
                  comment="Values collected across steps")
    created_at = Column(DateTime, server_default=func.now(),
                        comment="Session creation timestamp")
    last_activity = Column(DateTime, default=utcnow, onupdate=utcnow,
                           comment="Last interaction time (UTC)")


class Loan(Base):
    __tablename__ = "loans"
    __table_args__ = {'mysql_engine': 'InnoDB', 'mysql_charset': 'utf8mb4', 'comment': 'Loans issued to subscribers'}

    id = Column(Integer, primary_key=True, index=True)
    subscriber_id = Column(Integer, ForeignKey("subscribers.id"), index=True, nullable=False)
    principal = Column(Numeric(12, 2), nullable=False)
    interest_rate = Column(Numeric(6, 4), nullable=False, comment="Fraction, e.g. 0.10")
    interest_amount = Column(Numeric(12, 2), nullable=False)
    total_due = Column(Numeric(12, 2), nullable=False, comment="principal + interest_amount")
    balance = Column(Numeric(12, 2), nullable=False, comment="Outstanding amount")
    status = Column(String(10), nullable=False, index=True, default=LOAN_ACTIVE)
    due_date = Column(Date, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    subscriber = relationship("Subscriber", back_populates="loans")
    payments = relationship("Payment", back_populates="loan", order_by="Payment.id")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = {'mysql_engine': 'InnoDB', 'mysql_charset': 'utf8mb4', 'comment': 'Append-only repayment entries'}

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), index=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    loan = relationship("Loan", back_populates="payments")
