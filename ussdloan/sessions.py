import logging
from datetime import timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import config
from .models import USSDSession, utcnow
from .validators import DocumentType

logger = logging.getLogger(__name__)


class Step(str, Enum):
    MAIN = "main"
    MENU_CHOICE = "menu_choice"
    REG_NAME = "reg_name"
    REG_DOB = "reg_dob"
    REG_DOCTYPE = "reg_doctype"
    REG_DOCNUM = "reg_docnum"
    LOAN_AMOUNT = "loan_amount"
    REPAY_AMOUNT = "repay_amount"


# Data bags, one per flow
class RegistrationData(BaseModel):
    name: Optional[str] = None
    dob: Optional[str] = None
    doc_type: Optional[DocumentType] = None


class LoanData(BaseModel):
    subscriber_id: int


class RepaymentData(BaseModel):
    loan_id: int


STEP_DATA = {
    Step.REG_NAME: RegistrationData,
    Step.REG_DOB: RegistrationData,
    Step.REG_DOCTYPE: RegistrationData,
    Step.REG_DOCNUM: RegistrationData,
    Step.LOAN_AMOUNT: LoanData,
    Step.REPAY_AMOUNT: RepaymentData,
}


def step_of(session: USSDSession) -> Optional[Step]:
    """Current step, or None when the stored value is not a known step."""
    try:
        return Step(session.step)
    except ValueError:
        return None


class SessionStore:
    """Keyed conversation state, one row per subscriber."""

    def __init__(self, db: Session, ttl_seconds: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(seconds=config.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds)

    def _expired(self, session: USSDSession) -> bool:
        return session.last_activity is not None and utcnow() - session.last_activity > self.ttl

    def load_or_create(self, msisdn: str) -> USSDSession:
        # Row lock serializes duplicate retries for the same subscriber
        session = (
            self.db.query(USSDSession)
            .filter(USSDSession.msisdn == msisdn)
            .with_for_update()
            .first()
        )
        if session and self._expired(session):
            logger.info(f"Session expired - MSISDN: [{msisdn}], Step: [{session.step}]")
            self.db.delete(session)
            self.db.flush()
            session = None

        if not session:
            session = USSDSession(msisdn=msisdn, step=Step.MAIN.value, data={}, last_activity=utcnow())
            self.db.add(session)
            self.db.flush()
        else:
            session.last_activity = utcnow()
        return session

    def advance(self, session: USSDSession, next_step: Step, data_patch: Optional[dict] = None,
                reset: bool = False) -> USSDSession:
        """Set the step and merge data_patch into the bag; reset replaces the bag instead."""
        base = {} if reset else dict(session.data or {})
        base.update(data_patch or {})
        # Assign a new dict so the JSON column is flagged dirty
        session.data = base
        session.step = Step(next_step).value
        session.last_activity = utcnow()
        self.db.flush()
        return session

    def end(self, session: USSDSession):
        self.db.delete(session)
        self.db.flush()

    def data_for(self, session: USSDSession):
        """Typed view of the data bag for the session's current step."""
        model = STEP_DATA.get(step_of(session))
        if model is None:
            return None
        return model.model_validate(session.data or {})

    def purge_expired(self) -> int:
        cutoff = utcnow() - self.ttl
        count = (
            self.db.query(USSDSession)
            .filter(USSDSession.last_activity < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return count
