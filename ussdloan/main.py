from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
import traceback
import logging

from . import config
from .database import get_db
from .errors import InvalidLoanState, LoanNotFound
from .ledger import LoanLedger
from .menu import MenuStateMachine
from .money import money
from .registry import SubscriberRegistry
from .service import Service
from .sessions import SessionStore
from .validators import is_valid_msisdn

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)
router = APIRouter()

SERVICE_ERROR_MESSAGE = "An error occurred. Please try again later."


# Request Models
class USSDRequest(BaseModel):
    MSISDN: Optional[str] = None
    USERDATA: Optional[str] = ""


def service_error():
    return JSONResponse(status_code=500, content={"MSG": SERVICE_ERROR_MESSAGE, "MSGTYPE": False})


def loan_details(loan):
    return {
        "id": loan.id,
        "principal": money(loan.principal),
        "interestRate": str(loan.interest_rate),
        "interestAmount": money(loan.interest_amount),
        "totalDue": money(loan.total_due),
        "balance": money(loan.balance),
        "status": loan.status,
        "dueDate": loan.due_date.isoformat(),
        "payments": [
            {
                "id": payment.id,
                "amount": money(payment.amount),
                "balanceAfter": money(payment.balance_after),
                "createdAt": payment.created_at.isoformat() if payment.created_at else None,
            }
            for payment in loan.payments
        ],
    }


# USSD Endpoint
@router.post("/ussd")
def ussd(request: USSDRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    msisdn = (request.MSISDN or "").strip()
    text = request.USERDATA or ""
    logger.info(f"Received USSD request - MSISDN: [{msisdn}], USERDATA: [{text}]")

    if not msisdn:
        return JSONResponse(status_code=400, content={"MSG": "Missing MSISDN", "MSGTYPE": False})
    if not is_valid_msisdn(msisdn):
        return JSONResponse(status_code=400, content={"MSG": "Invalid MSISDN", "MSGTYPE": False})

    try:
        reply = MenuStateMachine(db).respond(msisdn, text)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while handling USSD for [{msisdn}]: {str(e)}\n"
                     f"Stack Trace:\n{traceback.format_exc()}")
        return service_error()
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error while handling USSD for [{msisdn}]: {str(e)}\n"
                     f"Stack Trace:\n{traceback.format_exc()}")
        return service_error()

    if reply.notification and config.SMS_URL:
        background_tasks.add_task(Service.send_message, msisdn, reply.notification)

    return {
        "USERID": f"USER-{msisdn}",
        "MSISDN": msisdn,
        "MSG": reply.message,
        "MSGTYPE": reply.proceed,
    }


@router.get("/subscribers/{msisdn}")
def get_subscriber(msisdn: str, db: Session = Depends(get_db)):
    subscriber = SubscriberRegistry(db).find(msisdn)
    if not subscriber:
        raise HTTPException(404, "Subscriber not found")

    return {
        "name": subscriber.name,
        "msisdn": subscriber.msisdn,
        "docType": subscriber.doc_type,
        "registeredAt": subscriber.registered_at.isoformat() if subscriber.registered_at else None,
        "lastLoanApplication": (subscriber.last_loan_application.isoformat()
                                if subscriber.last_loan_application else None),
        "loans": [loan_details(loan) for loan in LoanLedger(db).history(subscriber.id)],
    }


@router.post("/loans/{loan_id}/activate")
def activate_loan(loan_id: int, db: Session = Depends(get_db)):
    try:
        loan = LoanLedger(db).activate(loan_id)
        db.commit()
    except LoanNotFound:
        db.rollback()
        raise HTTPException(404, "Loan not found")
    except InvalidLoanState as e:
        db.rollback()
        raise HTTPException(409, str(e))
    return loan_details(loan)


@router.post("/sessions/purge")
def purge_sessions(db: Session = Depends(get_db)):
    purged = SessionStore(db).purge_expired()
    db.commit()
    logger.info(f"Purged [{purged}] expired USSD sessions")
    return {"purged": purged}
