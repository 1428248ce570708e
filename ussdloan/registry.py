import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import DuplicateIdentity
from .models import Subscriber, utcnow
from .validators import DocumentType, normalize_document_number

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    def __init__(self, db: Session):
        self.db = db

    def find(self, msisdn: str) -> Optional[Subscriber]:
        return self.db.query(Subscriber).filter(Subscriber.msisdn == msisdn).first()

    def register(self, msisdn: str, name: str, dob: str, doc_type: DocumentType, doc_number: str) -> Subscriber:
        """
        Persist a new subscriber. Input is validated by the caller; this only
        enforces that phone number and document number are unique.
        """
        doc_number = normalize_document_number(doc_number)
        existing = self.db.query(Subscriber).filter(
            or_(Subscriber.msisdn == msisdn, Subscriber.doc_number == doc_number)
        ).first()
        if existing:
            raise DuplicateIdentity(f"{msisdn} / {doc_number} already registered")

        subscriber = Subscriber(
            msisdn=msisdn,
            name=" ".join(name.split()),
            dob=dob.strip(),
            doc_type=DocumentType(doc_type).value,
            doc_number=doc_number,
            registered_at=utcnow(),
        )
        try:
            # A concurrent registration can still hit the unique constraints
            with self.db.begin_nested():
                self.db.add(subscriber)
        except IntegrityError as e:
            raise DuplicateIdentity(f"{msisdn} / {doc_number} already registered") from e

        logger.info(f"Subscriber registered - MSISDN: [{msisdn}], Document: [{subscriber.doc_type}]")
        return subscriber
