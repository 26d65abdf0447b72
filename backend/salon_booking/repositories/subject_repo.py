"""Customer and subject repository.

Also owns the sentinel "internal" customer and subject that private
(staff-only) appointments are attached to, so every appointment row has the
same shape regardless of kind.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError

from salon_booking.core import config
from salon_booking.db.base import Customer as DbCustomer
from salon_booking.db.base import Subject as DbSubject
from salon_booking.db.base import SubjectType as DbSubjectType
from salon_booking.domain.entities import Customer as DomainCustomer
from salon_booking.domain.entities import Subject as DomainSubject
from salon_booking.domain.entities import SubjectType as DomainSubjectType
from salon_booking.domain.interfaces import ISubjectRepository

logger = logging.getLogger(__name__)

INTERNAL_SUBJECT_NAME = "Internal"


class SubjectRepository(ISubjectRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_subject(self, subject_id: int) -> Optional[DomainSubject]:
        db_subject = self.db.query(DbSubject).filter_by(id=subject_id).first()
        return self._subject_to_domain(db_subject) if db_subject else None

    def get_subjects(self, subject_ids: Sequence[int]) -> List[DomainSubject]:
        if not subject_ids:
            return []
        rows = (
            self.db.query(DbSubject)
            .filter(DbSubject.id.in_(list(subject_ids)))
            .order_by(DbSubject.id)
            .all()
        )
        return [self._subject_to_domain(r) for r in rows]

    def get_subject_type(self, subject_type_id: int) -> Optional[DomainSubjectType]:
        row = self.db.query(DbSubjectType).filter_by(id=subject_type_id).first()
        if not row:
            return None
        return DomainSubjectType(id=row.id, name=row.name, is_active=row.is_active)

    def get_customer(self, customer_id: int) -> Optional[DomainCustomer]:
        db_customer = self.db.query(DbCustomer).filter_by(id=customer_id).first()
        return self._customer_to_domain(db_customer) if db_customer else None

    def list_customers_by_types(
        self, customer_type_ids: Sequence[int]
    ) -> List[DomainCustomer]:
        if not customer_type_ids:
            return []
        rows = (
            self.db.query(DbCustomer)
            .filter(DbCustomer.customer_type_id.in_(list(customer_type_ids)))
            .order_by(DbCustomer.id)
            .all()
        )
        return [self._customer_to_domain(r) for r in rows]

    def create_customer(self, customer: DomainCustomer) -> DomainCustomer:
        db_customer = DbCustomer(
            full_name=customer.full_name.strip(),
            phone=customer.phone,
            email=customer.email,
            customer_type_id=customer.customer_type_id,
        )
        self.db.add(db_customer)
        self.db.commit()
        self.db.refresh(db_customer)
        return self._customer_to_domain(db_customer)

    def create_subject(self, subject: DomainSubject) -> DomainSubject:
        db_subject = DbSubject(
            name=subject.name,
            customer_id=subject.customer_id,
            subject_type_id=subject.subject_type_id,
            size_class=subject.size_class,
        )
        self.db.add(db_subject)
        self.db.commit()
        self.db.refresh(db_subject)
        return self._subject_to_domain(db_subject)

    def create_subject_type(self, subject_type: DomainSubjectType) -> DomainSubjectType:
        row = DbSubjectType(name=subject_type.name, is_active=subject_type.is_active)
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return DomainSubjectType(id=row.id, name=row.name, is_active=row.is_active)

    def get_or_create_internal_party(self) -> Tuple[DomainCustomer, DomainSubject]:
        """Find or provision the sentinel customer and subject.

        The customer is keyed by the unique internal phone number. When two
        requests race to create it, the loser re-reads the winner's row.
        """
        phone = config.INTERNAL_CUSTOMER_PHONE
        db_customer = self.db.query(DbCustomer).filter_by(phone=phone).first()
        if db_customer is None:
            db_customer = DbCustomer(full_name=config.INTERNAL_CUSTOMER_NAME, phone=phone)
            self.db.add(db_customer)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                db_customer = self.db.query(DbCustomer).filter_by(phone=phone).one()
            else:
                logger.info(
                    "Provisioned internal customer",
                    extra={"context": {"customer_id": db_customer.id}},
                )

        db_subject = (
            self.db.query(DbSubject)
            .filter_by(customer_id=db_customer.id)
            .order_by(DbSubject.id)
            .first()
        )
        if db_subject is None:
            db_subject = DbSubject(name=INTERNAL_SUBJECT_NAME, customer_id=db_customer.id)
            self.db.add(db_subject)
            self.db.commit()
            self.db.refresh(db_subject)

        return self._customer_to_domain(db_customer), self._subject_to_domain(db_subject)

    def _customer_to_domain(self, db_customer: DbCustomer) -> DomainCustomer:
        return DomainCustomer(
            id=db_customer.id,
            full_name=db_customer.full_name,
            phone=db_customer.phone,
            email=db_customer.email,
            customer_type_id=db_customer.customer_type_id,
        )

    def _subject_to_domain(self, db_subject: DbSubject) -> DomainSubject:
        return DomainSubject(
            id=db_subject.id,
            name=db_subject.name,
            customer_id=db_subject.customer_id,
            subject_type_id=db_subject.subject_type_id,
            size_class=db_subject.size_class,
        )
