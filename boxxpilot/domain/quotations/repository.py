"""Quotation repository - Database operations for quotations"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ...config import FIRST_SEQUENCE_NUMBER
from ...models import Customer, Quotation, QuotationStatus

logger = logging.getLogger(__name__)

NUMBERING_ATTEMPTS = 5


class QuotationRepository:
    """Repository for quotation database operations"""

    @staticmethod
    def get_quotation(
        db: Session, quotation_id: int, company_id: Optional[int] = None
    ) -> Optional[Quotation]:
        query = (
            db.query(Quotation)
            .options(joinedload(Quotation.customer))
            .filter(Quotation.id == quotation_id)
        )
        if company_id is not None:
            query = query.filter(Quotation.company_id == company_id)
        return query.first()

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[Quotation]:
        return (
            db.query(Quotation)
            .options(joinedload(Quotation.customer))
            .filter(Quotation.public_token == token)
            .first()
        )

    @staticmethod
    def list_quotations(db: Session, company_id: int, status: Optional[str] = None) -> list[Quotation]:
        query = (
            db.query(Quotation)
            .options(joinedload(Quotation.customer))
            .filter(Quotation.company_id == company_id)
        )
        if status:
            query = query.filter(Quotation.status == status)
        return query.order_by(Quotation.updated_at.desc(), Quotation.id.desc()).all()

    @staticmethod
    def get_customer(db: Session, customer_id: int, company_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.company_id == company_id)
            .first()
        )

    @staticmethod
    def next_quote_number(db: Session, company_id: int) -> int:
        last = (
            db.query(func.max(Quotation.quote_number))
            .filter(Quotation.company_id == company_id)
            .scalar()
        )
        return last + 1 if last else FIRST_SEQUENCE_NUMBER

    @staticmethod
    def create_quotation(db: Session, company_id: int, **quotation_data) -> Quotation:
        """Create a quotation with the next free quote number for the company"""
        for attempt in range(NUMBERING_ATTEMPTS):
            quotation = Quotation(
                company_id=company_id,
                quote_number=QuotationRepository.next_quote_number(db, company_id),
                **quotation_data,
            )
            db.add(quotation)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    f"⚠️ Quote number collision for company {company_id} (attempt {attempt + 1})"
                )
                continue
            db.refresh(quotation)
            return quotation

        raise RuntimeError(f"Could not allocate a quote number for company {company_id}")

    @staticmethod
    def update_quotation(db: Session, quotation: Quotation, **updates) -> Quotation:
        """Apply field updates; None values are written (they clear the field)"""
        for key, value in updates.items():
            if hasattr(quotation, key):
                setattr(quotation, key, value)

        db.commit()
        db.refresh(quotation)
        return quotation

    @staticmethod
    def delete_quotation(db: Session, quotation: Quotation) -> None:
        db.delete(quotation)
        db.commit()

    @staticmethod
    def transition(
        db: Session, quotation_id: int, expected_status: str, new_status: str, **values
    ) -> bool:
        """Compare-and-swap on status; False when another writer got there first"""
        result = db.execute(
            update(Quotation)
            .where(Quotation.id == quotation_id, Quotation.status == expected_status)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def find_expired_candidates(db: Session, now: datetime) -> list[int]:
        """Sent quotations whose validity window has run out"""
        rows = (
            db.query(Quotation.id)
            .filter(
                Quotation.status == QuotationStatus.SENT,
                Quotation.expires_at.isnot(None),
                Quotation.expires_at <= now,
            )
            .order_by(Quotation.expires_at.asc())
            .all()
        )
        return [row[0] for row in rows]
