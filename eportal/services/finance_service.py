"""Recording fee payments."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator
from uuid import UUID

from eportal.errors import ServiceError


@contextmanager
def _transaction(db: Any, queries: Any) -> Iterator[Any]:
    """Yield transaction-bound queries; commit on success, roll back on error."""
    qtx = queries.with_tx(db)
    try:
        yield qtx
    except BaseException:
        db.rollback()
        raise
    db.commit()


@dataclass
class ProcessPaymentParams:
    school_id: UUID
    student_fee_id: UUID
    amount: str
    recorded_by_user_id: UUID
    payment_method: str = ""
    transaction_id: str = ""
    notes: str = ""
    receipt_number: str = ""


class FinanceService:
    """Stores payments and keeps the fee balance in step, atomically."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def process_payment(self, params: ProcessPaymentParams) -> Any:
        with _transaction(self.db, self.queries) as q:
            try:
                payment = q.create_payment(
                    school_id=params.school_id,
                    student_fee_id=params.student_fee_id,
                    amount=params.amount,
                    payment_method=params.payment_method or None,
                    transaction_id=params.transaction_id or None,
                    recorded_by_user_id=params.recorded_by_user_id,
                    notes=params.notes or None,
                    receipt_number=params.receipt_number or None,
                )
            except Exception as exc:
                raise ServiceError(f"could not create payment: {exc}") from exc

            try:
                q.update_student_fee_amount_paid(
                    student_fee_id=params.student_fee_id, amount=params.amount)
            except Exception as exc:
                raise ServiceError(f"could not update fee balance: {exc}") from exc
        return payment