from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db
from schemas.payments import PaymentUpsert, PaymentUpdate
from services import payments as ledger

router = APIRouter(prefix="/api/v1/payments", tags=["Payment Ledger"])


@router.post("", status_code=201)
def upsert_payment(data: PaymentUpsert, db: Session = Depends(get_db)):
    """
    Mark / unmark one slot.
    month 1-12 with payment_date -> monthly dues
    renewal_date (or month 0)    -> annual renewal
    A missing date marks the slot unpaid.
    """
    record = ledger.upsert_payment(data, db)
    return {"payment": ledger.payment_to_dict(record)}


@router.put("")
def update_payment(data: PaymentUpdate, db: Session = Depends(get_db)):
    record = ledger.update_payment_date(data.id, data.payment_date, db)
    return {"payment": ledger.payment_to_dict(record)}


@router.delete("/{payment_id}")
def delete_payment(payment_id: int, db: Session = Depends(get_db)):
    """Permanent delete; the UI asks for confirmation first"""
    ledger.delete_payment(payment_id, db)
    return {"message": "Payment deleted successfully"}
