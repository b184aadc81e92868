from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

import realtime
from database import commit, execute, get_row
from errors import NotFoundError, ValidationFailed
from logger import Log
from models import Customer, LoanTransaction
from utils import normalize_email

LOAN = "loan"
PAYMENT = "payment"

CUSTOMER_FIELDS = ("name", "phone", "email", "address", "loyalty_points", "loan_balance")


# ---------- Customers ----------

def list_customers(db: Session):
    return db.query(Customer).order_by(Customer.created_at.desc()).all()


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = get_row(db, Customer, customer_id, f"[ledger.py][get_customer][{customer_id}]")
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def add_customer(db: Session, data: dict, feed=None) -> Customer:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationFailed("Customer name is required")
    customer = Customer(
        name=name,
        phone=(data.get("phone") or "").strip(),
        email=normalize_email(data.get("email") or ""),
        address=(data.get("address") or "").strip(),
        loyalty_points=0,
        loan_balance=0.0,
    )
    db.add(customer)
    commit(db, "[ledger.py][add_customer]", "Could not add customer")
    db.refresh(customer)
    Log.info(f"[ledger.py][add_customer] {customer.id} {customer.name}")
    realtime.publish_row(feed, realtime.INSERT, customer)
    return customer


def update_customer(db: Session, customer_id: str, data: dict, feed=None) -> Customer:
    customer = get_customer(db, customer_id)
    for key in CUSTOMER_FIELDS:
        if data.get(key) is None:
            continue
        value = data[key]
        if key == "email":
            value = normalize_email(value)
        elif key == "name":
            value = value.strip()
            if not value:
                raise ValidationFailed("Customer name is required")
        elif key in ("loyalty_points", "loan_balance") and value < 0:
            raise ValidationFailed(f"{key} cannot be negative")
        setattr(customer, key, value)
    commit(db, f"[ledger.py][update_customer][{customer_id}]", "Could not update customer")
    db.refresh(customer)
    realtime.publish_row(feed, realtime.UPDATE, customer)
    return customer


def delete_customer(db: Session, customer_id: str, feed=None) -> None:
    # loan history rows are kept; they just lose their customer link
    customer = get_customer(db, customer_id)
    old = realtime.row_to_dict(customer)
    db.delete(customer)
    commit(db, f"[ledger.py][delete_customer][{customer_id}]", "Could not delete customer")
    Log.info(f"[ledger.py][delete_customer] {customer_id}")
    realtime.publish_row(feed, realtime.DELETE, customer, old=old)


# ---------- Loans ----------

def _shift_balance(db: Session, customer_id: str, new_value, log_tag: str) -> Customer:
    # single UPDATE ... SET loan_balance = <expr>
    get_customer(db, customer_id)
    execute(
        db,
        update(Customer)
        .where(Customer.id == customer_id)
        .values(loan_balance=new_value)
        .execution_options(synchronize_session=False),
        log_tag,
        "Could not update loan balance",
    )
    commit(db, log_tag, "Could not update loan balance")
    customer = get_customer(db, customer_id)
    db.refresh(customer)
    return customer


def _append_transaction(db: Session, customer_id: str, type_: str, amount: float,
                        description: Optional[str], log_tag: str) -> LoanTransaction:
    txn = LoanTransaction(customer_id=customer_id, type=type_, amount=amount, description=description)
    db.add(txn)
    commit(db, log_tag, "Could not record loan transaction")
    db.refresh(txn)
    return txn


def add_loan(db: Session, customer_id: str, amount: float, description: Optional[str] = None, feed=None):
    log_tag = f"[ledger.py][add_loan][{customer_id}]"
    customer = _shift_balance(db, customer_id, Customer.loan_balance + amount, log_tag)
    realtime.publish_row(feed, realtime.UPDATE, customer)
    txn = _append_transaction(db, customer_id, LOAN, amount, description, log_tag)
    realtime.publish_row(feed, realtime.INSERT, txn)
    Log.info(f"{log_tag} +{amount} -> balance {customer.loan_balance}")
    return customer, txn


def pay_loan(db: Session, customer_id: str, amount: float, description: Optional[str] = None, feed=None):
    log_tag = f"[ledger.py][pay_loan][{customer_id}]"
    # balance never goes below zero; the payment row still records the amount handed over
    clamped = case((Customer.loan_balance > amount, Customer.loan_balance - amount), else_=0.0)
    customer = _shift_balance(db, customer_id, clamped, log_tag)
    realtime.publish_row(feed, realtime.UPDATE, customer)
    txn = _append_transaction(db, customer_id, PAYMENT, amount, description, log_tag)
    realtime.publish_row(feed, realtime.INSERT, txn)
    Log.info(f"{log_tag} -{amount} -> balance {customer.loan_balance}")
    return customer, txn


def add_loyalty_points(db: Session, customer_id: str, points: int, feed=None) -> Customer:
    log_tag = f"[ledger.py][add_loyalty_points][{customer_id}]"
    get_customer(db, customer_id)
    execute(
        db,
        update(Customer)
        .where(Customer.id == customer_id)
        .values(loyalty_points=Customer.loyalty_points + points)
        .execution_options(synchronize_session=False),
        log_tag,
        "Could not update loyalty points",
    )
    commit(db, log_tag, "Could not update loyalty points")
    customer = get_customer(db, customer_id)
    db.refresh(customer)
    realtime.publish_row(feed, realtime.UPDATE, customer)
    return customer


def loan_history(db: Session, customer_id: str):
    get_customer(db, customer_id)
    return (
        db.query(LoanTransaction)
        .filter(LoanTransaction.customer_id == customer_id)
        .order_by(LoanTransaction.created_at.desc())
        .all()
    )
