from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

import ledger
import realtime
from cart import Cart
from config import Config
from database import commit, execute, get_row
from errors import CheckoutError, NotFoundError
from logger import Log
from models import Product, Sale, SaleItem, UserProfile
from utils import format_currency

SALE_LOAN_DESCRIPTION = "Sale loan"


def checkout(
    db: Session,
    cart: Cart,
    cash_received: float,
    customer_id: Optional[str] = None,
    customer_name: Optional[str] = None,
    signature: Optional[str] = None,
    description: Optional[str] = None,
    feed=None,
) -> Sale:
    """
    Turn the cart into a persisted sale.

    Side effects run in order: loan posting, stock decrement, sale insert,
    cart reset. Every step commits on its own, so a failure part way through
    leaves the earlier steps applied.
    """
    log_tag = "[sales.py][checkout]"

    if cart.is_empty():
        raise CheckoutError("Cart is empty")

    total = cart.total()
    if cash_received is None or cash_received < total:
        raise CheckoutError(
            f"Insufficient cash received ({format_currency(cash_received or 0)} of {format_currency(total)})"
        )
    change = round(cash_received - total, 2)

    customer = ledger.get_customer(db, customer_id) if customer_id else None
    lines = cart.lines

    # 1. one aggregated loan for every loan-flagged line
    loan_total = cart.loan_total()
    if customer is not None and loan_total > 0:
        ledger.add_loan(db, customer.id, loan_total, SALE_LOAN_DESCRIPTION, feed=feed)

    # 2. stock
    for line in lines:
        stock_tag = f"{log_tag}[stock][{line.product_id}]"
        execute(
            db,
            update(Product)
            .where(Product.id == line.product_id)
            .values(pieces=Product.pieces - line.quantity)
            .execution_options(synchronize_session=False),
            stock_tag,
            "Could not update product stock",
        )
        commit(db, stock_tag, "Could not update product stock")
        product = get_row(db, Product, line.product_id, stock_tag)
        if product is None:
            Log.warning(f"{log_tag} product {line.product_id} no longer exists, stock not changed")
            continue
        db.refresh(product)
        realtime.publish_row(feed, realtime.UPDATE, product)

    # 3. sale header and frozen line prices
    sale = Sale(
        total=total,
        cash_received=cash_received,
        change=change,
        customer_name=customer_name or (customer.name if customer is not None else None),
        signature=signature,
        description=description,
    )
    sale.items = [
        SaleItem(product_id=line.product_id, quantity=line.quantity, price=line.final_price)
        for line in lines
    ]
    db.add(sale)
    commit(db, f"{log_tag}[sale]", "Could not save sale")
    db.refresh(sale)
    realtime.publish_row(feed, realtime.INSERT, sale)
    for item in sale.items:
        realtime.publish_row(feed, realtime.INSERT, item)

    # 4. reset
    cart.clear()
    Log.info(f"{log_tag} sale {sale.id} total={total} cash={cash_received} change={change} loan={loan_total}")
    return sale


# ---------- History / receipts ----------

def list_sales(db: Session):
    return (
        db.query(Sale)
        .options(selectinload(Sale.items))
        .order_by(Sale.created_at.desc())
        .all()
    )


def search_sales(sales, term: Optional[str]):
    """Receipt search: matches the sale id, its date or its formatted total."""
    term = (term or "").strip().lower()
    if not term:
        return list(sales)
    out = []
    for sale in sales:
        day = sale.created_at.date() if sale.created_at else None
        haystack = [
            sale.id.lower(),
            format_currency(sale.total or 0).lower(),
        ]
        if day is not None:
            haystack += [day.isoformat(), day.strftime("%d/%m/%Y")]
        if any(term in text for text in haystack):
            out.append(sale)
    return out


def get_sale(db: Session, sale_id: str) -> Sale:
    sale = get_row(db, Sale, sale_id, f"[sales.py][get_sale][{sale_id}]")
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def update_sale_details(db: Session, sale_id: str, data: dict, feed=None) -> Sale:
    sale = get_sale(db, sale_id)
    for key in ("customer_name", "signature", "description"):
        if key in data:
            setattr(sale, key, data[key])
    commit(db, f"[sales.py][update_sale_details][{sale_id}]", "Could not save receipt details")
    db.refresh(sale)
    realtime.publish_row(feed, realtime.UPDATE, sale)
    return sale


def receipt(db: Session, sale_id: str, username: Optional[str] = None) -> dict:
    sale = get_sale(db, sale_id)
    profile = None
    if username:
        profile = db.query(UserProfile).filter(UserProfile.username == username).first()

    lines = []
    for item in sale.items:
        # a deleted product keeps its line on the receipt
        name = item.product.name if item.product is not None else "Unknown product"
        lines.append({
            "product_id": item.product_id,
            "product_name": name,
            "quantity": item.quantity,
            "price": item.price,
            "line_total": round(item.price * item.quantity, 2),
        })

    return {
        "sale": sale,
        "lines": lines,
        "shop_name": (profile.shop_name if profile and profile.shop_name else Config.SHOP_NAME),
        "username": profile.username if profile else None,
        "shop_logo": profile.shop_logo if profile else None,
    }
