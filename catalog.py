from sqlalchemy import func, or_
from sqlalchemy.orm import Session

import realtime
from database import commit, get_row
from errors import NotFoundError, ValidationFailed
from logger import Log
from models import Product

EDITABLE_FIELDS = ("name", "brand", "category", "buying_price", "selling_price", "pieces", "low_stock_alert")


def list_products(db: Session):
    return db.query(Product).order_by(Product.created_at.desc()).all()


def search_products(db: Session, term: str):
    term = (term or "").strip().lower()
    if not term:
        return list_products(db)
    pattern = f"%{term}%"
    return (
        db.query(Product)
        .filter(or_(func.lower(Product.name).like(pattern), func.lower(Product.brand).like(pattern)))
        .order_by(Product.created_at.desc())
        .all()
    )


def get_product(db: Session, product_id: str) -> Product:
    product = get_row(db, Product, product_id, f"[catalog.py][get_product][{product_id}]")
    if not product:
        raise NotFoundError("Product not found")
    return product


def _validate(data: dict):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationFailed("Product name is required")
    for key in ("buying_price", "selling_price", "pieces", "low_stock_alert"):
        if (data.get(key) or 0) < 0:
            raise ValidationFailed(f"{key} cannot be negative")
    data["name"] = name


def add_product(db: Session, data: dict, feed=None) -> Product:
    _validate(data)
    product = Product(**{k: data[k] for k in EDITABLE_FIELDS if k in data})
    db.add(product)
    commit(db, "[catalog.py][add_product]", "Could not add product")
    db.refresh(product)
    Log.info(f"[catalog.py][add_product] {product.id} {product.name}")
    realtime.publish_row(feed, realtime.INSERT, product)
    return product


def update_product(db: Session, product_id: str, data: dict, feed=None) -> Product:
    product = get_product(db, product_id)
    _validate(data)
    for key in EDITABLE_FIELDS:
        if key in data:
            setattr(product, key, data[key])
    commit(db, f"[catalog.py][update_product][{product_id}]", "Could not update product")
    db.refresh(product)
    realtime.publish_row(feed, realtime.UPDATE, product)
    return product


def delete_product(db: Session, product_id: str, feed=None) -> None:
    # no check for sales or losses that still reference the product
    product = get_product(db, product_id)
    old = realtime.row_to_dict(product)
    db.delete(product)
    commit(db, f"[catalog.py][delete_product][{product_id}]", "Could not delete product")
    Log.info(f"[catalog.py][delete_product] {product_id}")
    realtime.publish_row(feed, realtime.DELETE, product, old=old)


def update_product_stock(db: Session, product_id: str, new_stock: int, feed=None) -> Product:
    if new_stock is None or new_stock < 0:
        raise ValidationFailed("Stock cannot be negative")
    product = get_product(db, product_id)
    product.pieces = new_stock
    commit(db, f"[catalog.py][update_product_stock][{product_id}]", "Could not update stock")
    db.refresh(product)
    realtime.publish_row(feed, realtime.UPDATE, product)
    return product
