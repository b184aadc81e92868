from sqlalchemy.orm import Session, selectinload

import catalog
import realtime
from database import commit, get_row
from errors import NotFoundError
from logger import Log
from models import Loss

LOSS_FIELDS = ("product_id", "quantity", "reason", "description", "loss_value")


def list_losses(db: Session):
    return (
        db.query(Loss)
        .options(selectinload(Loss.product))
        .order_by(Loss.created_at.desc())
        .all()
    )


def get_loss(db: Session, loss_id: str) -> Loss:
    loss = get_row(db, Loss, loss_id, f"[losses.py][get_loss][{loss_id}]")
    if not loss:
        raise NotFoundError("Loss not found")
    return loss


def add_loss(db: Session, data: dict, feed=None) -> Loss:
    # stock is left alone; a loss is a record, not an adjustment
    catalog.get_product(db, data["product_id"])
    loss = Loss(**{k: data[k] for k in LOSS_FIELDS if k in data})
    db.add(loss)
    commit(db, "[losses.py][add_loss]", "Could not record loss")
    db.refresh(loss)
    Log.info(f"[losses.py][add_loss] {loss.id} product={loss.product_id} value={loss.loss_value}")
    realtime.publish_row(feed, realtime.INSERT, loss)
    return loss


def update_loss(db: Session, loss_id: str, data: dict, feed=None) -> Loss:
    loss = get_loss(db, loss_id)
    if data.get("product_id") and data["product_id"] != loss.product_id:
        catalog.get_product(db, data["product_id"])
    for key in LOSS_FIELDS:
        if data.get(key) is not None:
            setattr(loss, key, data[key])
    commit(db, f"[losses.py][update_loss][{loss_id}]", "Could not update loss")
    db.refresh(loss)
    realtime.publish_row(feed, realtime.UPDATE, loss)
    return loss


def delete_loss(db: Session, loss_id: str, feed=None) -> None:
    loss = get_loss(db, loss_id)
    old = realtime.row_to_dict(loss)
    db.delete(loss)
    commit(db, f"[losses.py][delete_loss][{loss_id}]", "Could not delete loss")
    realtime.publish_row(feed, realtime.DELETE, loss, old=old)


def total_loss_value(losses) -> float:
    return round(sum(loss.loss_value or 0 for loss in losses), 2)


def losses_by_reason(losses, reason: str):
    return [loss for loss in losses if loss.reason == reason]
