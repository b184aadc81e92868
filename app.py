from datetime import date
from typing import List, Optional
from contextlib import asynccontextmanager

from sqlalchemy.orm import Session, selectinload
from fastapi.responses import JSONResponse
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status

import cart as cart_mod
import catalog
import ledger
import losses as loss_store
import profiles
import reporting
import sales as sale_store
import schemas
from config import Config
from context import PosContext
from database import SessionLocal, engine, init_db
from errors import LoanError, NotFoundError, PosError
from logger import Log
from models import Customer, Loss, Product, Sale
from utils import format_currency


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

def get_pos(request: Request) -> PosContext:
    return request.app.state.pos

router = APIRouter()

# -------------------------------
# Products
# -------------------------------

@router.get("/products", response_model=List[schemas.ProductOut])
def products_list(q: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    if q:
        return catalog.search_products(db, q)
    return catalog.list_products(db)

@router.post("/products", response_model=schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def products_create(body: schemas.ProductCreate, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    return catalog.add_product(db, body.model_dump(), feed=pos.feed)

@router.get("/products/{product_id}", response_model=schemas.ProductOut)
def products_get(product_id: str, db: Session = Depends(get_db)):
    return catalog.get_product(db, product_id)

@router.put("/products/{product_id}", response_model=schemas.ProductOut)
def products_update(product_id: str, body: schemas.ProductCreate, db: Session = Depends(get_db),
                    pos: PosContext = Depends(get_pos)):
    return catalog.update_product(db, product_id, body.model_dump(), feed=pos.feed)

@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def products_delete(product_id: str, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    catalog.delete_product(db, product_id, feed=pos.feed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.patch("/products/{product_id}/stock", response_model=schemas.ProductOut)
def products_set_stock(product_id: str, body: schemas.StockUpdate, db: Session = Depends(get_db),
                       pos: PosContext = Depends(get_pos)):
    return catalog.update_product_stock(db, product_id, body.pieces, feed=pos.feed)

# -------------------------------
# Customers and loans
# -------------------------------

@router.get("/customers", response_model=List[schemas.CustomerOut])
def customers_list(db: Session = Depends(get_db)):
    return ledger.list_customers(db)

@router.post("/customers", response_model=schemas.CustomerOut, status_code=status.HTTP_201_CREATED)
def customers_create(body: schemas.CustomerCreate, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    return ledger.add_customer(db, body.model_dump(), feed=pos.feed)

@router.get("/customers/{customer_id}", response_model=schemas.CustomerOut)
def customers_get(customer_id: str, db: Session = Depends(get_db)):
    return ledger.get_customer(db, customer_id)

@router.put("/customers/{customer_id}", response_model=schemas.CustomerOut)
def customers_update(customer_id: str, body: schemas.CustomerUpdate, db: Session = Depends(get_db),
                     pos: PosContext = Depends(get_pos)):
    return ledger.update_customer(db, customer_id, body.model_dump(exclude_unset=True), feed=pos.feed)

@router.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def customers_delete(customer_id: str, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    ledger.delete_customer(db, customer_id, feed=pos.feed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/customers/{customer_id}/loans", response_model=schemas.LoanResult)
def customers_add_loan(customer_id: str, body: schemas.LoanRequest, db: Session = Depends(get_db),
                       pos: PosContext = Depends(get_pos)):
    customer, txn = ledger.add_loan(db, customer_id, body.amount, body.description, feed=pos.feed)
    return {"customer": customer, "transaction": txn}

@router.post("/customers/{customer_id}/payments", response_model=schemas.LoanResult)
def customers_pay_loan(customer_id: str, body: schemas.LoanRequest, db: Session = Depends(get_db),
                       pos: PosContext = Depends(get_pos)):
    customer = ledger.get_customer(db, customer_id)
    if body.amount > customer.loan_balance:
        raise LoanError(
            f"Payment amount exceeds loan balance ({format_currency(customer.loan_balance)})"
        )
    customer, txn = ledger.pay_loan(db, customer_id, body.amount, body.description, feed=pos.feed)
    return {"customer": customer, "transaction": txn}

@router.post("/customers/{customer_id}/loyalty-points", response_model=schemas.CustomerOut)
def customers_add_points(customer_id: str, body: schemas.LoyaltyRequest, db: Session = Depends(get_db),
                         pos: PosContext = Depends(get_pos)):
    return ledger.add_loyalty_points(db, customer_id, body.points, feed=pos.feed)

@router.get("/customers/{customer_id}/loan-history", response_model=List[schemas.LoanTransactionOut])
def customers_loan_history(customer_id: str, db: Session = Depends(get_db)):
    return ledger.loan_history(db, customer_id)

# -------------------------------
# Cart and checkout
# -------------------------------

def cart_view(cart: cart_mod.Cart) -> schemas.CartOut:
    return schemas.CartOut(
        lines=[schemas.CartLineOut.model_validate(line) for line in cart.lines],
        total=cart.total(),
        loan_total=cart.loan_total(),
        item_count=cart.item_count(),
    )

@router.get("/cart", response_model=schemas.CartOut)
def cart_get(pos: PosContext = Depends(get_pos)):
    with pos.cart_lock:
        return cart_view(pos.cart)

@router.delete("/cart", response_model=schemas.CartOut)
def cart_clear(pos: PosContext = Depends(get_pos)):
    with pos.cart_lock:
        pos.cart.clear()
        return cart_view(pos.cart)

@router.post("/cart/lines/{product_id}", response_model=schemas.CartOut)
def cart_add_line(product_id: str, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    product = catalog.get_product(db, product_id)
    with pos.cart_lock:
        pos.cart.add_line(product)
        return cart_view(pos.cart)

@router.patch("/cart/lines/{product_id}", response_model=schemas.CartOut)
def cart_update_line(product_id: str, body: schemas.CartLineUpdate, pos: PosContext = Depends(get_pos)):
    with pos.cart_lock:
        if body.discount is not None:
            pos.cart.set_discount(product_id, body.discount)
        if body.use_loan is not None:
            pos.cart.set_use_loan(product_id, body.use_loan)
        return cart_view(pos.cart)

@router.delete("/cart/lines/{product_id}", response_model=schemas.CartOut)
def cart_remove_line(product_id: str, pos: PosContext = Depends(get_pos)):
    with pos.cart_lock:
        pos.cart.remove_line(product_id)
        return cart_view(pos.cart)

@router.post("/cart/checkout", response_model=schemas.SaleOut, status_code=status.HTTP_201_CREATED)
def cart_checkout(body: schemas.CheckoutRequest, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    with pos.cart_lock:
        return sale_store.checkout(
            db,
            pos.cart,
            body.cash_received,
            customer_id=body.customer_id,
            customer_name=body.customer_name,
            signature=body.signature,
            description=body.description,
            feed=pos.feed,
        )

# -------------------------------
# Sales and receipts
# -------------------------------

@router.get("/sales", response_model=List[schemas.SaleOut])
def sales_list(day: Optional[date] = Query(default=None), q: Optional[str] = Query(default=None),
               db: Session = Depends(get_db)):
    sales = sale_store.list_sales(db)
    if day is not None:
        sales = reporting.sales_on(sales, day)
    if q:
        sales = sale_store.search_sales(sales, q)
    return sales

@router.get("/sales/{sale_id}", response_model=schemas.SaleOut)
def sales_get(sale_id: str, db: Session = Depends(get_db)):
    return sale_store.get_sale(db, sale_id)

@router.patch("/sales/{sale_id}", response_model=schemas.SaleOut)
def sales_update_details(sale_id: str, body: schemas.SaleDetailsUpdate, db: Session = Depends(get_db),
                         pos: PosContext = Depends(get_pos)):
    return sale_store.update_sale_details(db, sale_id, body.model_dump(exclude_unset=True), feed=pos.feed)

@router.get("/sales/{sale_id}/receipt", response_model=schemas.ReceiptOut)
def sales_receipt(sale_id: str, username: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    data = sale_store.receipt(db, sale_id, username=username)
    return schemas.ReceiptOut(
        sale=schemas.SaleOut.model_validate(data["sale"]),
        lines=[schemas.ReceiptLineOut(**line) for line in data["lines"]],
        shop_name=data["shop_name"],
        username=data["username"],
        shop_logo=data["shop_logo"],
    )

# -------------------------------
# Losses
# -------------------------------

@router.get("/losses", response_model=List[schemas.LossOut])
def losses_list(reason: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    losses = loss_store.list_losses(db)
    if reason:
        losses = loss_store.losses_by_reason(losses, reason)
    return losses

@router.post("/losses", response_model=schemas.LossOut, status_code=status.HTTP_201_CREATED)
def losses_create(body: schemas.LossCreate, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    return loss_store.add_loss(db, body.model_dump(), feed=pos.feed)

@router.put("/losses/{loss_id}", response_model=schemas.LossOut)
def losses_update(loss_id: str, body: schemas.LossCreate, db: Session = Depends(get_db),
                  pos: PosContext = Depends(get_pos)):
    return loss_store.update_loss(db, loss_id, body.model_dump(), feed=pos.feed)

@router.delete("/losses/{loss_id}", status_code=status.HTTP_204_NO_CONTENT)
def losses_delete(loss_id: str, db: Session = Depends(get_db), pos: PosContext = Depends(get_pos)):
    loss_store.delete_loss(db, loss_id, feed=pos.feed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# -------------------------------
# Shop profile
# -------------------------------

@router.get("/profiles/{username}", response_model=schemas.ProfileOut)
def profiles_get(username: str, db: Session = Depends(get_db)):
    return profiles.get_profile(db, username)

@router.put("/profiles/{username}", response_model=schemas.ProfileOut)
def profiles_save(username: str, body: schemas.ProfileUpdate, db: Session = Depends(get_db)):
    return profiles.save_profile(db, username, body.model_dump(exclude_unset=True))

# -------------------------------
# Reports
# -------------------------------

def load_collections(db: Session):
    products = db.query(Product).all()
    customers = db.query(Customer).all()
    sales = db.query(Sale).options(selectinload(Sale.items)).all()
    return products, customers, sales

@router.get("/reports", response_model=schemas.ReportOut)
def reports(period: str = Query(default="today"), db: Session = Depends(get_db)):
    products, customers, sales = load_collections(db)
    losses = db.query(Loss).all()
    report = reporting.build_report(period, products, customers, sales, losses)
    return schemas.ReportOut.model_validate(report)

@router.get("/reports/dashboard", response_model=schemas.DashboardOut)
def reports_dashboard(db: Session = Depends(get_db)):
    products, customers, sales = load_collections(db)
    return schemas.DashboardOut.model_validate(reporting.dashboard(products, customers, sales))

# -------------------------------
# Change feed
# -------------------------------

@router.get("/changes", response_model=schemas.ChangeBatchOut)
def changes(since: int = Query(default=0, ge=0), table: Optional[str] = Query(default=None),
            pos: PosContext = Depends(get_pos)):
    feed = pos.feed
    events = feed.since(since, table)
    return schemas.ChangeBatchOut(
        last_seq=feed.last_seq,
        oldest_seq=feed.oldest_seq,
        gap=feed.has_gap(since),
        events=[schemas.ChangeEventOut.model_validate(e) for e in events],
    )

@router.get("/snapshot/{table}")
def snapshot(table: str, pos: PosContext = Depends(get_pos)):
    if table not in pos.cache.tables:
        raise NotFoundError(f"Unknown table: {table}")
    return pos.cache.rows(table)


def create_app(session_factory=SessionLocal, bind=engine) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(bind)
        pos = PosContext()
        db = session_factory()
        try:
            pos.prime(db)
        finally:
            db.close()
        app.state.pos = pos
        Log.info(f"[app.py][lifespan] {Config.APP_NAME} started")
        yield
        pos.close()
        Log.info(f"[app.py][lifespan] {Config.APP_NAME} stopped")

    app = FastAPI(title=Config.APP_NAME, lifespan=lifespan)
    app.state.session_factory = session_factory

    @app.exception_handler(PosError)
    async def pos_error_handler(request: Request, exc: PosError):
        if exc.status_code >= 500:
            Log.error(f"[app.py][{request.method} {request.url.path}] {exc.message}")
        else:
            Log.warning(f"[app.py][{request.method} {request.url.path}] {exc.message}")
        return JSONResponse({"detail": exc.message}, status_code=exc.status_code)

    app.include_router(router)
    return app


app = create_app()

############# Application Run Command #############
# uvicorn app:app --reload --host 0.0.0.0 --port 8000
