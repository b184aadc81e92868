# Pydantic schemas
# Field names follow the store columns (snake_case); payloads use camelCase aliases.

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- Products ----------

class ProductBase(CamelModel):
    name: str = Field(min_length=1)
    brand: str = ""
    category: str = ""
    buying_price: float = Field(default=0.0, ge=0)
    selling_price: float = Field(default=0.0, ge=0)
    pieces: int = Field(default=0, ge=0)
    low_stock_alert: int = Field(default=0, ge=0)

class ProductCreate(ProductBase):
    pass

class ProductOut(ProductBase):
    id: str
    created_at: Optional[datetime] = None

class StockUpdate(CamelModel):
    pieces: int = Field(ge=0)


# ---------- Customers / loans ----------

class CustomerCreate(CamelModel):
    name: str = Field(min_length=1)
    phone: str = ""
    email: str = ""
    address: str = ""

class CustomerUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    loyalty_points: Optional[int] = Field(default=None, ge=0)
    loan_balance: Optional[float] = Field(default=None, ge=0)

class CustomerOut(CamelModel):
    id: str
    name: str
    phone: Optional[str] = ""
    email: Optional[str] = ""
    address: Optional[str] = ""
    loyalty_points: int
    loan_balance: float
    created_at: Optional[datetime] = None

class LoanRequest(CamelModel):
    amount: float = Field(gt=0)
    description: Optional[str] = None

class LoyaltyRequest(CamelModel):
    points: int = Field(gt=0)

class LoanTransactionOut(CamelModel):
    id: str
    customer_id: Optional[str] = None
    type: str
    amount: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None

class LoanResult(CamelModel):
    customer: CustomerOut
    transaction: LoanTransactionOut


# ---------- Cart / checkout ----------

class CartLineUpdate(CamelModel):
    discount: Optional[float] = None
    use_loan: Optional[bool] = None

class CartLineOut(CamelModel):
    product_id: str
    name: str
    quantity: int
    base_price: float
    discount: float
    use_loan: bool
    final_price: float
    line_total: float
    loan_amount: float

class CartOut(CamelModel):
    lines: List[CartLineOut]
    total: float
    loan_total: float
    item_count: int

class CheckoutRequest(CamelModel):
    cash_received: float = Field(ge=0)
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    signature: Optional[str] = None
    description: Optional[str] = None


# ---------- Sales / receipts ----------

class SaleItemOut(CamelModel):
    id: str
    sale_id: str
    product_id: Optional[str] = None
    quantity: int
    price: float
    created_at: Optional[datetime] = None

class SaleOut(CamelModel):
    id: str
    total: float
    cash_received: float
    change: float
    customer_name: Optional[str] = None
    signature: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[SaleItemOut] = []

class SaleDetailsUpdate(CamelModel):
    customer_name: Optional[str] = None
    signature: Optional[str] = None
    description: Optional[str] = None

class ReceiptLineOut(CamelModel):
    product_id: Optional[str] = None
    product_name: str
    quantity: int
    price: float
    line_total: float

class ReceiptOut(CamelModel):
    sale: SaleOut
    lines: List[ReceiptLineOut]
    shop_name: str
    username: Optional[str] = None
    shop_logo: Optional[str] = None


# ---------- Losses ----------

class LossBase(CamelModel):
    product_id: str
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1)
    description: Optional[str] = None
    loss_value: float = Field(default=0.0, ge=0)

class LossCreate(LossBase):
    pass

class LossProductOut(CamelModel):
    id: str
    name: str
    brand: Optional[str] = ""

class LossOut(LossBase):
    product_id: Optional[str] = None
    id: str
    created_at: Optional[datetime] = None
    product: Optional[LossProductOut] = None


# ---------- Profiles ----------

class ProfileUpdate(CamelModel):
    shop_name: Optional[str] = None
    shop_logo: Optional[str] = None

class ProfileOut(CamelModel):
    id: str
    username: str
    shop_name: Optional[str] = None
    shop_logo: Optional[str] = None


# ---------- Reports ----------

class InventoryValueOut(CamelModel):
    buying_value: float
    selling_value: float
    total_items: int

class TopSellerOut(CamelModel):
    product_id: str
    name: str
    quantity: int
    revenue: float

class ReportOut(CamelModel):
    period: str
    start: datetime
    end: datetime
    sales_count: int
    revenue: float
    cost: float
    profit: float
    margin: float
    inventory: InventoryValueOut
    low_stock: List[ProductOut]
    top_sellers: List[TopSellerOut]
    pending_loans: float
    customers_with_loans: int
    average_loan: float
    total_loyalty_points: int
    customer_count: int
    total_loss_value: float

class DashboardOut(CamelModel):
    today_sales: float
    today_profit: float
    total_products: int
    total_customers: int
    low_stock_count: int
    pending_loans: float


# ---------- Realtime ----------

class ChangeEventOut(CamelModel):
    seq: int
    table: str
    type: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

class ChangeBatchOut(CamelModel):
    last_seq: int
    oldest_seq: int
    # events after `since` were dropped from history; reload /snapshot
    gap: bool
    events: List[ChangeEventOut]
