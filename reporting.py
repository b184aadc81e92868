"""
Derived figures for the reports and dashboard screens.

Everything here is a pure function over already-loaded rows (products,
customers, sales with their items, losses); nothing is cached, callers
recompute on every request.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from errors import ValidationFailed
from losses import total_loss_value

PERIODS = ("today", "week", "month")


@dataclass
class InventoryValue:
    buying_value: float
    selling_value: float
    total_items: int


@dataclass
class ProfitAndLoss:
    revenue: float
    cost: float
    profit: float
    margin: float


@dataclass
class TopSeller:
    product_id: str
    name: str
    quantity: int
    revenue: float


@dataclass
class Report:
    period: str
    start: datetime
    end: datetime
    sales_count: int
    revenue: float
    cost: float
    profit: float
    margin: float
    inventory: InventoryValue
    low_stock: list
    top_sellers: List[TopSeller]
    pending_loans: float
    customers_with_loans: int
    average_loan: float
    total_loyalty_points: int
    customer_count: int
    total_loss_value: float


@dataclass
class Dashboard:
    today_sales: float
    today_profit: float
    total_products: int
    total_customers: int
    low_stock_count: int
    pending_loans: float


def period_window(period: str, now: Optional[datetime] = None):
    """Start and end of the selected period; week starts on Monday."""
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        start = midnight
    elif period == "week":
        start = midnight - timedelta(days=midnight.weekday())
    elif period == "month":
        start = midnight.replace(day=1)
    else:
        raise ValidationFailed(f"Invalid period: choose {', '.join(PERIODS)}")
    return start, now


def inventory_value(products) -> InventoryValue:
    return InventoryValue(
        buying_value=round(sum((p.buying_price or 0) * (p.pieces or 0) for p in products), 2),
        selling_value=round(sum((p.selling_price or 0) * (p.pieces or 0) for p in products), 2),
        total_items=sum(p.pieces or 0 for p in products),
    )


def low_stock(products):
    return [p for p in products if (p.pieces or 0) <= (p.low_stock_alert or 0)]


def sales_in_window(sales, start: Optional[datetime] = None, end: Optional[datetime] = None):
    out = []
    for sale in sales:
        if start is not None and sale.created_at < start:
            continue
        if end is not None and sale.created_at > end:
            continue
        out.append(sale)
    return out


def sales_on(sales, day: date):
    return [s for s in sales if s.created_at.date() == day]


def profit_and_loss(sales, products_by_id: Dict[str, object]) -> ProfitAndLoss:
    revenue = sum(s.total or 0 for s in sales)
    cost = 0.0
    for sale in sales:
        for item in sale.items:
            product = products_by_id.get(item.product_id)
            # deleted products have no buying price left to charge
            if product is not None:
                cost += (product.buying_price or 0) * item.quantity
    profit = revenue - cost
    margin = (profit / revenue) * 100 if revenue > 0 else 0.0
    return ProfitAndLoss(
        revenue=round(revenue, 2),
        cost=round(cost, 2),
        profit=round(profit, 2),
        margin=round(margin, 1),
    )


def top_sellers(sales, products_by_id: Dict[str, object], limit: int = 5) -> List[TopSeller]:
    quantity = defaultdict(int)
    revenue = defaultdict(float)
    for sale in sales:
        for item in sale.items:
            if item.product_id is None:
                continue
            quantity[item.product_id] += item.quantity
            revenue[item.product_id] += item.price * item.quantity

    ranked = sorted(quantity, key=lambda pid: (-quantity[pid], -revenue[pid]))
    out = []
    for pid in ranked[:limit]:
        product = products_by_id.get(pid)
        out.append(TopSeller(
            product_id=pid,
            name=product.name if product is not None else "Unknown product",
            quantity=quantity[pid],
            revenue=round(revenue[pid], 2),
        ))
    return out


def pending_loans(customers) -> float:
    return round(sum(c.loan_balance or 0 for c in customers), 2)


def customers_with_loans(customers) -> int:
    return sum(1 for c in customers if (c.loan_balance or 0) > 0)


def average_loan(customers) -> float:
    borrowers = customers_with_loans(customers)
    if borrowers == 0:
        return 0.0
    return round(pending_loans(customers) / borrowers, 2)


def total_loyalty_points(customers) -> int:
    return sum(c.loyalty_points or 0 for c in customers)


def build_report(period: str, products, customers, sales, losses=(), now: Optional[datetime] = None) -> Report:
    start, end = period_window(period, now)
    window = sales_in_window(sales, start, end)
    by_id = {p.id: p for p in products}
    pnl = profit_and_loss(window, by_id)
    return Report(
        period=period,
        start=start,
        end=end,
        sales_count=len(window),
        revenue=pnl.revenue,
        cost=pnl.cost,
        profit=pnl.profit,
        margin=pnl.margin,
        inventory=inventory_value(products),
        low_stock=low_stock(products),
        top_sellers=top_sellers(window, by_id),
        pending_loans=pending_loans(customers),
        customers_with_loans=customers_with_loans(customers),
        average_loan=average_loan(customers),
        total_loyalty_points=total_loyalty_points(customers),
        customer_count=len(customers),
        total_loss_value=total_loss_value(losses),
    )


def dashboard(products, customers, sales, now: Optional[datetime] = None) -> Dashboard:
    now = now or datetime.now()
    today = sales_on(sales, now.date())
    pnl = profit_and_loss(today, {p.id: p for p in products})
    return Dashboard(
        today_sales=pnl.revenue,
        today_profit=pnl.profit,
        total_products=len(products),
        total_customers=len(customers),
        low_stock_count=len(low_stock(products)),
        pending_loans=pending_loans(customers),
    )
