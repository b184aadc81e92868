from dataclasses import dataclass
from typing import Dict, List, Optional

from errors import CartError
from logger import Log


def final_unit_price(base_price: float, discount: float = 0.0) -> float:
    return round(base_price * (1 - discount / 100.0), 2)


@dataclass
class CartLine:
    product_id: str
    name: str
    base_price: float
    quantity: int = 1
    discount: float = 0.0  # percent, 0-100
    use_loan: bool = False

    @property
    def final_price(self) -> float:
        return final_unit_price(self.base_price, self.discount)

    @property
    def line_total(self) -> float:
        return round(self.final_price * self.quantity, 2)

    @property
    def loan_amount(self) -> float:
        # a loan-flagged line charges the discount it received to the customer
        if not self.use_loan:
            return 0.0
        return round((self.base_price - self.final_price) * self.quantity, 2)


class Cart:
    """
    Lines waiting for checkout. Lives only in memory; one line per product.
    """

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, product_id: str) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def quantity_of(self, product_id: str) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line else 0

    def add_line(self, product) -> CartLine:
        """Add one unit of `product`; refuses to go past its current stock."""
        if product.pieces is None or product.pieces <= 0:
            raise CartError("Product out of stock")

        line = self._lines.get(product.id)
        if line is None:
            line = CartLine(product_id=product.id, name=product.name,
                            base_price=float(product.selling_price or 0), quantity=1)
            self._lines[product.id] = line
        else:
            if line.quantity >= product.pieces:
                raise CartError("Not enough stock available")
            line.quantity += 1
            # pick up price or name edits made since the line was created
            line.name = product.name
            line.base_price = float(product.selling_price or 0)

        Log.debug(f"[cart.py][Cart][add_line] {product.id} qty={line.quantity}")
        return line

    def remove_line(self, product_id: str) -> Optional[CartLine]:
        line = self._lines.get(product_id)
        if line is None:
            raise CartError("Product is not in the cart")
        line.quantity -= 1
        if line.quantity <= 0:
            del self._lines[product_id]
            return None
        return line

    def set_discount(self, product_id: str, discount: float) -> CartLine:
        if discount is None or not 0 <= discount <= 100:
            raise CartError("Discount must be between 0 and 100")
        line = self._require(product_id)
        line.discount = float(discount)
        return line

    def set_use_loan(self, product_id: str, use_loan: bool) -> CartLine:
        line = self._require(product_id)
        line.use_loan = bool(use_loan)
        return line

    def clear(self):
        self._lines.clear()

    def total(self) -> float:
        return round(sum(line.line_total for line in self._lines.values()), 2)

    def loan_total(self) -> float:
        return round(sum(line.loan_amount for line in self._lines.values()), 2)

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def _require(self, product_id: str) -> CartLine:
        line = self._lines.get(product_id)
        if line is None:
            raise CartError("Product is not in the cart")
        return line
