import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    brand = Column(String, default="")
    category = Column(String, default="")
    buying_price = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float, nullable=False, default=0.0)
    pieces = Column(Integer, nullable=False, default=0)
    low_stock_alert = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now, index=True)

    def __repr__(self):
        return f"<Product {self.id} {self.name}>"


class Customer(Base):
    __tablename__ = "customers"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    phone = Column(String, default="")
    email = Column(String, default="")
    address = Column(String, default="")
    loyalty_points = Column(Integer, nullable=False, default=0)
    loan_balance = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.now, index=True)
    loan_history = relationship("LoanTransaction", back_populates="customer")

    def __repr__(self):
        return f"<Customer {self.id} {self.name}>"


class LoanTransaction(Base):
    __tablename__ = "customer_loan_history"
    id = Column(String(36), primary_key=True, default=new_id)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    type = Column(String, nullable=False)  # "loan" or "payment"
    amount = Column(Float, nullable=False)
    description = Column(String)
    created_at = Column(DateTime, default=datetime.now, index=True)
    customer = relationship("Customer", back_populates="loan_history")


class Sale(Base):
    __tablename__ = "sales"
    id = Column(String(36), primary_key=True, default=new_id)
    total = Column(Float, nullable=False)
    cash_received = Column(Float, nullable=False)
    change = Column(Float, nullable=False)
    customer_name = Column(String)
    signature = Column(String)
    description = Column(String)
    created_at = Column(DateTime, default=datetime.now, index=True)
    items = relationship("SaleItem", back_populates="sale", cascade="all,delete-orphan")


class SaleItem(Base):
    __tablename__ = "sale_items"
    id = Column(String(36), primary_key=True, default=new_id)
    sale_id = Column(String(36), ForeignKey("sales.id"), index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)  # unit price after discount, frozen
    created_at = Column(DateTime, default=datetime.now)
    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")


class Loss(Base):
    __tablename__ = "losses"
    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    description = Column(String)
    loss_value = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.now, index=True)
    product = relationship("Product")


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String, unique=True, index=True, nullable=False)
    shop_name = Column(String)
    shop_logo = Column(String)
    created_at = Column(DateTime, default=datetime.now)
