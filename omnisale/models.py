# omnisale/models.py
from sqlalchemy import Column, Integer, String, Numeric, JSON, TIMESTAMP, func, Text
from .db import Base


class Customer(Base):
    __tablename__ = "customers"
    customer_id = Column(String, primary_key=True)
    name = Column(String)
    phone_number = Column(String, nullable=True, unique=True, index=True)
    loyalty_tier = Column(String, default="bronze")
    loyalty_points = Column(Integer, default=0)
    store_location = Column(String)
    total_spend = Column(Numeric(12, 2), default=0)
    last_channel = Column(String, nullable=True)
    session_snapshot = Column(JSON, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())


class Product(Base):
    __tablename__ = "products"
    sku = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    attributes = Column(JSON)
    tags = Column(JSON)
    created_at = Column(TIMESTAMP, server_default=func.now())


class Inventory(Base):
    __tablename__ = "inventory"
    inventory_id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String, nullable=False, index=True)
    location = Column(String, index=True)  # "online_warehouse" or a store location
    stock = Column(Integer, default=0)
    reserved = Column(Integer, default=0)
    last_updated = Column(TIMESTAMP, server_default=func.now())


class Order(Base):
    __tablename__ = "orders"
    order_id = Column(String, primary_key=True)
    customer_id = Column(String, index=True)
    items = Column(JSON)
    total_amount = Column(Numeric(12, 2))
    discount = Column(Numeric(12, 2), default=0)
    status = Column(String)
    fulfillment_mode = Column(String)
    transaction_id = Column(String, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())


class PaymentRecord(Base):
    __tablename__ = "payment_records"
    transaction_id = Column(String, primary_key=True)
    customer_id = Column(String, index=True)
    order_id = Column(String, nullable=True, index=True)
    amount = Column(Numeric(12, 2))
    method = Column(String)
    status = Column(String)  # "success" | "declined"
    reason = Column(String, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())


class InteractionHistory(Base):
    __tablename__ = "interaction_history"
    session_id = Column(String, primary_key=True)
    customer_id = Column(String, index=True)
    channel = Column(String)
    message = Column(Text)
    intent = Column(String, nullable=True)
    context = Column(JSON, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
