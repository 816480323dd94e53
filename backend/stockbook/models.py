from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship

from .database import Base


class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        CheckConstraint('reorder_level >= 0', name='ck_products_reorder_non_negative'),
    )


class Transaction(Base):
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String, nullable=False)
    reference = Column(String, nullable=True)
    created_at = Column(
        String,
        nullable=False,
        server_default=text("(strftime('%Y-%m-%dT%H:%M:%fZ','now'))"),
    )
    amount = Column(Numeric(12, 2), nullable=False, default=0)

    items = relationship(
        'TxItem',
        back_populates='transaction',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by='TxItem.id',
    )

    __table_args__ = (
        CheckConstraint("type IN ('purchase','sale')", name='ck_transactions_type'),
    )


class TxItem(Base):
    __tablename__ = 'tx_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='RESTRICT'), nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    discounted_unit_price = Column(Numeric(12, 2), nullable=False, default=0)

    transaction = relationship('Transaction', back_populates='items')

    __table_args__ = (
        Index('idx_tx_items_tx', 'tx_id'),
        CheckConstraint('qty > 0', name='ck_tx_items_qty_positive'),
        CheckConstraint('unit_price >= 0', name='ck_tx_items_unit_price_non_negative'),
    )
