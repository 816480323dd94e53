import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import errors, exports, models, stock
from .config import Settings
from .database import create_db_engine, init_db, make_session_factory
from .schemas import (
    Product,
    ProductCreate,
    ProductUpdate,
    Transaction,
    TransactionCreate,
    TransactionDetail,
    parse,
)
from .tax import quantize_two, to_decimal

RECENT_TRANSACTIONS = 200


class Store(ABC):
    """Operations the host can perform against inventory storage."""

    @abstractmethod
    def list_products(self) -> List[Product]:
        """All products, newest first."""

    @abstractmethod
    def get_product(self, product_id: int) -> Product:
        ...

    @abstractmethod
    def create_product(self, data) -> int:
        ...

    @abstractmethod
    def update_product(self, product_id: int, data) -> None:
        ...

    @abstractmethod
    def delete_product(self, product_id: int) -> None:
        ...

    @abstractmethod
    def list_transactions(self, limit: int = RECENT_TRANSACTIONS) -> List[Transaction]:
        """Most recent transactions, newest first."""

    @abstractmethod
    def get_transaction(self, tx_id: int) -> TransactionDetail:
        ...

    @abstractmethod
    def create_transaction(self, data) -> int:
        ...

    def _check_stock_level(self, rec: ProductUpdate) -> None:
        # an oversold product may be re-saved as is when overselling is allowed
        if rec.stock < 0 and not self.allow_negative_stock:
            raise errors.ValidationError('Stock cannot be negative')

    def export_products_csv(self) -> str:
        return exports.products_to_csv(self.list_products())

    def close(self) -> None:
        pass


class SqlStore(Store):
    """Inventory store on an embedded SQLite database."""

    def __init__(self, db_path, allow_negative_stock: bool = False):
        self.db_path = db_path
        self.allow_negative_stock = allow_negative_stock
        self.engine = create_db_engine(db_path)
        init_db(self.engine)
        self._sessions = make_session_factory(self.engine)
        logging.info('Opened inventory database at %s', db_path)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """One unit of work: committed on success, rolled back on any error."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()
        logging.info('Closed inventory database at %s', self.db_path)

    # products

    def list_products(self) -> List[Product]:
        with self._session() as s:
            rows = s.query(models.Product).order_by(models.Product.id.desc()).all()
            return [Product.model_validate(r) for r in rows]

    def get_product(self, product_id: int) -> Product:
        with self._session() as s:
            row = s.get(models.Product, product_id)
            if row is None:
                raise errors.NotFound(f'Product {product_id} not found')
            return Product.model_validate(row)

    @staticmethod
    def _check_sku_free(s: Session, sku: str, product_id: Optional[int] = None) -> None:
        q = s.query(models.Product.id).filter(models.Product.sku == sku)
        if product_id is not None:
            q = q.filter(models.Product.id != product_id)
        if q.first() is not None:
            raise errors.DuplicateSku(sku)

    def create_product(self, data) -> int:
        rec = parse(ProductCreate, data)
        try:
            with self._session() as s:
                self._check_sku_free(s, rec.sku)
                row = models.Product(**rec.model_dump())
                s.add(row)
                s.flush()
                product_id = row.id
        except IntegrityError as exc:
            if 'UNIQUE' in str(exc.orig):
                raise errors.DuplicateSku(rec.sku) from exc
            raise
        logging.info('Created product %s (%s)', product_id, rec.sku)
        return product_id

    def update_product(self, product_id: int, data) -> None:
        rec = parse(ProductUpdate, data)
        self._check_stock_level(rec)
        try:
            with self._session() as s:
                row = s.get(models.Product, product_id)
                if row is None:
                    raise errors.NotFound(f'Product {product_id} not found')
                self._check_sku_free(s, rec.sku, product_id)
                for key, value in rec.model_dump().items():
                    setattr(row, key, value)
        except IntegrityError as exc:
            if 'UNIQUE' in str(exc.orig):
                raise errors.DuplicateSku(rec.sku) from exc
            raise
        logging.info('Updated product %s', product_id)

    def delete_product(self, product_id: int) -> None:
        try:
            with self._session() as s:
                row = s.get(models.Product, product_id)
                if row is None:
                    raise errors.NotFound(f'Product {product_id} not found')
                in_use = s.query(models.TxItem.id).filter(models.TxItem.product_id == product_id).first()
                if in_use is not None:
                    raise errors.ProductInUse(product_id)
                s.delete(row)
        except IntegrityError as exc:
            # RESTRICT on tx_items.product_id
            raise errors.ProductInUse(product_id) from exc
        logging.info('Deleted product %s', product_id)

    # transactions

    def list_transactions(self, limit: int = RECENT_TRANSACTIONS) -> List[Transaction]:
        with self._session() as s:
            rows = (
                s.query(models.Transaction)
                .order_by(models.Transaction.id.desc())
                .limit(limit)
                .all()
            )
            return [Transaction.model_validate(r) for r in rows]

    def get_transaction(self, tx_id: int) -> TransactionDetail:
        with self._session() as s:
            row = (
                s.query(models.Transaction)
                .options(selectinload(models.Transaction.items))
                .filter(models.Transaction.id == tx_id)
                .first()
            )
            if row is None:
                raise errors.NotFound(f'Transaction {tx_id} not found')
            return TransactionDetail.model_validate(row)

    def create_transaction(self, data) -> int:
        """Record a purchase or sale and move stock, all in one database transaction.

        The header, every line item, every stock change and the total
        back-write are committed together; any failure rolls all of them back.
        """
        tx = parse(TransactionCreate, data)
        try:
            with self._session() as s:
                header = models.Transaction(type=tx.type, reference=tx.reference, amount=Decimal('0'))
                s.add(header)
                s.flush()
                mult = stock.multiplier(tx.type)
                for item in tx.items:
                    stock.validate_line(item)
                    product = s.get(models.Product, item.product_id)
                    if product is None:
                        raise errors.UnknownProduct(item.product_id)
                    # the identity map hands back the same row, so earlier lines are counted
                    stock.check_stock({product.id: product.stock},
                                      stock.Movement(tx.type, [item]),
                                      self.allow_negative_stock)
                    discount = stock.normalize_discount(item.discount_percent)
                    s.add(models.TxItem(
                        tx_id=header.id,
                        product_id=item.product_id,
                        qty=item.qty,
                        unit_price=quantize_two(to_decimal(item.unit_price)),
                        discount_percent=discount,
                        discounted_unit_price=quantize_two(stock.discounted_unit_price(item.unit_price, discount)),
                    ))
                    product.stock = product.stock + mult * item.qty
                # from the exact discounted prices, not the rounded column
                header.amount = stock.transaction_amount(tx.items)
                s.flush()
                tx_id = header.id
                amount = header.amount
        except errors.StockbookError as exc:
            logging.warning('Rejected %s transaction: %s', tx.type, exc.message)
            raise
        except IntegrityError as exc:
            logging.warning('Rejected %s transaction: %s', tx.type, exc.orig)
            if 'FOREIGN KEY' in str(exc.orig):
                raise errors.ReferentialIntegrityViolation('Unknown product referenced') from exc
            raise
        logging.info('Created %s transaction %s with %s line(s), amount %s',
                     tx.type, tx_id, len(tx.items), amount)
        return tx_id


def open_store(settings: Settings) -> Store:
    """Open the storage backend selected by configuration."""
    if settings.store == 'json':
        from .fallback import JsonFileStore
        return JsonFileStore(settings.fallback_path, settings.allow_negative_stock)
    return SqlStore(settings.db_path, settings.allow_negative_stock)
