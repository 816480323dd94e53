"""Fallback store: a single JSON document on local disk.

Used when the embedded database is not wanted (``STOCKBOOK_STORE=json``).
Rules match the SQL store; the file is only rewritten once an operation has
fully succeeded, so a rejected call leaves it untouched.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from . import errors, stock
from .repository import RECENT_TRANSACTIONS, Store
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
from .utils import uid

PRODUCTS_KEY = 'products'
TRANSACTIONS_KEY = 'transactions'


class JsonFileStore(Store):

    def __init__(self, path, allow_negative_stock: bool = False):
        self.path = Path(path)
        self.allow_negative_stock = allow_negative_stock
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logging.info('Using fallback inventory file at %s', self.path)

    def _load(self) -> Dict[str, list]:
        if not self.path.exists():
            return {PRODUCTS_KEY: [], TRANSACTIONS_KEY: []}
        with open(self.path, encoding='utf-8') as fh:
            doc = json.load(fh)
        doc.setdefault(PRODUCTS_KEY, [])
        doc.setdefault(TRANSACTIONS_KEY, [])
        return doc

    def _save(self, doc: Dict[str, list]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix='.inventory-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(doc, fh, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _products(self, doc) -> List[Product]:
        return [Product.model_validate(p) for p in doc[PRODUCTS_KEY]]

    @staticmethod
    def _dump_products(products: List[Product]) -> list:
        return [p.model_dump(mode='json') for p in products]

    @staticmethod
    def _check_sku_free(products: List[Product], sku: str, product_id=None) -> None:
        if any(p.sku == sku and p.id != product_id for p in products):
            raise errors.DuplicateSku(sku)

    # products

    def list_products(self) -> List[Product]:
        return sorted(self._products(self._load()), key=lambda p: p.id, reverse=True)

    def get_product(self, product_id: int) -> Product:
        for p in self._products(self._load()):
            if p.id == product_id:
                return p
        raise errors.NotFound(f'Product {product_id} not found')

    def create_product(self, data) -> int:
        rec = parse(ProductCreate, data)
        doc = self._load()
        products = self._products(doc)
        self._check_sku_free(products, rec.sku)
        product = Product(id=uid(products), **rec.model_dump())
        products.append(product)
        doc[PRODUCTS_KEY] = self._dump_products(products)
        self._save(doc)
        logging.info('Created product %s (%s)', product.id, rec.sku)
        return product.id

    def update_product(self, product_id: int, data) -> None:
        rec = parse(ProductUpdate, data)
        self._check_stock_level(rec)
        doc = self._load()
        products = self._products(doc)
        index = next((i for i, p in enumerate(products) if p.id == product_id), None)
        if index is None:
            raise errors.NotFound(f'Product {product_id} not found')
        self._check_sku_free(products, rec.sku, product_id)
        products[index] = Product(id=product_id, **rec.model_dump())
        doc[PRODUCTS_KEY] = self._dump_products(products)
        self._save(doc)
        logging.info('Updated product %s', product_id)

    def delete_product(self, product_id: int) -> None:
        doc = self._load()
        products = self._products(doc)
        if not any(p.id == product_id for p in products):
            raise errors.NotFound(f'Product {product_id} not found')
        for t in doc[TRANSACTIONS_KEY]:
            if any(int(it['product_id']) == product_id for it in t.get('items', [])):
                raise errors.ProductInUse(product_id)
        doc[PRODUCTS_KEY] = self._dump_products([p for p in products if p.id != product_id])
        self._save(doc)
        logging.info('Deleted product %s', product_id)

    # transactions

    def list_transactions(self, limit: int = RECENT_TRANSACTIONS) -> List[Transaction]:
        rows = sorted(self._load()[TRANSACTIONS_KEY], key=lambda t: t['id'], reverse=True)
        return [Transaction.model_validate(t) for t in rows[:limit]]

    def get_transaction(self, tx_id: int) -> TransactionDetail:
        for t in self._load()[TRANSACTIONS_KEY]:
            if t['id'] == tx_id:
                return TransactionDetail.model_validate(t)
        raise errors.NotFound(f'Transaction {tx_id} not found')

    def create_transaction(self, data) -> int:
        tx = parse(TransactionCreate, data)
        doc = self._load()
        try:
            products = stock.apply_transaction(self._products(doc), tx, self.allow_negative_stock)
        except errors.StockbookError as exc:
            logging.warning('Rejected %s transaction: %s', tx.type, exc.message)
            raise
        transactions = doc[TRANSACTIONS_KEY]
        tx_id = uid(transactions)
        lines = []
        for n, item in enumerate(tx.items, start=1):
            discount = stock.normalize_discount(item.discount_percent)
            lines.append({
                'id': n,
                'product_id': item.product_id,
                'qty': item.qty,
                'unit_price': str(quantize_two(to_decimal(item.unit_price))),
                'discount_percent': str(discount),
                'discounted_unit_price': str(quantize_two(stock.discounted_unit_price(item.unit_price, discount))),
            })
        amount = stock.transaction_amount(tx.items)
        transactions.append({
            'id': tx_id,
            'type': tx.type,
            'reference': tx.reference,
            'created_at': datetime.now(timezone.utc).isoformat(),
            'amount': str(amount),
            'items': lines,
        })
        doc[PRODUCTS_KEY] = self._dump_products(products)
        self._save(doc)
        logging.info('Created %s transaction %s with %s line(s), amount %s',
                     tx.type, tx_id, len(lines), amount)
        return tx_id
