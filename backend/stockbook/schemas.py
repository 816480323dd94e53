from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from . import errors
from .tax import quantize_two

TxType = Literal['purchase', 'sale']

M = TypeVar('M', bound=BaseModel)


class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    price: Decimal = Field(Decimal('0'), ge=0)
    stock: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)

    @field_validator('category')
    @classmethod
    def blank_category_is_none(cls, v):
        return v or None

    @field_validator('price')
    @classmethod
    def price_to_paise(cls, v):
        return quantize_two(v)


class ProductUpdate(ProductCreate):
    """Full replacement of every mutable product field.

    Stock is a direct edit here; the store decides whether a negative level
    is acceptable.
    """

    stock: int = 0


class Product(ProductCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    # stock may be negative when the store allows overselling
    stock: int = 0


class TxItem(BaseModel):
    product_id: int = Field(..., gt=0)
    qty: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Decimal('0')

    @field_validator('unit_price')
    @classmethod
    def unit_price_to_paise(cls, v):
        return quantize_two(v)


class TransactionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TxType
    reference: Optional[str] = None
    items: List[TxItem] = Field(..., min_length=1)

    @field_validator('reference')
    @classmethod
    def blank_reference_is_none(cls, v):
        return v or None


class TxLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    qty: int
    unit_price: Decimal
    discount_percent: Decimal
    discounted_unit_price: Decimal


class Transaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: TxType
    reference: Optional[str] = None
    created_at: datetime
    amount: Decimal


class TransactionDetail(Transaction):
    items: List[TxLine] = []


class InvoiceCustomer(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ''
    address: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = None
    place_of_supply: Optional[str] = None


class InvoiceLine(BaseModel):
    name: str
    description: Optional[str] = None
    qty: int
    unit_price: Decimal
    discount_percent: Decimal
    taxable_value: Decimal
    total: Decimal
    share_percent: Decimal


class InvoicePayload(BaseModel):
    invoice_no: int
    date: datetime
    reference: Optional[str] = None
    customer: InvoiceCustomer
    items: List[InvoiceLine]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    tax_percent: Decimal = Decimal('0')


class InvoiceRequest(BaseModel):
    customer: InvoiceCustomer = InvoiceCustomer()
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    # optional per-product notes shown under the line name
    descriptions: Dict[int, str] = {}


def _describe(err: dict) -> str:
    loc = '.'.join(str(p) for p in err.get('loc', ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get('msg'))


def parse(model: Type[M], data) -> M:
    """Build ``model`` from untrusted input, raising our own ValidationError kinds."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errs = exc.errors()
        first = errs[0] if errs else {}
        loc = tuple(first.get('loc', ()))
        if loc == ('items',) and first.get('type') == 'too_short':
            raise errors.ValidationError('At least one line item required') from exc
        if len(loc) > 1 and loc[0] == 'items':
            raise errors.InvalidLineItem(f'Invalid line item ({_describe(first)})') from exc
        if loc in (('sku',), ('name',)) and first.get('type') in ('missing', 'string_too_short'):
            raise errors.ValidationError('SKU and Name are required') from exc
        raise errors.ValidationError(_describe(first)) from exc
