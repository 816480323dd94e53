import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response
from starlette.concurrency import run_in_threadpool

from . import errors
from . import pdf as pdf_module
from .invoice import Seller, build_invoice_payload, render_invoice_html
from .repository import Store
from .schemas import InvoiceRequest, parse
from .utils import inventory_summary

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def _store(request: Request) -> Store:
    return request.app.state.store


async def _json_body(request: Request, default=None):
    raw = await request.body()
    if not raw.strip():
        if default is not None:
            return default
        raise errors.ValidationError('Request body is required')
    try:
        return json.loads(raw)
    except ValueError:
        raise errors.ValidationError('Malformed JSON body')


@router.get('/products')
async def list_products(request: Request):
    res = await run_in_threadpool(_store(request).list_products)
    return {"status": "success", "data": res}


@router.post('/products')
async def create_product(request: Request):
    body = await _json_body(request)
    product_id = await run_in_threadpool(_store(request).create_product, body)
    return {"status": "success", "data": {"id": product_id}}


@router.put('/products/{product_id}')
async def update_product(product_id: int, request: Request):
    body = await _json_body(request)
    await run_in_threadpool(_store(request).update_product, product_id, body)
    return {"status": "success", "data": {"ok": True}}


@router.delete('/products/{product_id}')
async def remove_product(product_id: int, request: Request):
    await run_in_threadpool(_store(request).delete_product, product_id)
    return {"status": "success", "data": {"ok": True}}


@router.get('/summary')
async def summary(request: Request):
    products = await run_in_threadpool(_store(request).list_products)
    return {"status": "success", "data": inventory_summary(products)}


@router.get('/transactions')
async def list_transactions(request: Request):
    res = await run_in_threadpool(_store(request).list_transactions)
    return {"status": "success", "data": res}


@router.get('/transactions/{tx_id}')
async def get_transaction(tx_id: int, request: Request):
    res = await run_in_threadpool(_store(request).get_transaction, tx_id)
    return {"status": "success", "data": res}


@router.post('/transactions')
async def create_transaction(request: Request):
    body = await _json_body(request)
    tx_id = await run_in_threadpool(_store(request).create_transaction, body)
    return {"status": "success", "data": {"id": tx_id}}


@router.get('/export/products.csv')
async def export_products(request: Request):
    text = await run_in_threadpool(_store(request).export_products_csv)
    return Response(
        content=text,
        media_type='text/csv',
        headers={'Content-Disposition': 'attachment; filename="products.csv"'},
    )


async def _render_invoice(tx_id: int, request: Request) -> str:
    req = parse(InvoiceRequest, await _json_body(request, default={}))
    settings = request.app.state.settings
    store = _store(request)
    tx = await run_in_threadpool(store.get_transaction, tx_id)
    products = await run_in_threadpool(store.list_products)
    tax_percent = req.tax_percent if req.tax_percent is not None else settings.tax_percent
    payload = build_invoice_payload(
        tx,
        {p.id: p.name for p in products},
        req.customer,
        tax_percent,
        descriptions=req.descriptions,
    )
    seller = Seller(settings.seller_name, settings.seller_address, settings.seller_jurisdiction)
    return render_invoice_html(payload, seller)


@router.post('/invoices/{tx_id}/html')
async def invoice_html(tx_id: int, request: Request):
    html = await _render_invoice(tx_id, request)
    return HTMLResponse(content=html)


@router.post('/invoices/{tx_id}')
async def generate_invoice(tx_id: int, request: Request):
    html = await _render_invoice(tx_id, request)
    bills_dir = request.app.state.settings.bills_dir
    path = await run_in_threadpool(pdf_module.generate_invoice_document, tx_id, html, bills_dir)
    logging.info('Generated invoice for transaction %s', tx_id)
    return {"status": "success", "data": {"path": str(path)}}
