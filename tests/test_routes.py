import pytest
from fastapi.testclient import TestClient

from backend.stockbook import pdf as pdf_module
from backend.stockbook.main import create_app


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def _create(client, sku, stock=5, price='10'):
    res = client.post('/inventory/products', json={
        'sku': sku, 'name': f'Item {sku}', 'category': 'kids', 'price': price, 'stock': stock, 'reorder_level': 2,
    })
    assert res.status_code == 200
    return res.json()['data']['id']


def test_product_crud(client):
    pid = _create(client, 'A')
    res = client.get('/inventory/products')
    assert res.json()['status'] == 'success'
    assert [p['sku'] for p in res.json()['data']] == ['A']

    res = client.put(f'/inventory/products/{pid}', json={
        'sku': 'A', 'name': 'Renamed', 'price': '11', 'stock': 1, 'reorder_level': 2,
    })
    assert res.status_code == 200
    assert client.get('/inventory/products').json()['data'][0]['name'] == 'Renamed'

    assert client.delete(f'/inventory/products/{pid}').status_code == 200
    assert client.get('/inventory/products').json()['data'] == []


def test_error_statuses(client):
    _create(client, 'A')
    res = client.post('/inventory/products', json={'sku': 'A', 'name': 'Dup'})
    assert res.status_code == 409
    assert res.json()['detail'] == 'SKU must be unique'

    res = client.post('/inventory/products', json={'name': 'No sku'})
    assert res.status_code == 400
    assert res.json()['detail'] == 'SKU and Name are required'

    assert client.put('/inventory/products/99', json={'sku': 'Z', 'name': 'Z'}).status_code == 404
    assert client.delete('/inventory/products/99').status_code == 404

    res = client.post('/inventory/products', content=b'{not json', headers={'content-type': 'application/json'})
    assert res.status_code == 400


def test_transactions_flow(client):
    pid = _create(client, 'A', stock=5)
    res = client.post('/inventory/transactions', json={
        'type': 'sale', 'items': [{'product_id': pid, 'qty': 6, 'unit_price': 10}],
    })
    assert res.status_code == 409
    assert res.json()['detail'] == 'Insufficient stock for sale'

    res = client.post('/inventory/transactions', json={'type': 'sale', 'items': []})
    assert res.status_code == 400
    assert res.json()['detail'] == 'At least one line item required'

    res = client.post('/inventory/transactions', json={
        'type': 'sale', 'reference': 'R1', 'items': [{'product_id': pid, 'qty': 2, 'unit_price': 10}],
    })
    assert res.status_code == 200
    tx_id = res.json()['data']['id']

    listed = client.get('/inventory/transactions').json()['data']
    assert [t['id'] for t in listed] == [tx_id]
    detail = client.get(f'/inventory/transactions/{tx_id}').json()['data']
    assert detail['reference'] == 'R1'
    assert len(detail['items']) == 1
    assert client.get('/inventory/transactions/99').status_code == 404

    summary = client.get('/inventory/summary').json()['data']
    assert summary['product_count'] == 1
    assert summary['low_stock_count'] == 0

    # referenced products cannot be deleted
    assert client.delete(f'/inventory/products/{pid}').status_code == 409


def test_export_csv(client):
    _create(client, 'A', stock=5, price='10')
    res = client.get('/inventory/export/products.csv')
    assert res.status_code == 200
    assert res.headers['content-type'].startswith('text/csv')
    assert res.text == 'id,sku,name,category,price,stock,reorder_level\r\n1,A,Item A,kids,10.00,5,2\r\n'


def test_invoice_endpoints(client, settings, monkeypatch):
    pid = _create(client, 'A', stock=5, price='100')
    tx_id = client.post('/inventory/transactions', json={
        'type': 'sale', 'items': [{'product_id': pid, 'qty': 2, 'unit_price': 100, 'discount_percent': 25}],
    }).json()['data']['id']
    body = {'customer': {'name': 'Asha'}, 'tax_percent': '18'}

    res = client.post(f'/inventory/invoices/{tx_id}/html', json=body)
    assert res.status_code == 200
    assert f'<title>Invoice {tx_id}</title>' in res.text
    assert 'One Hundred Fifty Rupees Only' in res.text
    assert '&#8377;177.00' in res.text

    monkeypatch.setattr(pdf_module, 'invoice_to_pdf_bytes', lambda html: b'%PDF-1.7')
    res = client.post(f'/inventory/invoices/{tx_id}', json=body)
    assert res.status_code == 200
    path = res.json()['data']['path']
    assert path.startswith(str(settings.bills_dir))
    assert client.post('/inventory/invoices/999/html').status_code == 404
