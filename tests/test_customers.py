import os
import sys
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotedesk import create_app, db
from quotedesk.models import Quotation, QuotationItem


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


CUSTOMER = {
    'name': 'ABC Corporation',
    'contact_person': 'Mr. John Smith',
    'email': 'contact@abccorp.com',
    'phone': '000-0000-0000',
    'address': '123 Business Avenue',
    'address2': 'Suite 456',
    'city': 'New York',
    'state': 'NY',
    'postal_code': '10001',
}


def test_create_and_view_customer():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/customers', json=CUSTOMER)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['email'] == 'contact@abccorp.com'
    assert body['city'] == 'New York'
    assert body['quotations_count'] == 0

    view = client.get(f"/api/customers/{body['id']}").get_json()
    assert view['name'] == 'ABC Corporation'


def test_required_fields_and_email_format():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/customers', json={'email': 'not-an-email', 'name': '  '})
    assert resp.status_code == 422
    errors = resp.get_json()['errors']
    assert errors['email'] == ['The email must be a valid email address.']
    for field in ('name', 'contact_person', 'phone', 'address'):
        assert errors[field] == [f"The {field.replace('_', ' ')} field is required."]
    assert 'city' not in errors


def test_email_is_unique_except_for_self():
    app = setup_app()
    client = app.test_client()
    first = client.post('/api/customers', json=CUSTOMER).get_json()
    dup = client.post('/api/customers', json=CUSTOMER)
    assert dup.status_code == 422
    assert dup.get_json()['errors']['email'] == ['The email has already been taken.']

    # re-saving a customer with its own email is fine
    resp = client.put(f"/api/customers/{first['id']}", json={**CUSTOMER, 'phone': '999'})
    assert resp.status_code == 200
    assert resp.get_json()['phone'] == '999'

    other = client.post('/api/customers', json={**CUSTOMER, 'email': 'other@abccorp.com'}).get_json()
    clash = client.patch(f"/api/customers/{other['id']}", json={'email': CUSTOMER['email']})
    assert clash.status_code == 422


def test_patch_updates_only_given_fields():
    app = setup_app()
    client = app.test_client()
    c = client.post('/api/customers', json=CUSTOMER).get_json()
    resp = client.patch(f"/api/customers/{c['id']}", json={'city': 'Boston', 'address2': ''})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['city'] == 'Boston'
    assert body['address2'] is None
    assert body['name'] == CUSTOMER['name']


def test_listing_search_and_pagination():
    app = setup_app()
    client = app.test_client()
    for n, name in enumerate(['Zeta Ltd', 'Alpha Bhd', 'Mid Corp']):
        client.post('/api/customers', json={**CUSTOMER, 'name': name, 'email': f'c{n}@x.com'})
    listing = client.get('/api/customers').get_json()
    assert [c['name'] for c in listing['data']] == ['Alpha Bhd', 'Mid Corp', 'Zeta Ltd']
    assert listing['total'] == 3
    found = client.get('/api/customers?q=alpha').get_json()
    assert [c['name'] for c in found['data']] == ['Alpha Bhd']


def test_delete_customer_cascades_quotations():
    app = setup_app()
    client = app.test_client()
    c = client.post('/api/customers', json=CUSTOMER).get_json()
    client.post('/api/quotations', json={
        'customer_id': c['id'],
        'quotation_date': date.today().isoformat(),
        'items': [{'description': 'Widget', 'quantity': 1, 'unit_price': 1}],
    })
    assert client.get(f"/api/customers/{c['id']}").get_json()['quotations_count'] == 1

    assert client.delete(f"/api/customers/{c['id']}").status_code == 204
    assert client.get(f"/api/customers/{c['id']}").status_code == 404
    with app.app_context():
        assert Quotation.query.count() == 0
        assert QuotationItem.query.count() == 0
