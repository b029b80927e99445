import os
import sys
from datetime import date, timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotedesk import create_app, db
from quotedesk.models import Quotation, STATUSES


def setup_app(**overrides):
    app = create_app('testing', **overrides)
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def day(offset=1):
    return (date.today() + timedelta(days=offset)).isoformat()


def make_customer(client, email):
    resp = client.post('/api/customers', json={
        'name': email.split('@')[0], 'contact_person': 'P', 'email': email,
        'phone': '1', 'address': 'A',
    })
    return resp.get_json()['id']


def make_quotation(client, cid, offset=1, status=None):
    payload = {
        'customer_id': cid,
        'quotation_date': day(offset),
        'items': [{'description': 'Item', 'quantity': 1, 'unit_price': 5}],
    }
    if status:
        payload['status'] = status
    resp = client.post('/api/quotations', json=payload)
    assert resp.status_code == 201
    return resp.get_json()


def test_soft_delete_keeps_record_but_hides_from_listing():
    app = setup_app()
    client = app.test_client()
    cid = make_customer(client, 'a@example.com')
    keep = make_quotation(client, cid)
    gone = make_quotation(client, cid)

    resp = client.delete(f"/api/quotations/{gone['id']}")
    assert resp.status_code == 204

    shown = client.get(f"/api/quotations/{gone['id']}").get_json()
    assert shown['deleted'] is True
    assert shown['deleted_at'] is not None
    assert shown['items'][0]['description'] == 'Item'

    listing = client.get('/api/quotations').get_json()
    assert [q['id'] for q in listing['data']] == [keep['id']]
    assert listing['total'] == 1

    with_deleted = client.get('/api/quotations?with_deleted=1').get_json()
    assert {q['id'] for q in with_deleted['data']} == {keep['id'], gone['id']}
    only_deleted = client.get('/api/quotations?only_deleted=1').get_json()
    assert [q['id'] for q in only_deleted['data']] == [gone['id']]

    with app.app_context():
        assert Quotation.query.count() == 2


def test_writes_on_deleted_quotation_conflict_until_restored():
    app = setup_app()
    client = app.test_client()
    cid = make_customer(client, 'a@example.com')
    q = make_quotation(client, cid)
    client.delete(f"/api/quotations/{q['id']}")

    assert client.post(f"/api/quotations/{q['id']}/status", json={'status': 'Sent'}).status_code == 409
    assert client.delete(f"/api/quotations/{q['id']}").status_code == 409

    restored = client.post(f"/api/quotations/{q['id']}/restore")
    assert restored.status_code == 200
    assert restored.get_json()['deleted'] is False
    assert client.post(f"/api/quotations/{q['id']}/status", json={'status': 'Sent'}).status_code == 200


def test_status_accepts_only_enum_values():
    app = setup_app()
    client = app.test_client()
    cid = make_customer(client, 'a@example.com')
    q = make_quotation(client, cid)
    url = f"/api/quotations/{q['id']}/status"

    for bad in ('Approved', 'draft', '', None):
        resp = client.post(url, json={'status': bad})
        assert resp.status_code == 422
        assert 'status' in resp.get_json()['errors']

    # no server-side state machine: any enum value is accepted in any order
    for status in ('Accepted', 'Draft', 'Expired', 'Sent', 'Declined'):
        resp = client.patch(url, json={'status': status})
        assert resp.status_code == 200
        assert resp.get_json()['status'] == status


def test_available_statuses_are_advisory():
    app = setup_app()
    client = app.test_client()
    cid = make_customer(client, 'a@example.com')
    draft = make_quotation(client, cid)
    assert draft['available_statuses'] == ['Draft', 'Sent', 'Expired']
    assert draft['editable'] is True
    sent = make_quotation(client, cid, status='Sent')
    assert set(sent['available_statuses']) == {'Sent', 'Accepted', 'Declined', 'Expired'}
    accepted = make_quotation(client, cid, status='Accepted')
    assert accepted['available_statuses'] == []
    assert accepted['editable'] is False
    assert set(STATUSES) == {'Draft', 'Sent', 'Accepted', 'Declined', 'Expired'}


def test_listing_filters():
    app = setup_app()
    client = app.test_client()
    c1 = make_customer(client, 'one@example.com')
    c2 = make_customer(client, 'two@example.com')
    a = make_quotation(client, c1, offset=1)
    b = make_quotation(client, c1, offset=10, status='Sent')
    c = make_quotation(client, c2, offset=20, status='Sent')

    def ids(qs):
        return {q['id'] for q in client.get('/api/quotations' + qs).get_json()['data']}

    assert ids('?status=Sent') == {b['id'], c['id']}
    assert ids(f'?customer_id={c1}') == {a['id'], b['id']}
    assert ids(f'?date_from={day(5)}') == {b['id'], c['id']}
    assert ids(f'?date_to={day(10)}') == {a['id'], b['id']}
    assert ids(f'?status=Sent&date_to={day(15)}') == {b['id']}

    assert client.get('/api/quotations?status=Bogus').status_code == 422
    assert client.get('/api/quotations?date_from=yesterday').status_code == 422


def test_listing_is_paginated_newest_first():
    app = setup_app(QUOTATIONS_PER_PAGE=2)
    client = app.test_client()
    cid = make_customer(client, 'a@example.com')
    made = [make_quotation(client, cid)['id'] for _ in range(5)]

    page1 = client.get('/api/quotations').get_json()
    assert page1['per_page'] == 2
    assert page1['total'] == 5
    assert page1['last_page'] == 3
    assert page1['from'] == 1 and page1['to'] == 2
    assert [q['id'] for q in page1['data']] == made[::-1][:2]
    assert page1['data'][0]['customer']['id'] == cid
    assert len(page1['data'][0]['items']) == 1

    page3 = client.get('/api/quotations?page=3').get_json()
    assert [q['id'] for q in page3['data']] == [made[0]]
    assert page3['from'] == 5 and page3['to'] == 5

    empty = client.get('/api/quotations?page=9').get_json()
    assert empty['data'] == [] and empty['from'] is None


def test_unknown_quotation_is_404():
    app = setup_app()
    client = app.test_client()
    resp = client.get('/api/quotations/42')
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Resource not found.'
