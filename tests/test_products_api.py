from agrimart.models import AuditLog
from agrimart.roles import Role


def _create(client, headers, **body):
    body.setdefault('name', 'Neem Oil')
    return client.post('/products', json=body, headers=headers)


def test_vendor_creates_pending_product(client, auth_headers):
    resp = _create(client, auth_headers(Role.VENDOR), keywords=['neem', 'oil'])
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['status'] == 'pending'
    assert body['keywords'] == 'neem, oil'

    # Not in the public catalog until reviewed.
    assert client.get('/products').get_json() == []
    assert client.get(f"/products/{body['id']}").status_code == 404
    assert client.get(
        f"/products/{body['id']}",
        headers=auth_headers(Role.VENDOR)).status_code == 200


def test_master_creates_approved_product_with_variants(app, client,
                                                      auth_headers):
    resp = _create(client, auth_headers(Role.MASTER), variants=[
        {'label': '1 L', 'price': 320, 'stock_available': 4},
        {'label': '500 ml', 'price': 180, 'stock_available': 6},
    ])
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['status'] == 'approved'
    assert body['stock_available'] == 10
    assert body['cost_per_unit'] == 180
    assert body['min_label'] == '500 ml'
    assert len(body['variants']) == 2

    with app.app_context():
        assert AuditLog.query.filter_by(
            action='PRODUCT_CREATE', target_id=body['id']).count() == 1


def test_variants_path_needs_at_least_one_variant(client, auth_headers):
    resp = _create(client, auth_headers(Role.MASTER), variants=[])
    assert resp.status_code == 400


def test_customers_cannot_create_products(client, auth_headers):
    assert _create(client, auth_headers(Role.USER)).status_code == 403
    assert _create(client, auth_headers(Role.SUPPORT)).status_code == 403
    assert _create(client, {}).status_code == 401


def test_vendor_cannot_edit_other_vendors_product(app, client, auth_headers,
                                                  make_user):
    product_id = _create(
        client, auth_headers(Role.VENDOR)).get_json()['id']
    with app.app_context():
        other_id = make_user('9400000001', Role.VENDOR).id

    resp = client.patch(
        f'/products/{product_id}',
        json={'name': 'Hijacked'},
        headers=auth_headers(other_id),
    )
    assert resp.status_code == 403

    resp = client.patch(
        f'/products/{product_id}',
        json={'details': 'Cold pressed'},
        headers=auth_headers(Role.VENDOR),
    )
    assert resp.status_code == 200
    assert resp.get_json()['details'] == 'Cold pressed'


def test_only_master_deletes_and_reviews(client, auth_headers):
    product_id = _create(
        client, auth_headers(Role.VENDOR)).get_json()['id']

    assert client.delete(
        f'/products/{product_id}',
        headers=auth_headers(Role.VENDOR)).status_code == 403

    pending = client.get(
        '/products/pending', headers=auth_headers(Role.MASTER)).get_json()
    assert [p['id'] for p in pending] == [product_id]

    resp = client.patch(
        f'/products/{product_id}/review',
        json={'status': 'Approved', 'note': 'ok'},
        headers=auth_headers(Role.MASTER),
    )
    assert resp.status_code == 200
    assert resp.get_json()['deleted'] is False
    assert [p['id'] for p in client.get('/products').get_json()] == [
        product_id]

    assert client.delete(
        f'/products/{product_id}',
        headers=auth_headers(Role.MASTER)).status_code == 200
    assert client.get(f'/products/{product_id}').status_code == 404


def test_variant_endpoints_keep_aggregates(client, auth_headers):
    headers = auth_headers(Role.MASTER)
    product_id = _create(client, headers).get_json()['id']

    resp = client.post(
        f'/products/{product_id}/variants',
        json={'label': '1 L', 'price': 300, 'stock_available': 3},
        headers=headers,
    )
    assert resp.status_code == 201
    variant_id = resp.get_json()['id']

    client.post(
        f'/products/{product_id}/variants',
        json={'label': '5 L', 'price': 1200, 'stock_available': 1},
        headers=headers,
    )
    product = client.get(f'/products/{product_id}').get_json()
    assert product['stock_available'] == 4
    assert product['cost_per_unit'] == 300

    client.delete(f'/variants/{variant_id}', headers=headers)
    product = client.get(f'/products/{product_id}').get_json()
    assert product['stock_available'] == 1
    assert product['cost_per_unit'] == 1200


def test_admin_listing_is_scoped_to_owner(client, auth_headers):
    _create(client, auth_headers(Role.VENDOR), name='Vendor item')
    _create(client, auth_headers(Role.MASTER), name='Master item')

    vendor_view = client.get(
        '/products/admin', headers=auth_headers(Role.VENDOR)).get_json()
    master_view = client.get(
        '/products/admin', headers=auth_headers(Role.MASTER)).get_json()

    assert [p['name'] for p in vendor_view] == ['Vendor item']
    assert {p['name'] for p in master_view} == {'Vendor item', 'Master item'}


def test_search_endpoints(client, auth_headers):
    headers = auth_headers(Role.MASTER)
    _create(client, headers, name='Rose Booster', keywords='flowering')
    _create(client, headers, name='Paddy Seeds', keywords='rice, seeds')

    names = [p['name'] for p in client.get(
        '/products/search?q=ROSE').get_json()]
    assert names == ['Rose Booster']

    names = [p['name'] for p in client.get(
        '/products/by-keyword?name=seeds').get_json()]
    assert names == ['Paddy Seeds']
