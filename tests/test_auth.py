from agrimart.extensions import db
from agrimart.models import AuditLog, User
from agrimart.roles import Role


def _signup(client, number='9600000001', password='hashed-on-device'):
    return client.post('/auth/signup', json={
        'number': number,
        'password': password,
        'full_name': 'Murugan',
    })


def test_signup_returns_tokens_and_user(app, client):
    resp = _signup(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['token_type'] == 'Bearer'
    assert body['access_token'] and body['refresh_token']
    assert body['user']['role'] == int(Role.USER)

    with app.app_context():
        user = User.query.filter_by(number='9600000001').one()
        # Stored hashed, never as sent.
        assert user.password_hash != 'hashed-on-device'
        assert AuditLog.query.filter_by(action='SIGNUP').count() == 1


def test_duplicate_number_is_rejected(client):
    _signup(client)
    resp = _signup(client)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Phone number already registered'


def test_signin(app, client):
    _signup(client)
    resp = client.post('/auth/signin', json={
        'number': '9600000001', 'password': 'hashed-on-device'})
    assert resp.status_code == 200

    me = client.get('/auth/me', headers={
        'Authorization': f"Bearer {resp.get_json()['access_token']}"})
    assert me.get_json()['full_name'] == 'Murugan'

    with app.app_context():
        assert User.query.one().last_login_at is not None


def test_bad_signin_is_401_and_audited(app, client):
    _signup(client)
    resp = client.post('/auth/signin', json={
        'number': '9600000001', 'password': 'wrong'})
    assert resp.status_code == 401

    resp = client.post('/auth/signin', json={
        'number': '0000000000', 'password': 'x'})
    assert resp.status_code == 401

    with app.app_context():
        assert AuditLog.query.filter_by(
            action='SIGNIN_FAILED').count() == 2


def test_refresh_issues_new_tokens(client):
    tokens = _signup(client).get_json()

    resp = client.post(
        '/auth/refresh', json={'refresh_token': tokens['refresh_token']})
    assert resp.status_code == 200
    assert resp.get_json()['user']['number'] == '9600000001'

    # An access token is not a refresh token.
    resp = client.post(
        '/auth/refresh', json={'refresh_token': tokens['access_token']})
    assert resp.status_code == 401


def test_refresh_token_cannot_authorize_requests(client):
    tokens = _signup(client).get_json()
    resp = client.get('/auth/me', headers={
        'Authorization': f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401


def test_update_profile_ignores_role(app, client):
    tokens = _signup(client).get_json()
    headers = {'Authorization': f"Bearer {tokens['access_token']}"}

    resp = client.patch('/auth/me', json={
        'delivery_address': '12 Temple St, Madurai',
        'role': int(Role.MASTER),
    }, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['delivery_address'] == '12 Temple St, Madurai'
    assert body['role'] == int(Role.USER)


def test_create_admin_requires_master(app, client, auth_headers):
    body = {'number': '9600000099', 'password': 'pw', 'role': 1}

    resp = client.post(
        '/auth/create-admin', json=body, headers=auth_headers(Role.VENDOR))
    assert resp.status_code == 403

    resp = client.post(
        '/auth/create-admin', json=body, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 201
    assert resp.get_json()['role'] == int(Role.VENDOR)

    with app.app_context():
        audit = AuditLog.query.filter_by(action='ADMIN_CREATE').one()
        assert audit.get_payload() == {'role': 'VENDOR'}
        assert db.session.get(User, audit.target_id).number == '9600000099'


def test_create_admin_rejects_customer_role(client, auth_headers):
    resp = client.post('/auth/create-admin', json={
        'number': '9600000098', 'password': 'pw', 'role': 0,
    }, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 400


def test_unknown_user_in_token_is_rejected(app, client, auth_headers):
    headers = auth_headers(Role.USER)
    assert client.get('/auth/me', headers=headers).status_code == 200

    with app.app_context():
        db.session.delete(User.query.filter_by(number='9000000000').one())
        db.session.commit()

    assert client.get('/auth/me', headers=headers).status_code == 401
