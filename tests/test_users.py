import pytest

from agrimart.errors import ValidationError
from agrimart.extensions import db
from agrimart.models import AuditLog, User
from agrimart.roles import Role
from agrimart.services import user_service


@pytest.fixture
def master(ctx, make_user):
    return make_user('9700000001', Role.MASTER)


def test_role_change_is_audited(master, make_user):
    customer = make_user('9700000002')

    user_service.set_user_role(master, customer.id, 'vendor')

    assert db.session.get(User, customer.id).role == int(Role.VENDOR)
    audit = AuditLog.query.filter_by(action='ROLE_CHANGE').one()
    assert audit.actor_id == master.id
    assert audit.target_id == customer.id
    assert audit.get_payload() == {'from': 'USER', 'to': 'VENDOR'}


def test_same_role_is_a_no_op(master):
    user_service.set_user_role(master, master.id, Role.MASTER)
    assert AuditLog.query.count() == 0


def test_last_master_cannot_be_demoted(master, make_user):
    with pytest.raises(ValidationError):
        user_service.set_user_role(master, master.id, Role.USER)

    second = make_user('9700000003', Role.MASTER)
    user_service.set_user_role(second, master.id, Role.SUPPORT)
    assert db.session.get(User, master.id).role == int(Role.SUPPORT)

    with pytest.raises(ValidationError):
        user_service.set_user_role(second, second.id, Role.VENDOR)


def test_invalid_role_is_rejected(master, make_user):
    customer = make_user('9700000004')
    with pytest.raises(ValidationError):
        user_service.set_user_role(master, customer.id, 7)
    with pytest.raises(ValidationError):
        user_service.set_user_role(master, customer.id, 'owner')


def test_update_user_changes_only_sent_fields(master, make_user):
    customer = make_user('9700000005', full_name='Selvi')
    user_service.update_user(master, customer.id, {'address': 'Salem'})

    customer = db.session.get(User, customer.id)
    assert customer.address == 'Salem'
    assert customer.full_name == 'Selvi'


def test_update_user_rejects_taken_number(master, make_user):
    customer = make_user('9700000006')
    with pytest.raises(ValidationError):
        user_service.update_user(
            master, customer.id, {'number': master.number})


def test_staff_listing(master, make_user):
    make_user('9700000007')
    make_user('9700000008', Role.SUPPORT)

    staff = {u.number for u in user_service.list_users(staff_only=True)}
    assert staff == {'9700000001', '9700000008'}
    assert len(user_service.list_users()) == 3


def test_user_endpoints_are_master_only(client, auth_headers, users):
    assert client.get(
        '/users', headers=auth_headers(Role.VENDOR)).status_code == 403
    assert client.get(
        '/users', headers=auth_headers(Role.SUPPORT)).status_code == 403

    rows = client.get('/admins', headers=auth_headers(Role.MASTER)).get_json()
    assert {r['role'] for r in rows} == {
        int(Role.VENDOR), int(Role.MASTER), int(Role.SUPPORT)}

    resp = client.patch(
        f'/users/{users[Role.USER]}/role',
        json={'role': int(Role.SUPPORT)},
        headers=auth_headers(Role.MASTER),
    )
    assert resp.status_code == 200
    assert resp.get_json()['role'] == int(Role.SUPPORT)
