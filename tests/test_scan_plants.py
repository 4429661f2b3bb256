import pytest

from agrimart.errors import NotFoundError, ValidationError
from agrimart.models import ScanPlant
from agrimart.roles import Role
from agrimart.services import content_service


def test_plants_are_listed_by_name(ctx):
    content_service.add_scan_plant('Tomato', 'தக்காளி')
    content_service.add_scan_plant('  Brinjal ')

    plants = content_service.list_scan_plants()
    assert [p.name for p in plants] == ['Brinjal', 'Tomato']
    assert plants[0].name_ta is None
    assert plants[1].to_dict()['name_ta'] == 'தக்காளி'


def test_duplicate_or_blank_plant_is_rejected(ctx):
    content_service.add_scan_plant('Tomato')

    with pytest.raises(ValidationError):
        content_service.add_scan_plant(' Tomato ')
    with pytest.raises(ValidationError):
        content_service.add_scan_plant('   ')
    assert ScanPlant.query.count() == 1


def test_deleting_unknown_plant(ctx):
    with pytest.raises(NotFoundError):
        content_service.delete_scan_plant(4040)


def test_scan_plant_endpoints(app, client, auth_headers):
    body = {'name': 'Chilli', 'name_ta': 'மிளகாய்'}
    assert client.post('/scan-plants', json=body).status_code == 401
    assert client.post(
        '/scan-plants', json=body,
        headers=auth_headers(Role.VENDOR)).status_code == 403

    resp = client.post(
        '/scan-plants', json=body, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 201
    plant_id = resp.get_json()['id']

    resp = client.post(
        '/scan-plants', json=body, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 400

    # Anyone may read the list.
    rows = client.get('/scan-plants').get_json()
    assert rows == [{'id': plant_id, 'name': 'Chilli', 'name_ta': 'மிளகாய்'}]

    assert client.delete(
        f'/scan-plants/{plant_id}',
        headers=auth_headers(Role.USER)).status_code == 403
    resp = client.delete(
        f'/scan-plants/{plant_id}', headers=auth_headers(Role.MASTER))
    assert resp.get_json() == {'ok': True}

    with app.app_context():
        assert ScanPlant.query.count() == 0
