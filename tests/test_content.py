import pytest

from agrimart.errors import NotFoundError, ValidationError
from agrimart.models import CropPest, CropPestImage, Keyword
from agrimart.roles import Role
from agrimart.services import content_service


def test_keywords_are_trimmed_and_unique(ctx):
    content_service.add_keyword('  organic ')
    assert [k.name for k in content_service.list_keywords()] == ['organic']

    with pytest.raises(ValidationError):
        content_service.add_keyword('organic')
    with pytest.raises(ValidationError):
        content_service.add_keyword('   ')


def test_keyword_endpoints_need_content_manager(app, client, auth_headers):
    resp = client.post(
        '/keywords', json={'name': 'seeds'}, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 201
    keyword_id = resp.get_json()['id']

    resp = client.post(
        '/keywords', json={'name': 'seeds'}, headers=auth_headers(Role.MASTER))
    assert resp.status_code == 400

    assert client.delete(
        f'/keywords/{keyword_id}',
        headers=auth_headers(Role.USER)).status_code == 403
    assert client.delete(
        f'/keywords/{keyword_id}',
        headers=auth_headers(Role.VENDOR)).status_code == 403
    assert client.get('/keywords').get_json()[0]['name'] == 'seeds'

    assert client.delete(
        f'/keywords/{keyword_id}',
        headers=auth_headers(Role.MASTER)).status_code == 200
    with app.app_context():
        assert Keyword.query.count() == 0


def test_duplicate_carrier_is_rejected(ctx):
    content_service.add_carrier('DTDC', 'https://dtdc.test/%s')
    with pytest.raises(ValidationError):
        content_service.add_carrier('DTDC')


def test_pests_are_stored_per_language(ctx):
    crop = content_service.create_crop({'name': 'Tomato', 'name_ta': 'தக்காளி'})
    content_service.create_issue('pests', crop.id, {
        'language': 'en', 'name': 'Fruit borer', 'management': 'Neem spray'})
    content_service.create_issue('pests', crop.id, {
        'language': 'ta', 'name': 'காய்ப்புழு'})

    assert CropPest.query.count() == 2
    assert [p.name for p in content_service.list_issues(
        'pests', crop.id, 'en')] == ['Fruit borer']
    assert [p.language for p in content_service.list_issues(
        'pests', crop.id, 'ta')] == ['ta']
    assert len(content_service.list_issues('pests', crop.id)) == 2

    with pytest.raises(ValidationError):
        content_service.create_issue('pests', crop.id, {
            'language': 'en', 'name': 'Fruit borer'})


def test_unknown_crop_or_issue_kind(ctx):
    with pytest.raises(NotFoundError):
        content_service.create_issue('pests', 999, {'name': 'Aphid'})
    with pytest.raises(NotFoundError):
        content_service.list_issues('weeds', 1)


def test_guide_upsert_keeps_one_row_per_language(ctx):
    crop = content_service.create_crop({'name': 'Brinjal'})
    first = content_service.upsert_guide(
        crop.id, 'en', {'cultivation_guide': 'Transplant after 30 days'})
    again = content_service.upsert_guide(
        crop.id, 'en', {'pest_management': 'Remove affected shoots'})

    assert first.id == again.id
    assert again.cultivation_guide == 'Transplant after 30 days'
    assert again.pest_management == 'Remove affected shoots'
    assert content_service.get_guide(crop.id, 'ta') is None


def test_crop_bundle_for_language(ctx):
    crop = content_service.create_crop({'name': 'Tomato'})
    content_service.upsert_guide(crop.id, 'ta', {'cultivation_guide': 'வழி'})
    pest = content_service.create_issue('pests', crop.id, {
        'language': 'ta', 'name': 'அசுவினி'})
    content_service.add_issue_image(
        'pests', pest.id, 'https://img.test/aphid.jpg', caption_ta='படம்')
    content_service.create_issue('diseases', crop.id, {
        'language': 'en', 'name': 'Early blight'})

    bundle = content_service.crop_bundle(crop.id, 'ta')

    assert bundle['crop']['name'] == 'Tomato'
    assert bundle['guide']['cultivation_guide'] == 'வழி'
    assert [p['name'] for p in bundle['pests']] == ['அசுவினி']
    assert bundle['pests'][0]['images'][0]['caption_ta'] == 'படம்'
    assert bundle['diseases'] == []

    assert content_service.crop_bundle(crop.id, 'en')['guide'] is None


def test_deleting_issue_removes_its_images(ctx):
    crop = content_service.create_crop({'name': 'Chilli'})
    pest = content_service.create_issue('pests', crop.id, {'name': 'Thrips'})
    content_service.add_issue_image('pests', pest.id, 'a.jpg')
    content_service.add_issue_image('pests', pest.id, 'b.jpg')

    content_service.delete_issue('pests', pest.id)

    assert CropPestImage.query.count() == 0


def test_crop_routes(client, auth_headers):
    headers = auth_headers(Role.MASTER)
    crop_id = client.post(
        '/crops', json={'name': 'Paddy'}, headers=headers).get_json()['id']

    resp = client.post(
        f'/crops/{crop_id}/diseases',
        json={'name': 'Blast', 'language': 'EN'},
        headers=headers,
    )
    assert resp.status_code == 201
    disease_id = resp.get_json()['id']

    resp = client.patch(
        f'/crops/diseases/{disease_id}',
        json={'management': 'Tricyclazole'},
        headers=headers,
    )
    assert resp.get_json()['management'] == 'Tricyclazole'
    assert resp.get_json()['name'] == 'Blast'

    resp = client.put(
        f'/crops/{crop_id}/guide',
        json={'language': 'en', 'cultivation_guide': 'Puddle the field'},
        headers=headers,
    )
    assert resp.status_code == 200

    bundle = client.get(f'/crops/{crop_id}/guide').get_json()
    assert bundle['guide']['cultivation_guide'] == 'Puddle the field'
    assert [d['name'] for d in bundle['diseases']] == ['Blast']

    assert client.get(
        f'/crops/{crop_id}/guide?language=fr').status_code == 400
    assert client.get(f'/crops/{crop_id}/weeds').status_code == 404
    assert client.post(
        '/crops', json={'name': 'Maize'},
        headers=auth_headers(Role.USER)).status_code == 403
