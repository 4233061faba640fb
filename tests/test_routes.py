import io

from conftest import ADMIN_HEADERS, image_bytes, suspicious_png


def _upload(client, *files, listing_id='7'):
    data = {'images': [(io.BytesIO(content), name, mime) for content, name, mime in files]}
    if listing_id is not None:
        data['listing_id'] = listing_id
    return client.post('/api/images/upload', data=data, content_type='multipart/form-data')


def _uploaded_id(client, content=None, name='photo.png', mime='image/png'):
    r = _upload(client, (content or image_bytes(), name, mime))
    assert r.status_code == 201, r.data
    return r.get_json()['images'][0]['id']


def test_health(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.get_json()['status'] == 'healthy'


def test_upload_returns_pending_records(client):
    r = _upload(client,
                (image_bytes(fmt='JPEG'), 'a.jpg', 'image/jpeg'),
                (image_bytes(), 'b.png', 'image/png'))
    assert r.status_code == 201
    body = r.get_json()
    assert body['success'] is True
    assert body['count'] == 2
    for image in body['images']:
        assert image['moderation_status'] == 'pending'
        assert image['listing_id'] == 7
        assert image['image_url'].startswith('/uploads/listings/')


def test_uploaded_image_gets_a_verdict(client):
    image_id = _uploaded_id(client)

    r = client.get(f'/api/images/{image_id}')
    assert r.status_code == 200
    image = r.get_json()['image']
    assert image['moderation_status'] == 'approved'
    assert image['moderated_by'] == 'system'


def test_uploaded_file_is_served(client):
    r = _upload(client, (image_bytes(), 'b.png', 'image/png'))
    url = r.get_json()['images'][0]['image_url']
    served = client.get(url)
    assert served.status_code == 200
    assert served.data == image_bytes()


def test_upload_rejects_wrong_type(client):
    r = _upload(client, (b'hello', 'notes.txt', 'text/plain'))
    assert r.status_code == 400
    body = r.get_json()
    assert body['error_code'] == 'INVALID_UPLOAD'
    assert body['error'] == 'File type not supported. Only JPEG, PNG, and WebP are allowed'


def test_upload_rejects_oversized_file(app, client):
    app.extensions['image_moderation'].storage.max_file_size = 1024
    r = _upload(client, (image_bytes(size=(400, 400), color=(10, 200, 90)) + b'\0' * 2048,
                         'big.png', 'image/png'))
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'INVALID_UPLOAD'


def test_upload_rejects_too_many_files(client):
    files = [(image_bytes(), f'{i}.png', 'image/png') for i in range(11)]
    r = _upload(client, *files)
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'TOO_MANY_FILES'


def test_upload_requires_files_and_listing(client):
    r = client.post('/api/images/upload', data={'listing_id': '7'},
                    content_type='multipart/form-data')
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'NO_FILES'

    r = _upload(client, (image_bytes(), 'a.png', 'image/png'), listing_id=None)
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'VALIDATION_ERROR'


def test_one_bad_file_stores_nothing(client):
    r = _upload(client,
                (image_bytes(), 'a.png', 'image/png'),
                (b'x', 'b.gif', 'image/gif'))
    assert r.status_code == 400
    assert client.get('/api/images/1').status_code == 404


def test_unknown_image_is_404(client):
    r = client.get('/api/images/999')
    assert r.status_code == 404
    assert r.get_json()['error_code'] == 'IMAGE_NOT_FOUND'


def test_admin_routes_require_key(client):
    assert client.get('/api/images/admin/flagged').status_code == 401
    r = client.get('/api/images/admin/flagged',
                   headers={'X-Admin-Key': 'wrong', 'X-Admin-Id': 'admin-1'})
    assert r.status_code == 401
    r = client.get('/api/images/admin/flagged', headers={'X-Admin-Key': 'test-admin-key'})
    assert r.status_code == 400


def test_flagged_list(client):
    flagged_id = _uploaded_id(client, suspicious_png())
    _uploaded_id(client)

    r = client.get('/api/images/admin/flagged', headers=ADMIN_HEADERS)
    assert r.status_code == 200
    body = r.get_json()
    assert [i['id'] for i in body['images']] == [flagged_id]

    r = client.get('/api/images/admin/flagged?limit=0', headers=ADMIN_HEADERS)
    assert r.status_code == 400


def test_manual_review_flow(client):
    image_id = _uploaded_id(client, suspicious_png())

    r = client.post(f'/api/images/admin/review/{image_id}', headers=ADMIN_HEADERS,
                    json={'action': 'approve', 'reason': '  looks fine  '})
    assert r.status_code == 200
    image = r.get_json()['image']
    assert image['moderation_status'] == 'approved'
    assert image['moderated_by'] == 'admin-1'
    assert image['moderation_reason'] == 'looks fine'

    r = client.get(f'/api/images/admin/{image_id}/logs', headers=ADMIN_HEADERS)
    assert [log['moderation_type'] for log in r.get_json()['logs']] == ['nsfw', 'manual_review']


def test_manual_review_validation(client):
    image_id = _uploaded_id(client)

    r = client.post(f'/api/images/admin/review/{image_id}', headers=ADMIN_HEADERS,
                    json={'action': 'maybe'})
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'VALIDATION_ERROR'

    r = client.post(f'/api/images/admin/review/{image_id}', headers=ADMIN_HEADERS)
    assert r.status_code == 400

    r = client.post(f'/api/images/admin/review/{image_id}',
                    headers={'X-Admin-Key': 'test-admin-key', 'X-Admin-Id': 'system'},
                    json={'action': 'reject'})
    assert r.status_code == 400
    assert r.get_json()['error_code'] == 'INVALID_REVIEW'

    r = client.post('/api/images/admin/review/999', headers=ADMIN_HEADERS,
                    json={'action': 'reject'})
    assert r.status_code == 404


def test_remoderate(client):
    image_id = _uploaded_id(client, suspicious_png())

    r = client.post(f'/api/images/admin/remoderate/{image_id}', headers=ADMIN_HEADERS)
    assert r.status_code == 200
    body = r.get_json()
    assert body['image']['moderation_status'] == 'flagged'
    assert body['result']['categories'] == ['suspicious_content']

    assert client.post('/api/images/admin/remoderate/999', headers=ADMIN_HEADERS).status_code == 404


def test_stats(client):
    _uploaded_id(client)
    _uploaded_id(client, suspicious_png())

    r = client.get('/api/images/admin/stats?days=7', headers=ADMIN_HEADERS)
    assert r.status_code == 200
    stats = r.get_json()['stats']
    assert stats['period_days'] == 7
    assert stats['by_status']['approved'] == 1
    assert stats['by_status']['flagged'] == 1
    assert stats['decisions']['total'] == 2

    assert client.get('/api/images/admin/stats?days=0', headers=ADMIN_HEADERS).status_code == 400


def test_logs_for_unknown_image(client):
    r = client.get('/api/images/admin/999/logs', headers=ADMIN_HEADERS)
    assert r.status_code == 404


def test_error_health_endpoint(client):
    assert client.get('/health/errors').status_code == 401

    r = client.get('/health/errors', headers=ADMIN_HEADERS)
    assert r.status_code == 200
    body = r.get_json()
    assert body['errors']['total_errors'] == 0
    assert body['moderation']['external_classifier_configured'] is False
    assert body['moderation']['nsfw_threshold'] == 0.7


def test_review_body_must_be_an_object(client):
    image_id = _uploaded_id(client)

    for body in ([], 'approve', 3):
        r = client.post(f'/api/images/admin/review/{image_id}', headers=ADMIN_HEADERS, json=body)
        assert r.status_code == 400
        assert r.get_json()['error_code'] == 'VALIDATION_ERROR'
