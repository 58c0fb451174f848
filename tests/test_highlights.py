"""
Highlight tests: validation, list queries, image lifecycle, public feed.
"""

import os

import pytest


def create_highlight(client, headers, **overrides):
    body = {'title': 'Open day', 'content': '<p>Visit the park</p>'}
    body.update(overrides)
    response = client.post('/api/v1/highlights', json=body, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['highlight']


@pytest.fixture
def category(client, auth_headers):
    response = client.post('/api/v1/categories', json={'category': 'Events'}, headers=auth_headers)
    return response.get_json()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateHighlight:

    def test_requires_auth(self, client, users):
        response = client.post('/api/v1/highlights', json={'title': 'x', 'content': 'y'})
        assert response.status_code == 401

    @pytest.mark.parametrize('body', [
        {'content': 'body'},
        {'title': 'Title'},
        {'title': '   ', 'content': 'body'},
        {'title': 'Title', 'content': '  '},
    ])
    def test_title_and_content_required(self, client, auth_headers, body):
        response = client.post('/api/v1/highlights', json=body, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Missing required fields: title and content are required'

    def test_defaults(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers)
        assert highlight['status'] == 'draft'
        assert highlight['seq'] == 1
        assert highlight['images'] == []
        assert highlight['sdg'] == []
        assert highlight['category'] is None
        assert highlight['content'] == '<p>Visit the park</p>'
        assert len(highlight['createdAt']) == len('2024-01-01')

    def test_sequence_is_allocated(self, client, auth_headers):
        create_highlight(client, auth_headers, seq=10)
        assert create_highlight(client, auth_headers)['seq'] == 11

    def test_duplicate_sequence(self, client, auth_headers):
        create_highlight(client, auth_headers, seq=3)
        response = client.post('/api/v1/highlights', json={
            'title': 'Another', 'content': 'x', 'seq': 3,
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Sequence already in use'

    def test_invalid_sequence(self, client, auth_headers):
        response = client.post('/api/v1/highlights', json={
            'title': 'Another', 'content': 'x', 'seq': 'first',
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Sequence must be a whole number'

    def test_invalid_status(self, client, auth_headers):
        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'status': 'archived',
        }, headers=auth_headers)
        assert response.status_code == 400
        assert 'Invalid status' in response.get_json()['message']

    def test_date_is_normalized(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers, date='2024-03-15T09:30:00.000Z')
        assert highlight['date'] == '2024-03-15'

    def test_invalid_date(self, client, auth_headers):
        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'date': '15/03/2024',
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_sdg_must_be_string_list(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers, sdg=['SDG-4 Quality Education'])
        assert highlight['sdg'] == ['SDG-4 Quality Education']

        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'sdg': 'SDG-4',
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_category_is_populated(self, client, auth_headers, category):
        highlight = create_highlight(client, auth_headers, category=category['_id'])
        assert highlight['category']['_id'] == category['_id']
        assert highlight['category']['category'] == 'Events'
        assert 'createdAt' in highlight['category']

    def test_category_object_accepted(self, client, auth_headers, category):
        highlight = create_highlight(client, auth_headers, category={'_id': category['_id'], 'category': 'Events'})
        assert highlight['category']['_id'] == category['_id']

    def test_bad_category(self, client, auth_headers):
        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'category': 'abc',
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid category ID format'

        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'category': 99,
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Category not found'

    def test_images_are_uploaded(self, client, auth_headers, make_data_uri, stored_file):
        highlight = create_highlight(client, auth_headers, images=[
            make_data_uri(1600, 800), 'https://cdn.example.com/kept.jpg',
        ])

        uploaded, linked = highlight['images']
        assert uploaded.startswith('/static/highlights/')
        assert os.path.exists(stored_file(uploaded))
        assert linked == 'https://cdn.example.com/kept.jpg'

        from PIL import Image
        with Image.open(stored_file(uploaded)) as img:
            assert img.width == 1200

    def test_bad_images_produce_warning(self, client, auth_headers, make_data_uri):
        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C',
            'images': [make_data_uri(), 'data:image/png;base64,###'],
        }, headers=auth_headers)

        assert response.status_code == 201
        body = response.get_json()
        assert len(body['highlight']['images']) == 1
        assert body['warning'] == '1 image(s) could not be processed'

    def test_images_must_be_a_list(self, client, auth_headers):
        response = client.post('/api/v1/highlights', json={
            'title': 'T', 'content': 'C', 'images': 'https://cdn.example.com/a.jpg',
        }, headers=auth_headers)
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# List / read
# ---------------------------------------------------------------------------

class TestListHighlights:

    @pytest.fixture
    def seeded(self, client, auth_headers, category):
        create_highlight(client, auth_headers, title='Solar roof', seq=3, status='published',
                         date='2024-02-01', category=category['_id'], images=['https://cdn.example.com/solar.jpg'])
        create_highlight(client, auth_headers, title='Tree planting', seq=1, status='draft', date='2024-03-01')
        create_highlight(client, auth_headers, title='Solar 100% lab', seq=2, status='published', date='2024-04-01')
        return category

    def test_default_order_is_newest_first(self, client, auth_headers, seeded):
        response = client.get('/api/v1/highlights', headers=auth_headers)
        assert response.status_code == 200
        assert [h['title'] for h in response.get_json()] == ['Solar 100% lab', 'Tree planting', 'Solar roof']
        assert response.headers['x-total-count'] == '3'

    def test_list_items_omit_content(self, client, auth_headers, seeded):
        item = client.get('/api/v1/highlights', headers=auth_headers).get_json()[-1]
        assert 'content' not in item
        assert item['category'] == {'_id': seeded['_id'], 'category': 'Events'}

    def test_sort_and_window(self, client, auth_headers, seeded):
        response = client.get('/api/v1/highlights?_sort=seq&_order=ASC&_start=1&_end=3', headers=auth_headers)
        assert [h['seq'] for h in response.get_json()] == [2, 3]
        assert response.headers['x-total-count'] == '3'

        response = client.get('/api/v1/highlights?_sort=seq&_order=desc&_start=0&_end=1', headers=auth_headers)
        assert [h['seq'] for h in response.get_json()] == [3]

    def test_unknown_sort_uses_default(self, client, auth_headers, seeded):
        response = client.get('/api/v1/highlights?_sort=content;DROP', headers=auth_headers)
        assert response.status_code == 200
        assert len(response.get_json()) == 3

    def test_filters(self, client, auth_headers, seeded):
        response = client.get('/api/v1/highlights?status=published', headers=auth_headers)
        assert response.headers['x-total-count'] == '2'

        response = client.get('/api/v1/highlights?title_like=solar', headers=auth_headers)
        assert {h['title'] for h in response.get_json()} == {'Solar roof', 'Solar 100% lab'}

        response = client.get('/api/v1/highlights?title_like=100%25', headers=auth_headers)
        assert [h['title'] for h in response.get_json()] == ['Solar 100% lab']

        response = client.get(f"/api/v1/highlights?category={seeded['_id']}", headers=auth_headers)
        assert [h['title'] for h in response.get_json()] == ['Solar roof']

    def test_dashboard(self, client, auth_headers, seeded):
        response = client.get('/api/v1/highlights/dashboard-highlights?limit=5', headers=auth_headers)
        assert response.status_code == 200
        items = response.get_json()
        assert [h['title'] for h in items] == ['Solar 100% lab', 'Solar roof']
        assert items[0]['featuredImage'] is None
        assert items[1]['featuredImage'] == 'https://cdn.example.com/solar.jpg'

    def test_get_one(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers)
        response = client.get(f"/api/v1/highlights/{highlight['_id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['content'] == '<p>Visit the park</p>'

        assert client.get('/api/v1/highlights/999', headers=auth_headers).status_code == 404
        response = client.get('/api/v1/highlights/abc', headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid highlight ID format'


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

class TestUpdateHighlight:

    def test_partial_update(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers, location='Main hall', status='draft')
        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={
            'status': 'published',
        }, headers=auth_headers)

        assert response.status_code == 200
        updated = response.get_json()['highlight']
        assert updated['status'] == 'published'
        assert updated['title'] == 'Open day'
        assert updated['location'] == 'Main hall'

    def test_empty_title_rejected(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers)
        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={'title': ''}, headers=auth_headers)
        assert response.status_code == 400

    def test_missing_highlight(self, client, auth_headers):
        response = client.patch('/api/v1/highlights/999', json={'title': 'x'}, headers=auth_headers)
        assert response.status_code == 404

    def test_duplicate_sequence(self, client, auth_headers):
        create_highlight(client, auth_headers, seq=1)
        second = create_highlight(client, auth_headers, seq=2)
        response = client.patch(f"/api/v1/highlights/{second['_id']}", json={'seq': 1}, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Sequence already in use'

    def test_image_replacement(self, client, auth_headers, make_data_uri, stored_file):
        highlight = create_highlight(client, auth_headers, images=[make_data_uri(), make_data_uri(color=(0, 90, 0))])
        first, second = highlight['images']

        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={
            'images': [make_data_uri(color=(0, 0, 200)), second],
        }, headers=auth_headers)

        assert response.status_code == 200
        images = response.get_json()['highlight']['images']
        assert images[0] == second
        assert images[1].startswith('/static/highlights/')
        assert images[1] not in (first, second)
        assert not os.path.exists(stored_file(first))
        assert os.path.exists(stored_file(second))
        assert os.path.exists(stored_file(images[1]))

    def test_images_untouched_when_absent(self, client, auth_headers):
        highlight = create_highlight(client, auth_headers, images=['https://cdn.example.com/a.jpg'])
        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={'title': 'Renamed'}, headers=auth_headers)
        assert response.get_json()['highlight']['images'] == ['https://cdn.example.com/a.jpg']

    def test_reorder_changes_featured_image(self, client, auth_headers):
        first, second = 'https://cdn.example.com/a.jpg', 'https://cdn.example.com/b.jpg'
        highlight = create_highlight(client, auth_headers, status='published', images=[first, second])

        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={
            'images': [second, first],
        }, headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['highlight']['images'] == [second, first]

        dashboard = client.get('/api/v1/highlights/dashboard-highlights', headers=auth_headers).get_json()
        assert dashboard[0]['featuredImage'] == second

    def test_kept_images_follow_client_order_before_uploads(self, client, auth_headers, make_data_uri):
        urls = [f'https://cdn.example.com/{name}.jpg' for name in ('a', 'b', 'c')]
        highlight = create_highlight(client, auth_headers, images=urls)

        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={
            'images': [make_data_uri(), urls[2], urls[0]],
        }, headers=auth_headers)
        images = response.get_json()['highlight']['images']
        assert images[:2] == [urls[2], urls[0]]
        assert images[2].startswith('/static/highlights/')

    def test_image_cap_on_update(self, client, app, auth_headers):
        app.config['HIGHLIGHT_MAX_IMAGES'] = 2
        highlight = create_highlight(client, auth_headers, images=['https://cdn.example.com/1.jpg'])
        response = client.patch(f"/api/v1/highlights/{highlight['_id']}", json={
            'images': ['https://cdn.example.com/1.jpg', 'https://cdn.example.com/2.jpg', 'https://cdn.example.com/3.jpg'],
        }, headers=auth_headers)
        assert response.get_json()['highlight']['images'] == [
            'https://cdn.example.com/1.jpg', 'https://cdn.example.com/2.jpg',
        ]


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

class TestDeleteHighlights:

    def test_delete_many(self, client, auth_headers, make_data_uri, stored_file):
        first = create_highlight(client, auth_headers, images=[make_data_uri()])
        second = create_highlight(client, auth_headers)

        response = client.delete(f"/api/v1/highlights/{first['_id']},{second['_id']},999", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['message'] == 'Successfully deleted 2 highlight(s)'
        assert not os.path.exists(stored_file(first['images'][0]))

        listing = client.get('/api/v1/highlights', headers=auth_headers)
        assert listing.get_json() == []

    def test_delete_none_found(self, client, auth_headers):
        response = client.delete('/api/v1/highlights/998,999', headers=auth_headers)
        assert response.status_code == 404
        assert response.get_json()['message'] == 'No highlights found to delete'

    def test_delete_bad_id(self, client, auth_headers):
        response = client.delete('/api/v1/highlights/1,abc', headers=auth_headers)
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Public feed
# ---------------------------------------------------------------------------

class TestPublicFeeds:

    def test_web_feed_needs_no_auth(self, client, auth_headers, category):
        create_highlight(client, auth_headers, title='First', category=category['_id'])
        second = create_highlight(client, auth_headers, title='Second', status='published')

        response = client.get('/api/v1/highlights-web')
        assert response.status_code == 200
        items = response.get_json()
        assert [h['title'] for h in items] == ['Second', 'First']
        assert items[1]['category'] == {'_id': category['_id'], 'category': 'Events'}
        assert 'content' in items[0]

        response = client.get(f"/api/v1/highlights-web/{second['_id']}")
        assert response.status_code == 200
        assert response.get_json()['title'] == 'Second'

        assert client.get('/api/v1/highlights-web/999').status_code == 404
        assert client.get('/api/v1/highlights-web/abc').status_code == 400

    def test_sdg_list(self, client):
        response = client.get('/api/v1/sdgs')
        assert response.status_code == 200
        sdgs = response.get_json()
        assert len(sdgs) == 17
        assert sdgs[0]['sdg'] == 'SDG-1 No Poverty'
