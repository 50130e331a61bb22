import math

from fastapi.testclient import TestClient

from portal.main import app

client = TestClient(app)


def _create(headers, **fields):
    payload = {'title': 'Title', 'content': 'Some content', **fields}
    r = client.post('/api/blogs', json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()['data']['blog']


def _public(**params):
    r = client.get('/api/blogs/public', params=params)
    assert r.status_code == 200, r.text
    return r.json()['data']


def test_draft_is_hidden_until_published(make_user):
    headers, _ = make_user()
    draft = _create(headers, title='A', content='B', status='draft')
    assert draft['publishedAt'] is None
    assert _public()['blogs'] == []

    older = _create(headers, title='Older', content='published first', status='published')

    r = client.put(f"/api/blogs/{draft['id']}", json={'status': 'published'}, headers=headers)
    assert r.status_code == 200
    assert r.json()['data']['blog']['publishedAt'] is not None

    titles = [b['title'] for b in _public()['blogs']]
    assert titles == ['A', older['title']]


def test_create_defaults_and_tag_parsing(make_user):
    headers, user = make_user()
    blog = _create(headers, tags='python, web ,python,, api', content='x' * 400)
    assert blog['tags'] == ['python', 'web', 'api']
    assert blog['category'] == 'General'
    assert blog['status'] == 'draft'
    assert blog['author'] == {'id': user['id'], 'username': user['username']}
    assert blog['excerpt'].endswith('...')
    assert len(blog['excerpt']) <= 153
    assert blog['likesCount'] == 0 and blog['views'] == 0

    blog = _create(headers, tags=['a', 'b'], excerpt='Short summary')
    assert blog['tags'] == ['a', 'b']
    assert blog['excerpt'] == 'Short summary'


def test_create_validation(make_user):
    headers, _ = make_user()
    r = client.post('/api/blogs', json={'title': '', 'content': 'x'}, headers=headers)
    assert r.status_code == 400
    assert 'Title is required' in r.json()['errors']

    r = client.post('/api/blogs', json={'title': 't' * 201, 'content': 'x'}, headers=headers)
    assert r.status_code == 400
    assert 'Title cannot exceed 200 characters' in r.json()['errors']

    r = client.post('/api/blogs', json={'title': 'ok', 'content': 'x', 'excerpt': 'e' * 301}, headers=headers)
    assert r.status_code == 400

    r = client.post('/api/blogs', json={'title': 'ok', 'content': 'x', 'status': 'secret'}, headers=headers)
    assert r.status_code == 400

    assert client.post('/api/blogs', json={'title': 'ok', 'content': 'x'}).status_code == 401


def test_generated_excerpt_follows_content_but_custom_one_stays(make_user):
    headers, _ = make_user()
    blog = _create(headers, content='Original body')
    assert blog['excerpt'] == 'Original body'

    r = client.put(f"/api/blogs/{blog['id']}", json={'content': 'Rewritten body'}, headers=headers)
    assert r.json()['data']['blog']['excerpt'] == 'Rewritten body'

    custom = _create(headers, content='Body one', excerpt='Hand written')
    r = client.put(f"/api/blogs/{custom['id']}", json={'content': 'Body two'}, headers=headers)
    assert r.json()['data']['blog']['excerpt'] == 'Hand written'


def test_only_owner_can_update_or_delete(make_user):
    owner, _ = make_user('owner')
    intruder, _ = make_user('intruder')
    blog = _create(owner, title='Mine')

    r = client.put(f"/api/blogs/{blog['id']}", json={'title': 'Hijacked'}, headers=intruder)
    assert r.status_code == 404
    assert r.json()['success'] is False
    r = client.delete(f"/api/blogs/{blog['id']}", headers=intruder)
    assert r.status_code == 404

    r = client.put(f"/api/blogs/{blog['id']}", json={'title': 'Still mine', 'tags': ['x']}, headers=owner)
    assert r.status_code == 200
    assert r.json()['data']['blog']['title'] == 'Still mine'
    assert r.json()['data']['blog']['tags'] == ['x']

    assert client.delete(f"/api/blogs/{blog['id']}", headers=owner).status_code == 200
    assert client.put(f"/api/blogs/{blog['id']}", json={'title': 'gone'}, headers=owner).status_code == 404


def test_update_keeps_existing_tags_and_publish_time(make_user):
    headers, _ = make_user()
    blog = _create(headers, tags=['a', 'b'], status='published')
    first_published = blog['publishedAt']

    r = client.put(f"/api/blogs/{blog['id']}", json={'tags': 'b, c'}, headers=headers)
    assert sorted(r.json()['data']['blog']['tags']) == ['b', 'c']

    client.put(f"/api/blogs/{blog['id']}", json={'status': 'archived'}, headers=headers)
    r = client.put(f"/api/blogs/{blog['id']}", json={'status': 'published'}, headers=headers)
    assert r.json()['data']['blog']['publishedAt'] == first_published


def test_like_toggles_and_counts_unique_users(make_user):
    author, _ = make_user('author')
    fan, fan_user = make_user('fan')
    other, _ = make_user('other')
    blog = _create(author, status='published')
    url = f"/api/blogs/{blog['id']}/like"

    r = client.post(url, headers=fan)
    assert r.json()['data'] == {'liked': True, 'likesCount': 1}
    r = client.post(url, headers=other)
    assert r.json()['data'] == {'liked': True, 'likesCount': 2}
    r = client.post(url, headers=fan)
    assert r.json()['message'] == 'Blog unliked'
    assert r.json()['data'] == {'liked': False, 'likesCount': 1}

    detail = client.get(f"/api/blogs/public/{blog['id']}").json()['data']['blog']
    assert detail['likesCount'] == len(detail['likes']) == 1
    assert fan_user['id'] not in detail['likes']

    assert client.post('/api/blogs/999/like', headers=fan).status_code == 404


def test_comments_and_delete_permissions(make_user):
    author, _ = make_user('author')
    commenter, commenter_user = make_user('commenter')
    stranger, _ = make_user('stranger')
    blog = _create(author, status='published')
    base = f"/api/blogs/{blog['id']}/comments"

    r = client.post(base, json={'content': '   '}, headers=commenter)
    assert r.status_code == 400
    assert 'Comment content is required' in r.json()['errors']

    r = client.post(base, json={'content': 'Nice post'}, headers=commenter)
    assert r.status_code == 201
    comment = r.json()['data']['comment']
    assert comment['author']['username'] == commenter_user['username']
    second = client.post(base, json={'content': 'Second'}, headers=commenter).json()['data']['comment']
    third = client.post(base, json={'content': 'Mine'}, headers=stranger).json()['data']['comment']

    detail = client.get(f"/api/blogs/public/{blog['id']}").json()['data']['blog']
    assert [c['content'] for c in detail['comments']] == ['Nice post', 'Second', 'Mine']

    r = client.delete(f"{base}/{comment['id']}", headers=stranger)
    assert r.status_code == 403

    assert client.delete(f"{base}/{comment['id']}", headers=commenter).status_code == 200
    assert client.delete(f"{base}/{second['id']}", headers=author).status_code == 200
    assert client.delete(f"{base}/{third['id']}", headers=stranger).status_code == 200
    assert client.delete(f"{base}/{third['id']}", headers=stranger).status_code == 404
    assert client.post('/api/blogs/999/comments', json={'content': 'x'}, headers=author).status_code == 404


def test_comment_must_belong_to_blog(make_user):
    headers, _ = make_user()
    blog_a = _create(headers)
    blog_b = _create(headers)
    comment = client.post(f"/api/blogs/{blog_a['id']}/comments", json={'content': 'hi'}, headers=headers).json()['data']['comment']
    r = client.delete(f"/api/blogs/{blog_b['id']}/comments/{comment['id']}", headers=headers)
    assert r.status_code == 404
    assert r.json()['message'] == 'Comment not found'


def test_public_detail_counts_views_and_hides_drafts(make_user):
    headers, _ = make_user()
    published = _create(headers, status='published')
    draft = _create(headers)

    for expected in (1, 2, 3):
        r = client.get(f"/api/blogs/public/{published['id']}")
        assert r.status_code == 200
        assert r.json()['data']['blog']['views'] == expected

    assert client.get(f"/api/blogs/public/{draft['id']}").status_code == 404
    assert client.get('/api/blogs/public/999').status_code == 404


def test_public_filters(make_user):
    headers, _ = make_user()
    _create(headers, title='Flask tips', content='routing', category='Technology', tags=['python', 'web'], status='published')
    _create(headers, title='Sourdough', content='bread baking at home', category='Food', tags=['baking'], status='published')
    _create(headers, title='Travel notes', content='Lisbon trams', category='Travel & Leisure', tags=['europe'], status='published')
    _create(headers, title='Hidden python', content='draft', category='Technology', tags=['python'])

    assert {b['title'] for b in _public(category='tech')['blogs']} == {'Flask tips'}
    assert {b['title'] for b in _public(category='& leisure')['blogs']} == {'Travel notes'}
    assert {b['title'] for b in _public(tags='baking,europe')['blogs']} == {'Sourdough', 'Travel notes'}
    assert {b['title'] for b in _public(search='BREAD')['blogs']} == {'Sourdough'}
    assert {b['title'] for b in _public(search='python')['blogs']} == {'Flask tips'}
    assert {b['title'] for b in _public(search='lisbon sourdough')['blogs']} == {'Sourdough', 'Travel notes'}
    assert _public(category='tech', tags='baking')['blogs'] == []
    assert _public(search='100%')['blogs'] == []

    listing = _public()
    assert len(listing['blogs']) == 3
    assert all('comments' not in b for b in listing['blogs'])


def test_public_pagination(make_user):
    headers, _ = make_user()
    for i in range(7):
        _create(headers, title=f'Post {i}', status='published')
    _create(headers, title='Draft')

    limit = 3
    first = _public(page=1, limit=limit)
    total = first['pagination']['total']
    pages = first['pagination']['pages']
    assert total == 7
    assert pages == math.ceil(total / limit) == 3
    assert first['pagination']['current'] == 1

    seen = []
    for page in range(1, pages + 1):
        seen.extend(b['title'] for b in _public(page=page, limit=limit)['blogs'])
    assert len(seen) == total
    assert seen == [f'Post {i}' for i in reversed(range(7))]
    assert _public(page=pages + 1, limit=limit)['blogs'] == []

    assert client.get('/api/blogs/public', params={'page': 0}).status_code == 400
    assert client.get('/api/blogs/public', params={'limit': 1000}).status_code == 400


def test_my_blogs_lists_all_statuses(make_user):
    headers, user = make_user('writer')
    other, _ = make_user('other')
    _create(headers, title='d1')
    _create(headers, title='p1', status='published')
    _create(other, title='not mine', status='published')

    r = client.get('/api/blogs', headers=headers)
    assert r.status_code == 200
    data = r.json()['data']
    assert [b['title'] for b in data['blogs']] == ['p1', 'd1']
    assert data['pagination']['total'] == 2

    r = client.get('/api/blogs', params={'status': 'draft'}, headers=headers)
    assert [b['title'] for b in r.json()['data']['blogs']] == ['d1']
    assert client.get('/api/blogs').status_code == 401


def test_deleting_blog_removes_likes_and_comments(make_user):
    headers, _ = make_user()
    blog = _create(headers, status='published')
    client.post(f"/api/blogs/{blog['id']}/like", headers=headers)
    client.post(f"/api/blogs/{blog['id']}/comments", json={'content': 'bye'}, headers=headers)
    assert client.delete(f"/api/blogs/{blog['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/blogs/public/{blog['id']}").status_code == 404
    assert _public()['pagination']['total'] == 0
