"""Run a quick smoke test against the app.

Drives the API in-process through FastAPI's TestClient using the
`PortalClient` helpers: health check, register, create a published blog
and read it back from the public listing. Pass a base URL to run the
same flow against a live server instead.

    python scripts/test_request.py [http://localhost:8000]
"""

import os
import sys
import uuid

# Ensure backend folder is on sys.path so `portal` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from portal.client import PortalClient


def build_client(argv):
    if len(argv) > 1:
        return PortalClient(argv[1])
    from fastapi.testclient import TestClient
    from portal.main import app
    return PortalClient('http://testserver', session=TestClient(app))


def main(argv):
    client = build_client(argv)
    health = client.request('GET', '/health')
    print('HEALTH:', health['status'])

    suffix = uuid.uuid4().hex[:8]
    result = client.register(f'smoke_{suffix}', f'smoke_{suffix}@example.com', 'smoke-pass')
    print('REGISTER:', result)
    if not result['success']:
        return 1

    blog = client.create_blog(title=f'Smoke {suffix}', content='Smoke test post', tags='smoke', status='published')
    print('CREATE BLOG:', blog['status'], blog.get('message'))
    listing = client.public_blogs(tags='smoke')
    print('PUBLIC TOTAL:', listing['data']['pagination']['total'])

    client.logout()
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv))
