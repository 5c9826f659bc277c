"""
HTTP route tests using the Flask test client.
"""
import zipfile
from io import BytesIO

import pytest

from loyalty_wallet import create_app


@pytest.fixture
def app(wallet_config, issuer):
    return create_app(config=wallet_config, issuer=issuer, testing=True)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.mark.integration
class TestIssueCardRoute:
    """Test POST /api/cards."""

    def test_issue_apple_card(self, client):
        response = client.post('/api/cards', json={'customerName': 'Alice', 'points': 150})

        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['tier'] == 'Silver'
        assert body['data']['platform'] == 'apple'
        assert body['data']['url'].endswith('.pkpass')

    def test_issue_google_card(self, client):
        response = client.post('/api/cards', json={
            'customerName': 'Bob', 'points': '1500', 'platform': 'google'
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['tier'] == 'Platinum'
        assert data['url'].startswith('https://pay.google.com/gp/v/save/')

    def test_empty_name(self, client):
        response = client.post('/api/cards', json={'customerName': '', 'points': 150})

        assert response.status_code == 400
        assert response.get_json()['error_code'] == 'INVALID_REQUEST'

    @pytest.mark.parametrize('points', [None, 'lots', True, 1.5])
    def test_bad_points(self, client, points):
        response = client.post('/api/cards', json={'customerName': 'Alice', 'points': points})
        assert response.status_code == 400

    def test_missing_body(self, client):
        response = client.post('/api/cards', data='not json', content_type='text/plain')
        assert response.status_code == 400


@pytest.mark.integration
class TestDownloadRoute:
    """Test GET /passes/<file>."""

    def test_download_issued_pass(self, client):
        """
        GIVEN a pass issued through the API
        WHEN downloading it from the returned URL path
        THEN the archive is served with the pkpass content type and no caching
        """
        issued = client.post('/api/cards', json={'customerName': 'Alice', 'points': 150}).get_json()
        filename = issued['data']['storageKey']

        response = client.get(f'/passes/{filename}')

        assert response.status_code == 200
        assert response.headers['Content-Type'] == 'application/vnd.apple.pkpass'
        assert 'no-store' in response.headers['Cache-Control']
        with zipfile.ZipFile(BytesIO(response.data)) as bundle:
            assert 'signature' in bundle.namelist()

    def test_unknown_pass(self, client):
        response = client.get('/passes/0f8fad5b-d9cb-469f-a165-70867728950e.pkpass')
        assert response.status_code == 404

    @pytest.mark.parametrize('path', ['/passes/secrets.json', '/passes/..%2Fconfig.pkpass'])
    def test_other_files_are_not_served(self, client, path):
        assert client.get(path).status_code == 404


@pytest.mark.integration
class TestInfoRoutes:
    """Test status and preview routes."""

    def test_index(self, client):
        body = client.get('/').get_json()

        assert body['status'] == 'ok'
        assert body['platforms']['apple']['ready'] is True

    def test_preview(self, client):
        response = client.get('/api/cards/preview?name=Bob&points=1500')

        assert response.status_code == 200
        assert response.get_json()['data']['tier'] == 'Platinum'

    def test_preview_without_name(self, client):
        assert client.get('/api/cards/preview?points=10').status_code == 400
