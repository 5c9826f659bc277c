"""
Google Wallet REST client tests.
"""
from unittest.mock import Mock

import jwt
import pytest
import requests

from loyalty_wallet.errors import ClassConflictError, WalletApiError
from loyalty_wallet.services.google_api import GoogleWalletClient, API_BASE, JWT_BEARER_GRANT

from tests.helpers import make_response, SERVICE_ACCOUNT_EMAIL, ISSUER_ID

CLASS_ID = f'{ISSUER_ID}.loyalty_card'
TOKEN_REPLY = {'access_token': 'ya29.test-token', 'expires_in': 3600}


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.post.return_value = make_response(200, json_body=TOKEN_REPLY)
    return session


@pytest.fixture
def client(wallet_config, token_signer, session):
    return GoogleWalletClient(wallet_config, token_signer, SERVICE_ACCOUNT_EMAIL, session=session)


@pytest.mark.unit
class TestAccessToken:
    """Test the service account token exchange."""

    def test_exchanges_signed_assertion(self, client, session, signing_key):
        assert client.access_token() == 'ya29.test-token'

        data = session.post.call_args[1]['data']
        assert data['grant_type'] == JWT_BEARER_GRANT
        claims = jwt.decode(
            data['assertion'],
            signing_key.public_key(),
            algorithms=['RS256'],
            audience='https://oauth2.googleapis.com/token',
        )
        assert claims['iss'] == SERVICE_ACCOUNT_EMAIL

    def test_token_is_cached(self, client, session):
        client.access_token()
        client.access_token()
        assert session.post.call_count == 1

    def test_failed_exchange(self, client, session):
        session.post.return_value = make_response(401, json_body={'error': 'invalid_grant'})

        with pytest.raises(WalletApiError) as exc_info:
            client.access_token()
        assert exc_info.value.status_code == 401


@pytest.mark.unit
class TestClassManagement:
    """Test class creation and the conflict policy."""

    def test_create_class(self, client, session):
        session.request.return_value = make_response(200, json_body={'id': CLASS_ID})

        assert client.create_class({'id': CLASS_ID}) == 'created'

        method, url = session.request.call_args[0]
        assert method == 'POST'
        assert url == f'{API_BASE}/genericClass'
        assert session.request.call_args[1]['headers']['Authorization'] == 'Bearer ya29.test-token'

    def test_conflict_accepted(self, client, session, wallet_config):
        """
        GIVEN CLASS_CONFLICT_POLICY=accept
        WHEN the class already exists (409)
        THEN creation reports 'exists' without raising
        """
        wallet_config.class_conflict_policy = 'accept'
        session.request.return_value = make_response(409, json_body={'error': {'code': 409}})

        assert client.create_class({'id': CLASS_ID}) == 'exists'

    def test_conflict_is_error(self, client, session, wallet_config):
        """
        GIVEN CLASS_CONFLICT_POLICY=error
        WHEN the class already exists (409)
        THEN ClassConflictError is raised
        """
        wallet_config.class_conflict_policy = 'error'
        session.request.return_value = make_response(409, json_body={'error': {'code': 409}})

        with pytest.raises(ClassConflictError):
            client.create_class({'id': CLASS_ID})

    def test_other_failures(self, client, session):
        session.request.return_value = make_response(500, b'oops', 'text/plain')

        with pytest.raises(WalletApiError) as exc_info:
            client.create_class({'id': CLASS_ID})
        assert exc_info.value.status_code == 500

    def test_ensure_class_skips_existing(self, client, session):
        session.request.return_value = make_response(200, json_body={'id': CLASS_ID})

        assert client.ensure_class({'id': CLASS_ID}) == 'exists'
        assert session.request.call_count == 1

    def test_ensure_class_creates_missing(self, client, session):
        session.request.side_effect = [
            make_response(404, json_body={}),
            make_response(200, json_body={'id': CLASS_ID}),
        ]

        assert client.ensure_class({'id': CLASS_ID}) == 'created'


@pytest.mark.unit
class TestObjects:
    """Test object lookups and updates."""

    def test_get_missing_object(self, client, session):
        session.request.return_value = make_response(404, json_body={})
        assert client.get_object(f'{ISSUER_ID}.card-1') is None

    def test_update_object_with_message(self, client, session):
        session.request.return_value = make_response(200, json_body={'id': f'{ISSUER_ID}.card-1'})

        client.update_object(f'{ISSUER_ID}.card-1', {'subheader': 'Gold'}, message='You are Gold')

        method, url = session.request.call_args[0]
        body = session.request.call_args[1]['json']
        assert method == 'PATCH'
        assert url.endswith(f'/genericObject/{ISSUER_ID}.card-1')
        assert body['subheader'] == 'Gold'
        assert body['messages'][0]['body'] == 'You are Gold'

    def test_update_object_failure(self, client, session):
        session.request.return_value = make_response(403, b'denied', 'text/plain')

        with pytest.raises(WalletApiError):
            client.update_object(f'{ISSUER_ID}.card-1', {'subheader': 'Gold'})

    def test_send_message(self, client, session):
        session.request.return_value = make_response(200, json_body={})

        client.send_message(f'{ISSUER_ID}.card-1', 'Double points today')

        assert session.request.call_args[0][1].endswith('/addMessage')
        assert session.request.call_args[1]['json']['message']['body'] == 'Double points today'
