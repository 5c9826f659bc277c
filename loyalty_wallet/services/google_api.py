# loyalty_wallet/services/google_api.py

"""
Google Wallet REST Client

Thin client for the Wallet Objects API: service-account token exchange,
generic class management and object updates. Whether an existing class
counts as success is decided by CLASS_CONFLICT_POLICY.
"""

import time
import logging
from typing import Dict, Any, Optional

import requests

from loyalty_wallet.config import WalletConfig
from loyalty_wallet.crypto.jws import CompactTokenSigner, bearer_claims, TOKEN_URL, WALLET_SCOPE
from loyalty_wallet.errors import ClassConflictError, WalletApiError

logger = logging.getLogger(__name__)

API_BASE = 'https://walletobjects.googleapis.com/walletobjects/v1'
JWT_BEARER_GRANT = 'urn:ietf:params:oauth:grant-type:jwt-bearer'
MESSAGE_TYPE = 'TEXT_AND_NOTIFY'

CLASS_CREATED = 'created'
CLASS_EXISTS = 'exists'


class GoogleWalletClient:
    """
    Calls the Wallet Objects API with a service-account bearer token.

    Tokens are cached until one minute before they expire.
    """

    def __init__(
        self,
        config: WalletConfig,
        signer: CompactTokenSigner,
        issuer_email: str,
        session: Optional[requests.Session] = None
    ):
        self.config = config
        self.signer = signer
        self.issuer_email = issuer_email
        self.session = session or requests.Session()
        self._access_token = None
        self._access_token_expiry = 0.0

    # =========================================================================
    # Authentication
    # =========================================================================

    def access_token(self) -> str:
        """
        Exchange a signed bearer assertion for an OAuth access token.

        Returns:
            Access token string
        """
        now = time.time()
        if self._access_token and now < self._access_token_expiry:
            return self._access_token

        assertion = self.signer.sign(bearer_claims(self.issuer_email, WALLET_SCOPE, TOKEN_URL, int(now)))
        try:
            response = self.session.post(
                TOKEN_URL,
                data={'grant_type': JWT_BEARER_GRANT, 'assertion': assertion},
                timeout=self.config.http_timeout_seconds,
            )
        except requests.RequestException as e:
            raise WalletApiError(f"Token endpoint unreachable: {e}")

        if response.status_code != 200:
            raise WalletApiError(
                f"Token exchange failed: HTTP {response.status_code}",
                status_code=response.status_code
            )
        try:
            payload = response.json()
            token = payload['access_token']
        except (ValueError, KeyError):
            raise WalletApiError("Token endpoint returned no access token")

        self._access_token = token
        self._access_token_expiry = now + int(payload.get('expires_in', 3600)) - 60
        logger.info("Obtained Google Wallet access token")
        return token

    def _call(self, method: str, path: str, json: Dict[str, Any] = None) -> requests.Response:
        try:
            return self.session.request(
                method,
                f"{API_BASE}{path}",
                json=json,
                headers={'Authorization': f'Bearer {self.access_token()}'},
                timeout=self.config.http_timeout_seconds,
            )
        except requests.RequestException as e:
            raise WalletApiError(f"Wallet API unreachable: {e}")

    @staticmethod
    def _raise_for(response: requests.Response, action: str):
        raise WalletApiError(
            f"{action} failed: HTTP {response.status_code} {response.text[:200]}",
            status_code=response.status_code
        )

    # =========================================================================
    # Classes
    # =========================================================================

    def class_exists(self, class_id: str) -> bool:
        response = self._call('GET', f'/genericClass/{class_id}')
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        self._raise_for(response, f"Class lookup for {class_id}")

    def create_class(self, definition: Dict[str, Any]) -> str:
        """
        Create a generic class.

        Args:
            definition: Generic class resource

        Returns:
            'created', or 'exists' when the class was already there and the
            conflict policy is 'accept'

        Raises:
            ClassConflictError: when the class exists and the policy is 'error'
        """
        class_id = definition.get('id')
        response = self._call('POST', '/genericClass', json=definition)

        if response.status_code in (200, 201):
            logger.info(f"Created Google Wallet class: {class_id}")
            return CLASS_CREATED

        if response.status_code == 409:
            if self.config.class_conflict_policy == 'accept':
                logger.info(f"Google Wallet class already exists: {class_id}")
                return CLASS_EXISTS
            raise ClassConflictError(
                f"Google Wallet class {class_id} already exists",
                status_code=409
            )

        self._raise_for(response, f"Class creation for {class_id}")

    def ensure_class(self, definition: Dict[str, Any]) -> str:
        """Create the class unless a lookup shows it already exists."""
        if self.class_exists(definition['id']):
            logger.debug(f"Using existing Google Wallet class: {definition['id']}")
            return CLASS_EXISTS
        return self.create_class(definition)

    # =========================================================================
    # Objects
    # =========================================================================

    def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        response = self._call('GET', f'/genericObject/{object_id}')
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._raise_for(response, f"Object lookup for {object_id}")
        return response.json()

    def update_object(
        self,
        object_id: str,
        changes: Dict[str, Any],
        message: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Patch an object, optionally notifying the holder.

        Args:
            object_id: Full object id ("<issuer>.<card id>")
            changes: Fields to patch
            message: Notification body shown to the holder

        Returns:
            The updated object resource
        """
        body = dict(changes)
        if message:
            body['messages'] = [{
                'action': MESSAGE_TYPE,
                'messageType': MESSAGE_TYPE,
                'body': message,
            }]

        response = self._call('PATCH', f'/genericObject/{object_id}', json=body)
        if response.status_code != 200:
            self._raise_for(response, f"Object update for {object_id}")
        logger.info(f"Updated Google Wallet object {object_id}")
        return response.json()

    def send_message(self, object_id: str, body: str, header: str = 'Update') -> Dict[str, Any]:
        response = self._call(
            'POST',
            f'/genericObject/{object_id}/addMessage',
            json={'message': {'header': header, 'body': body, 'messageType': MESSAGE_TYPE}},
        )
        if response.status_code != 200:
            self._raise_for(response, f"Message for {object_id}")
        return response.json()
