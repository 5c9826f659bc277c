# loyalty_wallet/crypto/jws.py

"""
Compact Token Signer

RS256 compact JWS tokens for the Google Wallet "save to wallet" link and
the service-account bearer exchange. Claims are serialized as canonical
JSON so the same claims and key always produce the same token.
"""

import json
import time
import logging
from typing import Dict, Any, List, Optional

import jwt

from loyalty_wallet.crypto.keys import SigningKey
from loyalty_wallet.errors import SigningError

logger = logging.getLogger(__name__)

ALGORITHM = 'RS256'
SAVE_URL_PREFIX = 'https://pay.google.com/gp/v/save/'
TOKEN_URL = 'https://oauth2.googleapis.com/token'
WALLET_SCOPE = 'https://www.googleapis.com/auth/wallet_object.issuer'
BEARER_LIFETIME_SECONDS = 3600


def canonical_json(value: Any) -> bytes:
    """Serialize with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


class CompactTokenSigner:
    """Signs claims into header.payload.signature tokens with an RSA key"""

    def __init__(self, key: SigningKey):
        self.key = key
        self._jws = jwt.PyJWS()

    def sign(self, claims: Dict[str, Any]) -> str:
        """
        Sign a claims object.

        Args:
            claims: JSON-serializable claims

        Returns:
            Compact token with exactly three non-empty segments

        Raises:
            SigningError: if the key is unusable or signing fails
        """
        if not isinstance(self.key, SigningKey):
            raise SigningError(f"Cannot sign with {type(self.key).__name__}, expected SigningKey")

        try:
            payload = canonical_json(claims)
        except (TypeError, ValueError) as e:
            raise SigningError(f"Claims are not JSON serializable: {e}")

        try:
            token = self._jws.encode(
                payload,
                self.key.private_key(),
                algorithm=ALGORITHM,
                headers={'typ': 'JWT'},
            )
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise SigningError(f"Token signing failed: {e}")

        if isinstance(token, bytes):
            token = token.decode('ascii')

        segments = token.split('.')
        if len(segments) != 3 or not all(segments):
            raise SigningError("Signer produced a malformed compact token")

        logger.debug(f"Signed compact token ({len(token)} chars)")
        return token


def save_claims(
    issuer: str,
    card_object: Dict[str, Any],
    iat: Optional[int] = None,
    origins: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Build "save to wallet" claims for a single generic object.

    Args:
        issuer: Service account email
        card_object: Google Wallet generic object
        iat: Issued-at time in unix seconds (now if omitted)
        origins: Web origins allowed to render the save button

    Returns:
        Claims dictionary
    """
    claims = {
        'iss': issuer,
        'aud': 'google',
        'typ': 'savetowallet',
        'iat': int(time.time()) if iat is None else iat,
        'payload': {
            'genericObjects': [card_object],
        },
    }
    if origins:
        claims['origins'] = list(origins)
    return claims


def bearer_claims(
    issuer: str,
    scope: str = WALLET_SCOPE,
    token_url: str = TOKEN_URL,
    iat: Optional[int] = None
) -> Dict[str, Any]:
    """Build claims for the service-account JWT bearer grant."""
    issued_at = int(time.time()) if iat is None else iat
    return {
        'iss': issuer,
        'scope': scope,
        'aud': token_url,
        'iat': issued_at,
        'exp': issued_at + BEARER_LIFETIME_SECONDS,
    }


def save_url(token: str) -> str:
    return f"{SAVE_URL_PREFIX}{token}"
