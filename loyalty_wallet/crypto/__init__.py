# loyalty_wallet/crypto/__init__.py

"""
Signing primitives: RSA key parsing and compact token signing.
"""

from .keys import SigningKey, parse_signing_key, load_signing_key, load_certificate
from .jws import CompactTokenSigner, save_claims, bearer_claims, save_url

__all__ = [
    'SigningKey',
    'parse_signing_key',
    'load_signing_key',
    'load_certificate',
    'CompactTokenSigner',
    'save_claims',
    'bearer_claims',
    'save_url',
]
