# loyalty_wallet/services/__init__.py

"""
Wallet Pass Services

- pass_service: issuance and update orchestration (PassIssuer)
- storage: ObjectStore backends for finished passes
- google_api: Google Wallet REST client
"""

from .pass_service import PassIssuer, validate_request
from .storage import (
    ObjectStore, LocalObjectStore, SupabaseObjectStore, FirebaseObjectStore,
    GitHubObjectStore, build_object_store, upload_with_retry
)
from .google_api import GoogleWalletClient

__all__ = [
    'PassIssuer',
    'validate_request',
    'ObjectStore',
    'LocalObjectStore',
    'SupabaseObjectStore',
    'FirebaseObjectStore',
    'GitHubObjectStore',
    'build_object_store',
    'upload_with_retry',
    'GoogleWalletClient',
]
