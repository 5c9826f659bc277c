"""
Pytest configuration and shared fixtures for all tests.

Key and certificate fixtures under tests/fixtures were generated for these
tests only: a self-signed "WWDR" test CA and a pass certificate it issued
for pass.com.example.loyalty.
"""
import json
from unittest.mock import Mock

import pytest

from loyalty_wallet.bundle.assets import REQUIRED_IMAGES
from loyalty_wallet.bundle.signers import LocalBundleSigner
from loyalty_wallet.config import WalletConfig
from loyalty_wallet.crypto.jws import CompactTokenSigner
from loyalty_wallet.crypto.keys import load_signing_key, load_certificate
from loyalty_wallet.services.pass_service import PassIssuer
from loyalty_wallet.services.storage import LocalObjectStore

from tests.helpers import (
    KEY_PATH, CERT_PATH, WWDR_PATH, TEAM_ID, PASS_TYPE_ID, ISSUER_ID,
    SERVICE_ACCOUNT_EMAIL, png_bytes, read_fixture
)


# =============================================================================
# KEY MATERIAL
# =============================================================================

@pytest.fixture(scope='session')
def signing_key():
    return load_signing_key(KEY_PATH)


@pytest.fixture(scope='session')
def certificate():
    return load_certificate(CERT_PATH)


@pytest.fixture(scope='session')
def wwdr_certificate():
    return load_certificate(WWDR_PATH)


@pytest.fixture(scope='session')
def local_signer(signing_key, certificate, wwdr_certificate):
    return LocalBundleSigner(signing_key, certificate, wwdr_certificate)


@pytest.fixture(scope='session')
def token_signer(signing_key):
    return CompactTokenSigner(signing_key)


@pytest.fixture(scope='session')
def der_signature(local_signer):
    """A real detached signature, used as the body of remote signer replies."""
    return local_signer.sign_manifest(b'{"pass.json":"0"}')


# =============================================================================
# IMAGES AND CONFIGURATION
# =============================================================================

@pytest.fixture
def images():
    """PNG bytes for every required pass image."""
    return {name: png_bytes() for name in REQUIRED_IMAGES}


@pytest.fixture
def assets_dir(tmp_path, images):
    directory = tmp_path / 'assets'
    directory.mkdir()
    for name, data in images.items():
        (directory / name).write_bytes(data)
    return directory


@pytest.fixture
def service_account_file(tmp_path):
    """Service account key file built around the test signing key."""
    path = tmp_path / 'service-account.json'
    path.write_text(json.dumps({
        'type': 'service_account',
        'client_email': SERVICE_ACCOUNT_EMAIL,
        'private_key': read_fixture('signer_key.pem').decode('ascii'),
    }))
    return path


@pytest.fixture
def wallet_config(tmp_path, assets_dir, service_account_file):
    """Configuration with both platforms set up and local storage."""
    return WalletConfig(
        environ={},
        team_identifier=TEAM_ID,
        pass_type_identifier=PASS_TYPE_ID,
        organization_name='Corner Coffee',
        certificate_path=CERT_PATH,
        key_path=KEY_PATH,
        wwdr_path=WWDR_PATH,
        assets_path=str(assets_dir),
        google_issuer_id=ISSUER_ID,
        google_service_account_path=str(service_account_file),
        local_storage_path=str(tmp_path / 'passes'),
        public_base_url='https://wallet.example.com',
        upload_backoff_seconds=0,
        remote_signer_backoff_seconds=0,
    )


# =============================================================================
# ISSUERS
# =============================================================================

@pytest.fixture
def issuer(wallet_config):
    """Issuer wired from configuration, with the Google REST client mocked."""
    issuer = PassIssuer.from_config(wallet_config)
    issuer.google_client = Mock()
    issuer._sleep = Mock()
    return issuer


@pytest.fixture
def local_store(wallet_config):
    return LocalObjectStore(wallet_config.local_storage_path, wallet_config.public_base_url)
