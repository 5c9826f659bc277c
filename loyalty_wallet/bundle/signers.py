# loyalty_wallet/bundle/signers.py

"""
Bundle Signers

Produce the detached signature over a pass manifest. Two strategies share
one interface:

- LocalBundleSigner builds a DER-encoded PKCS#7 detached signature with the
  pass certificate, its private key and the WWDR intermediate.
- RemoteBundleSigner posts the manifest to a signing service and returns
  the signature it sends back.

Neither strategy ever returns an empty or placeholder signature. Anything
short of a real signature is a SigningError.
"""

import time
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding, pkcs7

from loyalty_wallet.config import WalletConfig
from loyalty_wallet.crypto.keys import (
    SigningKey, load_signing_key, load_certificate, key_matches_certificate
)
from loyalty_wallet.errors import ConfigurationError, SigningError

logger = logging.getLogger(__name__)

# DER encoding of an ASN.1 SEQUENCE starts with this tag byte
DER_SEQUENCE_TAG = b'\x30'


class BundleSigner(ABC):
    """Signs serialized manifest bytes."""

    @abstractmethod
    def sign_manifest(self, manifest_bytes: bytes) -> bytes:
        """
        Produce a detached signature over the manifest.

        Args:
            manifest_bytes: Exact bytes of manifest.json as packaged

        Returns:
            DER-encoded detached signature

        Raises:
            SigningError: if no valid signature can be produced
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class LocalBundleSigner(BundleSigner):
    """Signs manifests in-process with the pass certificate."""

    def __init__(
        self,
        key: SigningKey,
        certificate: x509.Certificate,
        wwdr_certificate: Optional[x509.Certificate] = None
    ):
        if not key_matches_certificate(key, certificate):
            raise ConfigurationError("Pass certificate does not match the signing key")
        self.key = key
        self.certificate = certificate
        self.wwdr_certificate = wwdr_certificate

    def sign_manifest(self, manifest_bytes: bytes) -> bytes:
        if not manifest_bytes:
            raise SigningError("Refusing to sign an empty manifest")

        try:
            builder = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(manifest_bytes)
                .add_signer(self.certificate, self.key.private_key(), hashes.SHA256())
            )
            if self.wwdr_certificate is not None:
                builder = builder.add_certificate(self.wwdr_certificate)

            signature = builder.sign(
                Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary]
            )
        except (TypeError, ValueError) as e:
            raise SigningError(f"Local manifest signing failed: {e}")

        if not signature:
            raise SigningError("Local signer produced an empty signature")

        logger.debug(f"Signed manifest locally ({len(signature)} byte signature)")
        return signature


class RemoteBundleSigner(BundleSigner):
    """
    Delegates manifest signing to an HTTP signing service.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff. A 4xx response or a body that does not carry a
    signature fails immediately.
    """

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        timeout: float = 5.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        if not url:
            raise ConfigurationError("Remote signer URL is required")
        if max_attempts < 1:
            raise ConfigurationError("Remote signer needs at least one attempt")
        self.url = url
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self._sleep = sleep

    def sign_manifest(self, manifest_bytes: bytes) -> bytes:
        if not manifest_bytes:
            raise SigningError("Refusing to sign an empty manifest")

        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._send(manifest_bytes)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"Remote signer attempt {attempt}/{self.max_attempts} failed: {last_error}"
                )
            except requests.RequestException as e:
                raise SigningError(f"Remote signer request could not be sent: {e}")
            else:
                status = response.status_code
                if status >= 500:
                    last_error = f"HTTP {status}"
                    logger.warning(
                        f"Remote signer attempt {attempt}/{self.max_attempts} returned {status}"
                    )
                elif status >= 400:
                    raise SigningError(
                        f"Remote signer rejected the manifest: HTTP {status}",
                        error_code='REMOTE_SIGNER_REJECTED'
                    )
                elif not 200 <= status < 300:
                    raise SigningError(f"Remote signer returned unexpected HTTP {status}")
                else:
                    signature = self._extract_signature(response)
                    logger.info(
                        f"Remote signer returned {len(signature)} byte signature "
                        f"on attempt {attempt}"
                    )
                    return signature

            if attempt < self.max_attempts:
                self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        raise SigningError(
            f"Remote signer failed after {self.max_attempts} attempts: {last_error}",
            error_code='REMOTE_SIGNER_UNAVAILABLE'
        )

    def _send(self, manifest_bytes: bytes) -> requests.Response:
        response = self.session.post(
            self.url,
            data=manifest_bytes,
            headers={
                'Content-Type': 'application/octet-stream',
                'Accept': 'application/octet-stream,application/json',
            },
            timeout=self.timeout,
        )
        if response.status_code == 415:
            # Some signing services only take the JSON envelope
            logger.info("Remote signer refused octet-stream, resending as JSON envelope")
            response = self.session.post(
                self.url,
                json={
                    'passData': {
                        'manifest': base64.b64encode(manifest_bytes).decode('ascii'),
                        'encoding': 'base64',
                    }
                },
                headers={'Accept': 'application/octet-stream,application/json'},
                timeout=self.timeout,
            )
        return response

    def _extract_signature(self, response: requests.Response) -> bytes:
        content_type = response.headers.get('Content-Type', '').split(';')[0].strip().lower()

        if content_type == 'application/json' or content_type.endswith('+json'):
            try:
                payload = response.json()
            except ValueError as e:
                raise SigningError(f"Remote signer returned malformed JSON: {e}")
            if not isinstance(payload, dict):
                raise SigningError("Remote signer JSON response is not an object")

            encoded = payload.get('signature') or payload.get('signatureBase64')
            if not encoded or not isinstance(encoded, str):
                raise SigningError("Remote signer JSON response has no signature")
            try:
                signature = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise SigningError(f"Remote signer signature is not valid base64: {e}")
        else:
            signature = response.content

        if not signature:
            raise SigningError("Remote signer returned an empty signature")
        if not signature.startswith(DER_SEQUENCE_TAG):
            raise SigningError("Remote signer response is not a DER-encoded signature")
        return signature


def build_bundle_signer(
    config: WalletConfig,
    key: Optional[SigningKey] = None,
    session: Optional[requests.Session] = None
) -> BundleSigner:
    """
    Build the signer selected by configuration.

    Args:
        config: WalletConfig instance
        key: Already-parsed signing key (loaded from config.key_path if omitted)
        session: requests session for the remote signer

    Returns:
        BundleSigner implementation
    """
    if config.signing_mode == 'local':
        signing_key = key or load_signing_key(config.key_path, config.key_password or None)
        certificate = load_certificate(config.certificate_path)
        wwdr = load_certificate(config.wwdr_path) if config.wwdr_path else None
        return LocalBundleSigner(signing_key, certificate, wwdr)

    if config.signing_mode == 'remote':
        return RemoteBundleSigner(
            config.remote_signer_url,
            session=session,
            max_attempts=config.remote_signer_max_attempts,
            backoff_seconds=config.remote_signer_backoff_seconds,
            timeout=config.http_timeout_seconds,
        )

    raise ConfigurationError(f"Unknown signing mode '{config.signing_mode}'")
