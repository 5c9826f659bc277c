# loyalty_wallet/bundle/verify.py

"""
Signature Verification

Checks a detached manifest signature with `openssl cms -verify` and
re-hashes the contents of a .pkpass archive. The issuer can run this on
every pass before upload; the CLI exposes it for passes on disk.
"""

import os
import shutil
import zipfile
import logging
import tempfile
import subprocess
from io import BytesIO
from typing import Dict, Any, List, Optional

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs7

from loyalty_wallet.bundle.manifest import (
    MANIFEST_NAME, SIGNATURE_NAME, DOCUMENT_NAME, build_manifest, parse_manifest
)
from loyalty_wallet.bundle.packager import ArchivePackager
from loyalty_wallet.errors import (
    BundleValidationError, ConfigurationError, SignatureVerificationError
)

logger = logging.getLogger(__name__)

OPENSSL_TIMEOUT_SECONDS = 10


def signature_certificates(signature: bytes) -> List[x509.Certificate]:
    """Certificates embedded in a DER detached signature."""
    try:
        return pkcs7.load_der_pkcs7_certificates(signature)
    except ValueError as e:
        raise SignatureVerificationError(f"Signature is not a valid PKCS#7 structure: {e}")


def verify_detached_signature(
    signature: bytes,
    content: bytes,
    ca_file: Optional[str] = None,
    openssl: str = 'openssl'
) -> x509.Certificate:
    """
    Verify a detached DER signature over content.

    Args:
        signature: DER-encoded PKCS#7 signature
        content: Bytes the signature covers (manifest.json)
        ca_file: Trust anchor for chain validation; without it only the
            signature itself is checked
        openssl: openssl executable

    Returns:
        The signer certificate

    Raises:
        SignatureVerificationError: if the signature does not verify
    """
    if not signature:
        raise SignatureVerificationError("Signature is empty")

    certificates = signature_certificates(signature)
    if not certificates:
        raise SignatureVerificationError("Signature carries no certificates")

    executable = shutil.which(openssl)
    if executable is None:
        raise ConfigurationError(f"openssl executable not found: {openssl}")

    with tempfile.TemporaryDirectory(prefix='pkpass-verify-') as workdir:
        signature_path = os.path.join(workdir, SIGNATURE_NAME)
        content_path = os.path.join(workdir, MANIFEST_NAME)
        signer_path = os.path.join(workdir, 'signer.pem')
        with open(signature_path, 'wb') as f:
            f.write(signature)
        with open(content_path, 'wb') as f:
            f.write(content)

        command = [
            executable, 'cms', '-verify', '-binary',
            '-inform', 'DER',
            '-in', signature_path,
            '-content', content_path,
            '-signer', signer_path,
        ]
        if ca_file:
            command += ['-CAfile', ca_file, '-purpose', 'any']
        else:
            command.append('-noverify')

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=OPENSSL_TIMEOUT_SECONDS,
            )
        except subprocess.TimeoutExpired:
            raise SignatureVerificationError("Signature verification timed out")

        if result.returncode != 0:
            detail = result.stderr.decode('utf-8', errors='ignore').strip().splitlines()
            raise SignatureVerificationError(
                f"Signature verification failed: {detail[0] if detail else 'unknown error'}"
            )

        with open(signer_path, 'rb') as f:
            signer = x509.load_pem_x509_certificate(f.read())

    logger.debug(f"Verified detached signature for {signer.subject.rfc4514_string()}")
    return signer


def inspect_archive(
    archive: bytes,
    ca_file: Optional[str] = None,
    verify_signature: bool = True
) -> Dict[str, Any]:
    """
    Open a .pkpass archive and check it end to end.

    Args:
        archive: ZIP bytes
        ca_file: Optional trust anchor for chain validation
        verify_signature: Also verify the detached signature

    Returns:
        dict with 'document', 'manifest', 'files' and 'signer'
    """
    try:
        with zipfile.ZipFile(BytesIO(archive)) as bundle:
            names = bundle.namelist()
            if len(names) != len(set(names)):
                raise BundleValidationError("Archive contains duplicate entries")
            files = {name: bundle.read(name) for name in names}
    except zipfile.BadZipFile as e:
        raise BundleValidationError(f"Not a ZIP archive: {e}")

    for required in (DOCUMENT_NAME, MANIFEST_NAME, SIGNATURE_NAME):
        if required not in files:
            raise BundleValidationError(f"Archive is missing {required}")

    manifest_bytes = files.pop(MANIFEST_NAME)
    signature = files.pop(SIGNATURE_NAME)
    document = files.pop(DOCUMENT_NAME)

    packager = ArchivePackager()
    data = packager.validate(document, files)

    try:
        manifest = parse_manifest(manifest_bytes)
    except (UnicodeDecodeError, ValueError) as e:
        raise BundleValidationError(f"manifest.json is not valid JSON: {e}")

    expected = build_manifest({DOCUMENT_NAME: document, **files})
    if manifest != expected:
        raise BundleValidationError("Manifest hashes do not match archive contents")

    signer = None
    if verify_signature:
        certificate = verify_detached_signature(signature, manifest_bytes, ca_file=ca_file)
        signer = certificate.subject.rfc4514_string()

    return {
        'document': data,
        'manifest': manifest,
        'files': sorted([DOCUMENT_NAME, MANIFEST_NAME, SIGNATURE_NAME] + list(files)),
        'signer': signer,
    }
