# loyalty_wallet/crypto/keys.py

"""
Key Material

Parses PEM-encoded RSA private keys and X.509 certificates. Structural
decoding is delegated to the cryptography library; this module only
checks that what comes back is the key we expect.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from loyalty_wallet.errors import ConfigurationError, KeyParseError

logger = logging.getLogger(__name__)

PEM_MARKER = b'-----BEGIN '


@dataclass(frozen=True, repr=False)
class SigningKey:
    """
    Numeric material of an RSA private key.

    Read-only once parsed. The repr only reveals the key size so the
    numbers never end up in a log line or traceback.
    """
    modulus: int
    public_exponent: int
    private_exponent: int
    prime1: int
    prime2: int
    _private_key: Any = field(default=None, compare=False)

    def __post_init__(self):
        if self._private_key is None:
            object.__setattr__(self, '_private_key', self._build_private_key())

    def _build_private_key(self) -> rsa.RSAPrivateKey:
        p, q, d = self.prime1, self.prime2, self.private_exponent
        try:
            numbers = rsa.RSAPrivateNumbers(
                p=p,
                q=q,
                d=d,
                dmp1=rsa.rsa_crt_dmp1(d, p),
                dmq1=rsa.rsa_crt_dmq1(d, q),
                iqmp=rsa.rsa_crt_iqmp(p, q),
                public_numbers=rsa.RSAPublicNumbers(self.public_exponent, self.modulus),
            )
            return numbers.private_key()
        except (TypeError, ValueError) as e:
            raise KeyParseError(f"Inconsistent RSA key material: {e}")

    @property
    def key_size(self) -> int:
        return self.modulus.bit_length()

    def private_key(self) -> rsa.RSAPrivateKey:
        return self._private_key

    def public_key(self) -> rsa.RSAPublicKey:
        return self._private_key.public_key()

    def __repr__(self):
        return f"SigningKey(bits={self.key_size})"

    __str__ = __repr__


def parse_signing_key(pem: Union[str, bytes], password: Optional[str] = None) -> SigningKey:
    """
    Parse a PEM-wrapped RSA private key.

    Accepts PKCS#8 ("BEGIN PRIVATE KEY") and PKCS#1 ("BEGIN RSA PRIVATE KEY")
    containers, optionally encrypted.

    Args:
        pem: PEM text or bytes
        password: Passphrase for encrypted keys

    Returns:
        SigningKey with the parsed numbers

    Raises:
        KeyParseError: if the input is not a decodable RSA private key
    """
    if isinstance(pem, str):
        data = pem.encode('utf-8')
    elif isinstance(pem, (bytes, bytearray)):
        data = bytes(pem)
    else:
        raise KeyParseError(f"Key must be text or bytes, got {type(pem).__name__}")

    if PEM_MARKER not in data:
        raise KeyParseError("Key is not PEM encoded")

    try:
        key = serialization.load_pem_private_key(
            data,
            password=password.encode('utf-8') if password else None,
        )
    except TypeError as e:
        # Raised for a missing or unexpected password
        raise KeyParseError(f"Key password mismatch: {e}")
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyParseError(f"Could not decode private key: {e}")

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyParseError(f"Expected an RSA private key, got {type(key).__name__}")

    numbers = key.private_numbers()
    public = numbers.public_numbers
    if numbers.p * numbers.q != public.n:
        raise KeyParseError("Key primes do not multiply to the modulus")

    signing_key = SigningKey(
        modulus=public.n,
        public_exponent=public.e,
        private_exponent=numbers.d,
        prime1=numbers.p,
        prime2=numbers.q,
        _private_key=key,
    )
    logger.debug(f"Parsed RSA signing key ({signing_key.key_size} bits)")
    return signing_key


def load_signing_key(path: str, password: Optional[str] = None) -> SigningKey:
    """Read and parse a private key file."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except FileNotFoundError:
        raise ConfigurationError(f"Private key not found at {path}")
    except OSError as e:
        raise ConfigurationError(f"Private key at {path} is unreadable: {e}")
    return parse_signing_key(data, password)


def load_certificate(path: str) -> x509.Certificate:
    """
    Read an X.509 certificate in PEM or DER form.

    Args:
        path: Certificate file path

    Returns:
        cryptography Certificate
    """
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except FileNotFoundError:
        raise ConfigurationError(f"Certificate not found at {path}")
    except OSError as e:
        raise ConfigurationError(f"Certificate at {path} is unreadable: {e}")

    try:
        if PEM_MARKER in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise ConfigurationError(f"Certificate at {path} could not be parsed: {e}")


def key_matches_certificate(key: SigningKey, certificate: x509.Certificate) -> bool:
    """True when the certificate carries the public half of the key."""
    cert_public = certificate.public_key()
    if not isinstance(cert_public, rsa.RSAPublicKey):
        return False
    numbers = cert_public.public_numbers()
    return numbers.n == key.modulus and numbers.e == key.public_exponent
