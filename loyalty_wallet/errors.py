# loyalty_wallet/errors.py

"""
Wallet Error Taxonomy

Every failure raised by the issuance pipeline derives from WalletError so
callers and HTTP handlers can map them to a stable error code.
"""


class WalletError(Exception):
    """Base exception for wallet pass errors."""

    error_code = 'WALLET_ERROR'

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ConfigurationError(WalletError):
    """Raised when credential or service configuration is missing or invalid."""
    error_code = 'CONFIGURATION_ERROR'


class KeyParseError(WalletError):
    """Raised when a serialized private key cannot be decoded."""
    error_code = 'KEY_PARSE_ERROR'


class SigningError(WalletError):
    """Raised when a token or bundle signature cannot be produced."""
    error_code = 'SIGNING_ERROR'


class BundleValidationError(WalletError):
    """Raised when a pass document or file set fails validation."""
    error_code = 'BUNDLE_INVALID'


class UploadError(WalletError):
    """Raised when the object store rejects or fails to receive an artifact."""
    error_code = 'UPLOAD_FAILED'

    def __init__(self, message: str, error_code: str = None, retryable: bool = True):
        super().__init__(message, error_code)
        self.retryable = retryable


class InvalidCardRequest(WalletError):
    """Raised when an issuance request violates the input contract."""
    error_code = 'INVALID_REQUEST'


class WalletApiError(WalletError):
    """Raised when the Google Wallet REST API returns an unexpected response."""
    error_code = 'WALLET_API_ERROR'

    def __init__(self, message: str, error_code: str = None, status_code: int = None):
        super().__init__(message, error_code)
        self.status_code = status_code


class ClassConflictError(WalletApiError):
    """Raised when a pass class already exists and conflicts are not accepted."""
    error_code = 'CLASS_CONFLICT'


class SignatureVerificationError(SigningError):
    """Raised when a detached signature does not verify against its content."""
    error_code = 'SIGNATURE_INVALID'
