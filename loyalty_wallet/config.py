# loyalty_wallet/config.py

"""
Wallet Configuration

All credentials and service settings are read once, at process start,
into a WalletConfig instance that is passed explicitly to the components
that need it. Values come from environment variables; keyword overrides
take precedence so tests and embedding applications can build a config
without touching the environment.
"""

import os
import json
import logging
from typing import Dict, Any, List, Mapping, Optional

from loyalty_wallet.errors import ConfigurationError

logger = logging.getLogger(__name__)

SIGNING_MODES = ('local', 'remote')
CONFLICT_POLICIES = ('accept', 'error')
STORAGE_BACKENDS = ('local', 'supabase', 'firebase', 'github')


def _as_bool(value, default: bool = False) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _as_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got '{value}'")


def _as_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got '{value}'")


def _as_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [item.strip() for item in str(value).split(',') if item.strip()]


class WalletConfig:
    """Configuration for pass issuance, signing and storage"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, **overrides):
        env = os.environ if environ is None else environ

        # Apple Wallet pass identity
        self.team_identifier = env.get('WALLET_TEAM_ID', '')
        self.pass_type_identifier = env.get('WALLET_PASS_TYPE_ID', 'pass.com.example.loyalty')
        self.organization_name = env.get('WALLET_ORGANIZATION_NAME', 'Loyalty Program')
        self.description = env.get('WALLET_DESCRIPTION', 'Loyalty Card')
        self.logo_text = env.get('WALLET_LOGO_TEXT', 'Loyalty')
        self.foreground_color = env.get('WALLET_FOREGROUND_COLOR', 'rgb(255, 255, 255)')
        self.label_color = env.get('WALLET_LABEL_COLOR', 'rgb(255, 255, 255)')
        self.terms_text = env.get(
            'WALLET_TERMS_TEXT',
            'Points are earned on qualifying purchases and have no cash value.'
        )
        self.contact_text = env.get('WALLET_CONTACT_TEXT', 'support@example.com')
        self.pass_validity_days = _as_int(env, 'WALLET_PASS_VALIDITY_DAYS', 365)

        # Signing material
        self.certificate_path = env.get('WALLET_CERT_PATH', 'certs/certificate.pem')
        self.key_path = env.get('WALLET_KEY_PATH', 'certs/key.pem')
        self.wwdr_path = env.get('WALLET_WWDR_PATH', 'certs/wwdr.pem')
        self.key_password = env.get('WALLET_KEY_PASSWORD', '')
        self.assets_path = env.get('WALLET_ASSETS_PATH', 'assets')
        self.web_service_url = env.get('WALLET_WEB_SERVICE_URL', '')
        self.authentication_token = env.get('WALLET_AUTH_TOKEN', '')
        self.verify_signatures = _as_bool(env.get('VERIFY_SIGNATURES'), default=False)
        self.verify_ca_path = env.get('VERIFY_CA_PATH', '')

        # Bundle signing strategy
        self.signing_mode = env.get('SIGNING_MODE', 'local')
        self.remote_signer_url = env.get('REMOTE_SIGNER_URL', '')
        self.remote_signer_max_attempts = _as_int(env, 'REMOTE_SIGNER_MAX_ATTEMPTS', 3)
        self.remote_signer_backoff_seconds = _as_float(env, 'REMOTE_SIGNER_BACKOFF_SECONDS', 0.5)
        self.http_timeout_seconds = _as_float(env, 'HTTP_TIMEOUT_SECONDS', 5)

        # Google Wallet
        self.google_issuer_id = env.get('GOOGLE_WALLET_ISSUER_ID', '')
        self.google_class_suffix = env.get('GOOGLE_WALLET_CLASS_SUFFIX', 'loyalty_card')
        self.google_service_account_path = env.get(
            'GOOGLE_WALLET_SERVICE_ACCOUNT', 'certs/google-service-account.json'
        )
        self.google_origins = _as_list(env.get('GOOGLE_WALLET_ORIGINS'))
        self.google_logo_uri = env.get('GOOGLE_WALLET_LOGO_URI', '')
        self.class_conflict_policy = env.get('CLASS_CONFLICT_POLICY', 'accept')

        # Object storage
        self.storage_backend = env.get('STORAGE_BACKEND', 'local')
        self.storage_url = env.get('STORAGE_URL', '')
        self.storage_bucket = env.get('STORAGE_BUCKET', 'passes')
        self.storage_token = env.get('STORAGE_TOKEN', '')
        self.storage_owner = env.get('STORAGE_OWNER', '')
        self.storage_repo = env.get('STORAGE_REPO', '')
        self.local_storage_path = env.get('LOCAL_STORAGE_PATH', 'passes')
        self.public_base_url = env.get('PUBLIC_BASE_URL', 'http://localhost:5000')
        self.upload_max_attempts = _as_int(env, 'UPLOAD_MAX_ATTEMPTS', 3)
        self.upload_backoff_seconds = _as_float(env, 'UPLOAD_BACKOFF_SECONDS', 0.5)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigurationError(f"Unknown configuration option: {key}")
            setattr(self, key, value)

        self.google_origins = _as_list(self.google_origins)

    @classmethod
    def from_env(cls) -> 'WalletConfig':
        """Build the process-wide configuration from environment variables."""
        return cls()

    @property
    def google_class_id(self) -> str:
        return f"{self.google_issuer_id}.{self.google_class_suffix}"

    def _common_issues(self) -> List[str]:
        issues = []
        if self.class_conflict_policy not in CONFLICT_POLICIES:
            issues.append(
                f"CLASS_CONFLICT_POLICY must be one of {', '.join(CONFLICT_POLICIES)}, "
                f"got '{self.class_conflict_policy}'"
            )
        if self.http_timeout_seconds <= 0:
            issues.append("HTTP timeout must be positive")
        if self.upload_max_attempts < 1:
            issues.append("UPLOAD_MAX_ATTEMPTS must be at least 1")
        return issues

    def validate_apple(self) -> bool:
        """Validate Apple Wallet settings; raises ConfigurationError listing every problem"""
        issues = self._common_issues()

        if len(self.team_identifier or '') != 10:
            issues.append(
                f"Team identifier must be 10 characters, got {len(self.team_identifier or '')}"
            )
        if not (self.pass_type_identifier or '').startswith('pass.'):
            issues.append("Pass type identifier must start with 'pass.'")

        if self.signing_mode not in SIGNING_MODES:
            issues.append(f"Unknown signing mode '{self.signing_mode}'")
        elif self.signing_mode == 'local':
            for name, path in [
                ('Certificate', self.certificate_path),
                ('Private Key', self.key_path),
                ('WWDR Certificate', self.wwdr_path)
            ]:
                if not path or not os.path.exists(path):
                    issues.append(f"{name} not found at {path}")
        else:
            if not self.remote_signer_url:
                issues.append("REMOTE_SIGNER_URL is required for remote signing")
            if self.remote_signer_max_attempts < 1:
                issues.append("Remote signer needs at least one attempt")

        if not self.assets_path or not os.path.isdir(self.assets_path):
            issues.append(f"Assets directory not found at {self.assets_path}")

        if issues:
            raise ConfigurationError(f"Apple Wallet configuration errors: {'; '.join(issues)}")
        return True

    def validate_google(self) -> bool:
        """Validate Google Wallet settings; raises ConfigurationError listing every problem"""
        issues = self._common_issues()

        if not self.google_issuer_id:
            issues.append("GOOGLE_WALLET_ISSUER_ID not set")
        if not self.google_service_account_path or not os.path.exists(self.google_service_account_path):
            issues.append(f"Service account file not found at {self.google_service_account_path}")

        if issues:
            raise ConfigurationError(f"Google Wallet configuration errors: {'; '.join(issues)}")
        return True

    def status(self) -> Dict[str, Any]:
        """
        Summarise whether each platform is ready.

        Returns:
            dict keyed by platform with 'configured' boolean and 'issues' list
        """
        result = {}
        for platform, check in (('apple', self.validate_apple), ('google', self.validate_google)):
            try:
                check()
                result[platform] = {'configured': True, 'issues': []}
            except ConfigurationError as e:
                result[platform] = {'configured': False, 'issues': [e.message]}
        return result

    def load_service_account(self) -> Dict[str, str]:
        """
        Read the Google service account key file.

        Returns:
            dict with at least 'client_email' and 'private_key'
        """
        path = self.google_service_account_path
        try:
            with open(path, 'r') as f:
                account = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Service account file not found at {path}")
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Service account file {path} is unreadable: {e}")

        missing = [k for k in ('client_email', 'private_key') if not account.get(k)]
        if missing:
            raise ConfigurationError(
                f"Service account file {path} is missing: {', '.join(missing)}"
            )
        return account

    def __repr__(self):
        return (
            f"WalletConfig(team={self.team_identifier!r}, pass_type={self.pass_type_identifier!r}, "
            f"signing={self.signing_mode!r}, storage={self.storage_backend!r})"
        )
