# loyalty_wallet/services/storage.py

"""
Object Storage

Finished passes are handed to an ObjectStore, which stores the bytes and
returns a public HTTPS URL. Every backend writes with upsert semantics so
retrying a put is safe.
"""

import os
import re
import time
import base64
import logging
import tempfile
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import quote

import requests

from loyalty_wallet.config import WalletConfig, STORAGE_BACKENDS
from loyalty_wallet.errors import ConfigurationError, UploadError

logger = logging.getLogger(__name__)

PKPASS_CONTENT_TYPE = 'application/vnd.apple.pkpass'
PASS_PREFIX = 'passes'
SAFE_KEY = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


def check_key(key: str) -> str:
    """Reject keys that could escape the pass prefix."""
    if not key or not SAFE_KEY.match(key) or '..' in key:
        raise UploadError(f"Invalid storage key: {key!r}", retryable=False)
    return key


class ObjectStore(ABC):
    """Stores a named blob and returns where it can be fetched."""

    name = 'object'

    @abstractmethod
    def put(self, data: bytes, key: str, content_type: str = PKPASS_CONTENT_TYPE) -> str:
        """
        Store data under key.

        Args:
            data: Blob to store
            key: File name, e.g. "<card id>.pkpass"
            content_type: MIME type of the blob

        Returns:
            Public URL for the stored blob

        Raises:
            UploadError: on failure; error.retryable says whether to try again
        """
        pass

    def get(self, key: str) -> Optional[bytes]:
        """Read a stored blob back, where the backend supports it."""
        return None


class HttpObjectStore(ObjectStore):
    """Shared request handling for HTTP storage backends."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 5.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise UploadError(f"{self.name} storage unreachable: {e}")
        except requests.RequestException as e:
            raise UploadError(f"{self.name} storage request failed: {e}", retryable=False)
        return response

    def _check(self, response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        detail = response.text[:200] if response.text else ''
        if status >= 500 or status == 429:
            raise UploadError(f"{self.name} storage returned {status}: {detail}")
        raise UploadError(f"{self.name} storage rejected upload ({status}): {detail}", retryable=False)


class SupabaseObjectStore(HttpObjectStore):
    """Supabase Storage bucket."""

    name = 'supabase'

    def __init__(self, url: str, bucket: str, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.url = url.rstrip('/')
        self.bucket = bucket
        self.api_key = api_key

    def put(self, data: bytes, key: str, content_type: str = PKPASS_CONTENT_TYPE) -> str:
        check_key(key)
        response = self._request(
            'POST',
            f"{self.url}/storage/v1/object/{self.bucket}/{key}",
            data=data,
            headers={
                'Authorization': f'Bearer {self.api_key}',
                'apikey': self.api_key,
                'Content-Type': content_type,
                'x-upsert': 'true',
            },
        )
        self._check(response)
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"


class FirebaseObjectStore(HttpObjectStore):
    """Firebase Storage bucket, objects stored under passes/."""

    name = 'firebase'
    API_BASE = 'https://firebasestorage.googleapis.com/v0/b'

    def __init__(self, bucket: str, token: str = '', **kwargs):
        super().__init__(**kwargs)
        self.bucket = bucket
        self.token = token

    def put(self, data: bytes, key: str, content_type: str = PKPASS_CONTENT_TYPE) -> str:
        check_key(key)
        object_name = quote(f"{PASS_PREFIX}/{key}", safe='')
        headers = {'Content-Type': content_type}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'

        response = self._request(
            'POST',
            f"{self.API_BASE}/{self.bucket}/o?uploadType=media&name={object_name}",
            data=data,
            headers=headers,
        )
        self._check(response)
        return f"{self.API_BASE}/{self.bucket}/o/{object_name}?alt=media"


class GitHubObjectStore(HttpObjectStore):
    """
    GitHub repository served through GitHub Pages.

    The contents API needs the current blob sha to overwrite a file, so a
    put looks the file up first.
    """

    name = 'github'
    API_BASE = 'https://api.github.com'

    def __init__(self, owner: str, repo: str, token: str, **kwargs):
        super().__init__(**kwargs)
        self.owner = owner
        self.repo = repo
        self.token = token

    @property
    def _headers(self):
        return {
            'Authorization': f'token {self.token}',
            'Accept': 'application/vnd.github+json',
        }

    def put(self, data: bytes, key: str, content_type: str = PKPASS_CONTENT_TYPE) -> str:
        check_key(key)
        url = f"{self.API_BASE}/repos/{self.owner}/{self.repo}/contents/{PASS_PREFIX}/{key}"

        body = {
            'message': f'Add pass {key}',
            'content': base64.b64encode(data).decode('ascii'),
        }
        existing = self._request('GET', url, headers=self._headers)
        if existing.status_code == 200:
            try:
                body['sha'] = existing.json().get('sha')
            except (ValueError, AttributeError) as e:
                raise UploadError(
                    f"GitHub lookup for {key} returned an unreadable body: {e}", retryable=False
                )
            body['message'] = f'Update pass {key}'
        elif existing.status_code != 404:
            self._check(existing)

        response = self._request('PUT', url, json=body, headers=self._headers)
        self._check(response)
        return f"https://{self.owner}.github.io/{self.repo}/{PASS_PREFIX}/{key}"


class LocalObjectStore(ObjectStore):
    """Filesystem directory served by the pass routes."""

    name = 'local'

    def __init__(self, root: str, public_base_url: str):
        self.root = root
        self.public_base_url = public_base_url.rstrip('/')

    def path_for(self, key: str) -> str:
        return os.path.join(self.root, check_key(key))

    def put(self, data: bytes, key: str, content_type: str = PKPASS_CONTENT_TYPE) -> str:
        path = self.path_for(key)
        try:
            os.makedirs(self.root, exist_ok=True)
            # Write then rename so readers never see a partial file
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix='.upload-')
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise UploadError(f"Could not write {path}: {e}")
        return f"{self.public_base_url}/{PASS_PREFIX}/{key}"

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        if not os.path.isfile(path):
            return None
        with open(path, 'rb') as f:
            return f.read()


def upload_with_retry(
    store: ObjectStore,
    data: bytes,
    key: str,
    content_type: str = PKPASS_CONTENT_TYPE,
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
    sleep: Callable[[float], None] = time.sleep
) -> str:
    """
    Put a blob, retrying transient failures with exponential backoff.

    Returns:
        Public URL from the store

    Raises:
        UploadError: on a permanent failure or once attempts run out
        ConfigurationError: if max_attempts is below one
    """
    if max_attempts < 1:
        raise ConfigurationError("Upload needs at least one attempt")

    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            url = store.put(data, key, content_type)
            logger.info(f"Uploaded {key} to {store.name} storage ({len(data)} bytes)")
            return url
        except UploadError as e:
            if not e.retryable:
                raise
            last_error = e
            logger.warning(f"Upload attempt {attempt}/{max_attempts} for {key} failed: {e.message}")

        if attempt < max_attempts:
            sleep(backoff_seconds * (2 ** (attempt - 1)))

    raise UploadError(
        f"Upload of {key} failed after {max_attempts} attempts: {last_error.message}",
        retryable=False
    )


def build_object_store(config: WalletConfig, session: Optional[requests.Session] = None) -> ObjectStore:
    """Create the store selected by STORAGE_BACKEND."""
    backend = config.storage_backend
    http_options = {'session': session, 'timeout': config.http_timeout_seconds}

    if backend == 'local':
        return LocalObjectStore(config.local_storage_path, config.public_base_url)
    if backend == 'supabase':
        if not config.storage_url or not config.storage_token:
            raise ConfigurationError("Supabase storage needs STORAGE_URL and STORAGE_TOKEN")
        return SupabaseObjectStore(
            config.storage_url, config.storage_bucket, config.storage_token, **http_options
        )
    if backend == 'firebase':
        if not config.storage_bucket:
            raise ConfigurationError("Firebase storage needs STORAGE_BUCKET")
        return FirebaseObjectStore(config.storage_bucket, config.storage_token, **http_options)
    if backend == 'github':
        if not (config.storage_owner and config.storage_repo and config.storage_token):
            raise ConfigurationError("GitHub storage needs STORAGE_OWNER, STORAGE_REPO and STORAGE_TOKEN")
        return GitHubObjectStore(
            config.storage_owner, config.storage_repo, config.storage_token, **http_options
        )

    raise ConfigurationError(
        f"Unknown storage backend '{backend}' (expected one of {', '.join(STORAGE_BACKENDS)})"
    )
