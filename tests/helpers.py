"""
Shared test helpers: fixture paths, image bytes and mocked HTTP responses.
"""
import os
import json
import shutil
from io import BytesIO

import pytest
import requests
from PIL import Image

FIXTURES = os.path.join(os.path.dirname(__file__), 'fixtures')

KEY_PATH = os.path.join(FIXTURES, 'signer_key.pem')
CERT_PATH = os.path.join(FIXTURES, 'signer_cert.pem')
WWDR_PATH = os.path.join(FIXTURES, 'wwdr.pem')

TEAM_ID = 'ABCDE12345'
PASS_TYPE_ID = 'pass.com.example.loyalty'
ISSUER_ID = '3388000000012345678'
SERVICE_ACCOUNT_EMAIL = 'wallet-issuer@loyalty-tests.iam.gserviceaccount.com'

requires_openssl = pytest.mark.skipif(
    shutil.which('openssl') is None, reason='openssl executable not available'
)


def fixture_path(name):
    return os.path.join(FIXTURES, name)


def read_fixture(name):
    with open(fixture_path(name), 'rb') as f:
        return f.read()


def png_bytes(size=(29, 29), color=(205, 127, 50, 255)):
    """Encode a solid colour PNG."""
    output = BytesIO()
    Image.new('RGBA', size, color).save(output, format='PNG')
    return output.getvalue()


def jpeg_bytes(size=(29, 29), color=(192, 192, 192)):
    output = BytesIO()
    Image.new('RGB', size, color).save(output, format='JPEG')
    return output.getvalue()


def make_response(status_code, content=b'', content_type='application/octet-stream', json_body=None):
    """Build a real requests.Response for mocked sessions."""
    response = requests.Response()
    response.status_code = status_code
    if json_body is not None:
        content = json.dumps(json_body).encode('utf-8')
        content_type = 'application/json'
    response._content = content
    response.headers['Content-Type'] = content_type
    response.encoding = 'utf-8'
    response.url = 'https://example.test/'
    return response
