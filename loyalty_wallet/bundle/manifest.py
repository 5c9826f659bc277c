# loyalty_wallet/bundle/manifest.py

"""
Pass Manifest

SHA-1 content hashes of every file in a pass. The serialized manifest is
what gets signed, so serialization must be byte-for-byte deterministic.
"""

import json
import hashlib
from typing import Dict, Mapping

MANIFEST_NAME = 'manifest.json'
SIGNATURE_NAME = 'signature'
DOCUMENT_NAME = 'pass.json'


def build_manifest(files: Mapping[str, bytes]) -> Dict[str, str]:
    """
    Hash each file.

    Args:
        files: Mapping of file name to raw bytes

    Returns:
        Mapping of file name to lowercase hex SHA-1 digest
    """
    return {name: hashlib.sha1(data).hexdigest() for name, data in files.items()}


def serialize_manifest(manifest: Mapping[str, str]) -> bytes:
    return json.dumps(dict(manifest), sort_keys=True, separators=(',', ':')).encode('utf-8')


def parse_manifest(data: bytes) -> Dict[str, str]:
    """Decode manifest bytes back into a dict (used when inspecting archives)."""
    manifest = json.loads(data.decode('utf-8'))
    if not isinstance(manifest, dict):
        raise ValueError("Manifest must be a JSON object")
    return manifest
