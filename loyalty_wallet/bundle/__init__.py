# loyalty_wallet/bundle/__init__.py

"""
Apple Wallet bundle pipeline: images, manifest, detached signature and
.pkpass packaging.
"""

from .assets import load_images, REQUIRED_IMAGES, OPTIONAL_IMAGES
from .manifest import build_manifest, serialize_manifest
from .packager import ArchivePackager
from .signers import BundleSigner, LocalBundleSigner, RemoteBundleSigner, build_bundle_signer
from .verify import verify_detached_signature, inspect_archive

__all__ = [
    'load_images',
    'REQUIRED_IMAGES',
    'OPTIONAL_IMAGES',
    'build_manifest',
    'serialize_manifest',
    'ArchivePackager',
    'BundleSigner',
    'LocalBundleSigner',
    'RemoteBundleSigner',
    'build_bundle_signer',
    'verify_detached_signature',
    'inspect_archive',
]
