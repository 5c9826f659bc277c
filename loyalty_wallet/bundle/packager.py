# loyalty_wallet/bundle/packager.py

"""
Archive Packager

Validates a pass document and its files, then writes the .pkpass ZIP.
Validation is exposed separately so the issuer can run it before the
manifest is signed; pack() repeats the checks so an invalid archive can
never be produced through it.
"""

import json
import zipfile
import logging
from io import BytesIO
from typing import Dict, Any, Mapping, List

from loyalty_wallet.bundle.assets import REQUIRED_IMAGES, ALLOWED_IMAGES
from loyalty_wallet.bundle.manifest import (
    MANIFEST_NAME, SIGNATURE_NAME, DOCUMENT_NAME, build_manifest, parse_manifest
)
from loyalty_wallet.errors import BundleValidationError

logger = logging.getLogger(__name__)

PASS_TYPE_PREFIX = 'pass.'
TEAM_IDENTIFIER_LENGTH = 10
PASS_STYLES = ('storeCard', 'generic', 'eventTicket', 'coupon', 'boardingPass')
BARCODE_FORMATS = (
    'PKBarcodeFormatQR',
    'PKBarcodeFormatPDF417',
    'PKBarcodeFormatAztec',
    'PKBarcodeFormatCode128',
)
REQUIRED_KEYS = (
    'formatVersion', 'passTypeIdentifier', 'teamIdentifier',
    'serialNumber', 'organizationName', 'description',
)


class ArchivePackager:
    """
    Builds .pkpass archives.

    Example:
        packager = ArchivePackager()
        packager.validate(document, images)
        manifest = build_manifest({'pass.json': document, **images})
        archive = packager.pack(document, serialize_manifest(manifest), signature, images)
    """

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_document(self, document: bytes) -> Dict[str, Any]:
        """
        Check a serialized pass.json.

        Args:
            document: pass.json bytes

        Returns:
            The decoded document

        Raises:
            BundleValidationError: listing every problem found
        """
        try:
            data = json.loads(document.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise BundleValidationError(f"pass.json is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise BundleValidationError("pass.json must be a JSON object")

        issues = []
        for key in REQUIRED_KEYS:
            if data.get(key) in (None, ''):
                issues.append(f"missing {key}")

        version = data.get('formatVersion')
        if 'formatVersion' in data and (type(version) is not int or version != 1):
            issues.append(f"formatVersion must be 1, got {data['formatVersion']!r}")

        pass_type = data.get('passTypeIdentifier')
        if pass_type and not str(pass_type).startswith(PASS_TYPE_PREFIX):
            issues.append(f"passTypeIdentifier must start with '{PASS_TYPE_PREFIX}'")

        team = data.get('teamIdentifier')
        if team and not isinstance(team, str):
            issues.append(f"teamIdentifier must be a string, got {type(team).__name__}")
        elif team and len(team) != TEAM_IDENTIFIER_LENGTH:
            issues.append(
                f"teamIdentifier must be {TEAM_IDENTIFIER_LENGTH} characters, got {len(team)}"
            )

        styles = [style for style in PASS_STYLES if isinstance(data.get(style), dict)]
        if not styles:
            issues.append(f"missing card structure (one of {', '.join(PASS_STYLES)})")
        elif len(styles) > 1:
            issues.append(f"more than one card structure: {', '.join(styles)}")

        issues.extend(self._barcode_issues(data.get('barcodes')))

        if issues:
            raise BundleValidationError(f"Invalid pass.json: {'; '.join(issues)}")
        return data

    def _barcode_issues(self, barcodes) -> List[str]:
        if barcodes is None:
            return []
        if not isinstance(barcodes, list):
            return ["barcodes must be a list"]

        issues = []
        for index, barcode in enumerate(barcodes):
            if not isinstance(barcode, dict):
                issues.append(f"barcodes[{index}] must be an object")
                continue
            if not barcode.get('message'):
                issues.append(f"barcodes[{index}] has no message")
            if barcode.get('format') not in BARCODE_FORMATS:
                issues.append(f"barcodes[{index}] has unknown format {barcode.get('format')!r}")
        return issues

    def validate_files(self, images: Mapping[str, bytes]) -> None:
        """Check required images are present and non-empty and nothing unexpected is included."""
        missing = [name for name in REQUIRED_IMAGES if not images.get(name)]
        if missing:
            raise BundleValidationError(f"Required files missing or empty: {', '.join(missing)}")

        unknown = sorted(name for name in images if name not in ALLOWED_IMAGES)
        if unknown:
            raise BundleValidationError(f"Unexpected files: {', '.join(unknown)}")

        empty = sorted(name for name, data in images.items() if not data)
        if empty:
            raise BundleValidationError(f"Empty files: {', '.join(empty)}")

    def validate(self, document: bytes, images: Mapping[str, bytes]) -> Dict[str, Any]:
        """Validate the document and images before anything is signed."""
        data = self.validate_document(document)
        self.validate_files(images)
        return data

    # =========================================================================
    # Packing
    # =========================================================================

    def pack(
        self,
        document: bytes,
        manifest: bytes,
        signature: bytes,
        images: Mapping[str, bytes]
    ) -> bytes:
        """
        Write the archive.

        Args:
            document: pass.json bytes
            manifest: manifest.json bytes (as signed)
            signature: Detached signature over manifest
            images: Image name to PNG bytes

        Returns:
            ZIP archive bytes
        """
        self.validate(document, images)

        if not signature:
            raise BundleValidationError("Signature is empty")

        files = {DOCUMENT_NAME: document}
        files.update(images)
        self._check_manifest(manifest, files)

        buffer = BytesIO()
        with zipfile.ZipFile(buffer, 'w', self.compression) as archive:
            for name, data in files.items():
                archive.writestr(name, data)
            archive.writestr(MANIFEST_NAME, manifest)
            archive.writestr(SIGNATURE_NAME, signature)

        archive_bytes = buffer.getvalue()
        logger.debug(f"Packed {len(files) + 2} entries into {len(archive_bytes)} byte archive")
        return archive_bytes

    def _check_manifest(self, manifest: bytes, files: Mapping[str, bytes]) -> None:
        try:
            entries = parse_manifest(manifest)
        except (UnicodeDecodeError, ValueError) as e:
            raise BundleValidationError(f"manifest.json is not valid JSON: {e}")

        expected = build_manifest(files)
        extra = sorted(set(entries) - set(expected))
        missing = sorted(set(expected) - set(entries))
        if extra or missing:
            raise BundleValidationError(
                f"Manifest does not match packaged files (extra: {extra}, missing: {missing})"
            )

        stale = sorted(name for name, digest in expected.items() if entries[name] != digest)
        if stale:
            raise BundleValidationError(f"Manifest hashes do not match: {', '.join(stale)}")
