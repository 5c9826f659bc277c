"""
Archive packager tests.
"""
import json
import zipfile
from io import BytesIO

import pytest

from loyalty_wallet.bundle.manifest import build_manifest, serialize_manifest
from loyalty_wallet.bundle.packager import ArchivePackager
from loyalty_wallet.errors import BundleValidationError

from tests.helpers import TEAM_ID, PASS_TYPE_ID


def make_document(**changes):
    document = {
        'formatVersion': 1,
        'passTypeIdentifier': PASS_TYPE_ID,
        'teamIdentifier': TEAM_ID,
        'serialNumber': 'card-1',
        'organizationName': 'Corner Coffee',
        'description': 'Loyalty Card',
        'storeCard': {'primaryFields': [{'key': 'customerName', 'value': 'Alice'}]},
        'barcodes': [{'message': 'card-1', 'format': 'PKBarcodeFormatQR'}],
    }
    document.update(changes)
    return {k: v for k, v in document.items() if v is not None}


def encode(document):
    return json.dumps(document).encode('utf-8')


@pytest.fixture
def packager():
    return ArchivePackager()


@pytest.fixture
def document():
    return encode(make_document())


@pytest.fixture
def manifest(document, images):
    return serialize_manifest(build_manifest({'pass.json': document, **images}))


@pytest.mark.unit
class TestDocumentValidation:
    """Test pass.json validation."""

    def test_valid_document(self, packager, document):
        assert packager.validate_document(document)['serialNumber'] == 'card-1'

    @pytest.mark.parametrize('changes,expected', [
        ({'organizationName': ''}, 'missing organizationName'),
        ({'serialNumber': None}, 'missing serialNumber'),
        ({'formatVersion': 2}, 'formatVersion must be 1'),
        ({'formatVersion': True}, 'formatVersion must be 1'),
        ({'formatVersion': '1'}, 'formatVersion must be 1'),
        ({'passTypeIdentifier': 'com.example.loyalty'}, "must start with 'pass.'"),
        ({'teamIdentifier': 'ABC'}, 'teamIdentifier must be 10 characters'),
        ({'teamIdentifier': 1234567890}, 'teamIdentifier must be a string'),
        ({'storeCard': None}, 'missing card structure'),
        ({'generic': {}}, 'more than one card structure'),
        ({'barcodes': [{'message': '', 'format': 'PKBarcodeFormatQR'}]}, 'has no message'),
        ({'barcodes': [{'message': 'x', 'format': 'QR'}]}, 'unknown format'),
    ])
    def test_invalid_documents(self, packager, changes, expected):
        with pytest.raises(BundleValidationError, match=expected):
            packager.validate_document(encode(make_document(**changes)))

    def test_not_json(self, packager):
        with pytest.raises(BundleValidationError, match='not valid JSON'):
            packager.validate_document(b'{"formatVersion": ')

    def test_every_issue_is_reported(self, packager):
        with pytest.raises(BundleValidationError) as exc_info:
            packager.validate_document(encode(make_document(formatVersion=3, teamIdentifier='X')))

        assert 'formatVersion' in exc_info.value.message
        assert 'teamIdentifier' in exc_info.value.message


@pytest.mark.unit
class TestFileValidation:
    """Test the image file set checks."""

    def test_missing_required_image(self, packager, images):
        del images['logo.png']
        with pytest.raises(BundleValidationError, match='logo.png'):
            packager.validate_files(images)

    def test_empty_required_image(self, packager, images):
        images['icon.png'] = b''
        with pytest.raises(BundleValidationError, match='icon.png'):
            packager.validate_files(images)

    def test_unexpected_file(self, packager, images):
        images['strip.png'] = b'x'
        with pytest.raises(BundleValidationError, match='strip.png'):
            packager.validate_files(images)

    def test_empty_optional_image(self, packager, images):
        images['logo@3x.png'] = b''
        with pytest.raises(BundleValidationError, match='Empty files'):
            packager.validate_files(images)


@pytest.mark.unit
class TestPack:
    """Test writing the archive."""

    def test_archive_contents_match_manifest(self, packager, document, manifest, images):
        """
        GIVEN a validated document, its images and their manifest
        WHEN packing
        THEN the archive holds exactly the manifest's files plus manifest and signature
        """
        archive = packager.pack(document, manifest, b'\x30\x80signature', images)

        with zipfile.ZipFile(BytesIO(archive)) as bundle:
            names = set(bundle.namelist())
            packaged = {name: bundle.read(name) for name in names}

        assert names - {'manifest.json', 'signature'} == set(json.loads(manifest))
        assert packaged['manifest.json'] == manifest
        assert packaged['signature'] == b'\x30\x80signature'
        assert build_manifest({
            name: data for name, data in packaged.items()
            if name not in ('manifest.json', 'signature')
        }) == json.loads(manifest)

    def test_empty_signature(self, packager, document, manifest, images):
        with pytest.raises(BundleValidationError, match='Signature is empty'):
            packager.pack(document, manifest, b'', images)

    def test_manifest_missing_a_file(self, packager, document, images):
        partial = serialize_manifest(build_manifest({'pass.json': document}))

        with pytest.raises(BundleValidationError, match='does not match packaged files'):
            packager.pack(document, partial, b'\x30sig', images)

    def test_manifest_with_stale_hash(self, packager, document, images):
        entries = build_manifest({'pass.json': document, **images})
        entries['icon.png'] = '0' * 40

        with pytest.raises(BundleValidationError, match='icon.png'):
            packager.pack(document, serialize_manifest(entries), b'\x30sig', images)

    def test_invalid_document_is_never_packed(self, packager, images):
        document = encode(make_document(teamIdentifier='SHORT'))
        manifest = serialize_manifest(build_manifest({'pass.json': document, **images}))

        with pytest.raises(BundleValidationError):
            packager.pack(document, manifest, b'\x30sig', images)
