"""
Pass generator tests for both wallets.
"""
import json
from dataclasses import replace
from datetime import datetime, timezone

import jwt
import pytest

from loyalty_wallet.errors import ConfigurationError, InvalidCardRequest
from loyalty_wallet.generators import ApplePassGenerator, GooglePassGenerator
from loyalty_wallet.models import LoyaltyCard

from tests.helpers import ISSUER_ID, TEAM_ID, PASS_TYPE_ID, SERVICE_ACCOUNT_EMAIL

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def field_values(fields):
    return {field['key']: field['value'] for field in fields}


@pytest.fixture
def card(wallet_config):
    return LoyaltyCard.create('Alice', 150, wallet_config.google_class_id,
                              card_id='0f8fad5b-d9cb-469f-a165-70867728950e')


@pytest.fixture
def apple_generator(wallet_config):
    return ApplePassGenerator(wallet_config)


@pytest.fixture
def google_generator(wallet_config, token_signer):
    return GooglePassGenerator(wallet_config, token_signer, SERVICE_ACCOUNT_EMAIL)


@pytest.mark.unit
class TestApplePassGenerator:
    """Test pass.json generation."""

    def test_identity_fields(self, apple_generator, card):
        document = apple_generator.build_document(card, now=NOW)

        assert document['formatVersion'] == 1
        assert document['teamIdentifier'] == TEAM_ID
        assert document['passTypeIdentifier'] == PASS_TYPE_ID
        assert document['serialNumber'] == card.card_id
        assert document['organizationName'] == 'Corner Coffee'

    def test_store_card_fields(self, apple_generator, card):
        """
        GIVEN Alice with 150 points
        WHEN building her pass document
        THEN the display fields show 150 points and the Silver level
        """
        store_card = apple_generator.build_document(card, now=NOW)['storeCard']

        assert field_values(store_card['primaryFields']) == {'customerName': 'Alice'}
        assert field_values(store_card['secondaryFields']) == {'points': '150', 'level': 'Silver'}
        assert field_values(store_card['auxiliaryFields']) == {'cardId': '0F8FAD5B'}
        assert set(field_values(store_card['backFields'])) == {'terms', 'contact'}

    def test_empty_field_attributes_are_dropped(self, apple_generator, card):
        store_card = apple_generator.build_document(card, now=NOW)['storeCard']
        for field in store_card['secondaryFields']:
            assert '' not in field.values()

    def test_barcode_and_colors(self, apple_generator, card):
        document = apple_generator.build_document(card, now=NOW)

        assert document['barcodes'] == [{
            'message': card.card_id,
            'format': 'PKBarcodeFormatQR',
            'messageEncoding': 'iso-8859-1',
            'altText': '0F8FAD5B',
        }]
        assert document['backgroundColor'] == 'rgb(192, 192, 192)'

    def test_dates(self, apple_generator, card, wallet_config):
        wallet_config.pass_validity_days = 30
        document = apple_generator.build_document(card, now=NOW)

        assert document['relevantDate'] == '2026-03-01T12:00:00+00:00'
        assert document['expirationDate'] == '2026-03-31T12:00:00+00:00'
        assert document['voided'] is False

    def test_web_service_only_when_fully_configured(self, apple_generator, card, wallet_config):
        wallet_config.web_service_url = 'https://wallet.example.com/api'
        assert 'webServiceURL' not in apple_generator.build_document(card, now=NOW)

        wallet_config.authentication_token = 'a' * 32
        document = apple_generator.build_document(card, now=NOW)
        assert document['webServiceURL'] == 'https://wallet.example.com/api'
        assert document['authenticationToken'] == 'a' * 32

    def test_generate_returns_json_bytes(self, apple_generator, card):
        document = json.loads(apple_generator.generate(card))
        assert document['serialNumber'] == card.card_id

    def test_requires_team_identifier(self, wallet_config):
        wallet_config.team_identifier = ''
        with pytest.raises(ConfigurationError):
            ApplePassGenerator(wallet_config)

    def test_rejects_blank_name(self, apple_generator, card):
        blank = replace(card, customer_name='   ')
        with pytest.raises(InvalidCardRequest):
            apple_generator.build_document(blank)


@pytest.mark.unit
class TestGooglePassGenerator:
    """Test generic object and save link generation."""

    def test_object_fields(self, google_generator, card):
        card_object = google_generator.build_object(card)

        assert card_object['id'] == f'{ISSUER_ID}.{card.card_id}'
        assert card_object['classId'] == f'{ISSUER_ID}.loyalty_card'
        assert card_object['state'] == 'ACTIVE'
        assert card_object['header']['defaultValue']['value'] == 'Alice'
        assert card_object['subheader']['defaultValue']['value'] == 'Silver'
        assert card_object['hexBackgroundColor'] == '#C0C0C0'
        assert card_object['barcode'] == {
            'type': 'QR_CODE', 'value': card.card_id, 'alternateText': '0F8FAD5B'
        }
        assert card_object['textModulesData'] == [
            {'id': 'points', 'header': 'POINTS', 'body': '150'},
            {'id': 'level', 'header': 'LEVEL', 'body': 'Silver'},
        ]
        assert 'logo' not in card_object

    def test_logo_when_configured(self, google_generator, card, wallet_config):
        wallet_config.google_logo_uri = 'https://cdn.example.com/logo.png'
        assert google_generator.build_object(card)['logo'] == {
            'sourceUri': {'uri': 'https://cdn.example.com/logo.png'}
        }

    def test_save_link_carries_signed_object(self, google_generator, card, signing_key):
        url = google_generator.generate(card, iat=1700000000)

        assert url.startswith('https://pay.google.com/gp/v/save/')
        token = url.rsplit('/', 1)[-1]
        claims = jwt.decode(token, signing_key.public_key(), algorithms=['RS256'], audience='google')
        assert claims['payload']['genericObjects'][0]['id'] == f'{ISSUER_ID}.{card.card_id}'

    def test_class_definition(self, google_generator):
        definition = google_generator.build_class()

        assert definition['id'] == f'{ISSUER_ID}.loyalty_card'
        row = definition['classTemplateInfo']['cardTemplateOverride']['cardRowTemplateInfos'][0]
        assert "textModulesData['points']" in json.dumps(row)

    def test_object_id_round_trip(self, google_generator):
        object_id = google_generator.object_id('card-1')
        assert GooglePassGenerator.card_id_from_object_id(object_id) == 'card-1'

    def test_signing_requires_service_account(self, wallet_config, card):
        with pytest.raises(ConfigurationError):
            GooglePassGenerator(wallet_config).sign_object(card)

    def test_requires_issuer_id(self, wallet_config):
        wallet_config.google_issuer_id = ''
        with pytest.raises(ConfigurationError):
            GooglePassGenerator(wallet_config)
