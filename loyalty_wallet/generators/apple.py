# loyalty_wallet/generators/apple.py

"""
Apple Wallet Pass Generator

Builds the pass.json document for a loyalty card using the wallet
library's pass model. Hashing, signing and packaging of the document are
handled by the bundle pipeline.
"""

import json
import logging
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from wallet.models import Pass, Barcode, StoreCard, Field, Alignment

from loyalty_wallet.config import WalletConfig
from loyalty_wallet.errors import ConfigurationError
from loyalty_wallet.models import LoyaltyCard

from .base import BasePassGenerator

logger = logging.getLogger(__name__)

BARCODE_FORMAT = 'PKBarcodeFormatQR'
BARCODE_ENCODING = 'iso-8859-1'
FIELD_GROUPS = ('headerFields', 'primaryFields', 'secondaryFields', 'auxiliaryFields', 'backFields')


def _json_default(obj):
    if hasattr(obj, 'json_dict'):
        return obj.json_dict()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _w3c_date(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


class ApplePassGenerator(BasePassGenerator):
    """
    Generates Apple Wallet pass.json documents.

    Store card layout: customer name as the primary field, points and
    level as secondary fields, the short card id as an auxiliary field,
    terms and contact details on the back.
    """

    def __init__(self, config: WalletConfig):
        super().__init__(config)
        if not config.team_identifier:
            raise ConfigurationError("WALLET_TEAM_ID is required for Apple Wallet passes")

    def get_platform_name(self) -> str:
        return 'apple'

    def generate(self, card: LoyaltyCard) -> bytes:
        """
        Build pass.json bytes for a card.

        Args:
            card: LoyaltyCard instance

        Returns:
            UTF-8 encoded pass.json
        """
        document = self.build_document(card)
        return self.serialize(document)

    def serialize(self, document: Dict[str, Any]) -> bytes:
        return json.dumps(document, indent=2, sort_keys=True).encode('utf-8')

    def build_document(self, card: LoyaltyCard, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the pass.json structure.

        Args:
            card: LoyaltyCard instance
            now: Issue time (defaults to the current UTC time)

        Returns:
            pass.json as a dictionary
        """
        self.validate_card(card)
        now = now or datetime.now(timezone.utc)
        template_data = self.get_common_template_data(card)

        pass_obj = self._create_pass_object(card, template_data)
        document = json.loads(json.dumps(pass_obj, default=_json_default))

        self._clean_fields(document)
        document['barcodes'] = [self._barcode_dict(card)]
        document['relevantDate'] = _w3c_date(now)
        document['expirationDate'] = _w3c_date(now + timedelta(days=self.config.pass_validity_days))
        document['voided'] = False

        logger.info(
            f"Built Apple Wallet pass.json for card {card.short_id} "
            f"(tier: {card.tier})"
        )
        return document

    def _create_pass_object(self, card: LoyaltyCard, template_data: Dict) -> Pass:
        card_info = StoreCard()

        card_info.addPrimaryField('customerName', template_data['customer_name'], 'CUSTOMER')
        card_info.addSecondaryField('points', template_data['points'], 'POINTS')
        card_info.addSecondaryField('level', template_data['tier'], 'LEVEL')

        card_id_field = Field('cardId', template_data['short_id'], 'CARD ID')
        card_id_field.textAlignment = Alignment.RIGHT
        card_info.auxiliaryFields.append(card_id_field)

        card_info.addBackField('terms', self.config.terms_text, 'TERMS & CONDITIONS')
        card_info.addBackField('contact', self.config.contact_text, 'CONTACT')

        pass_obj = Pass(
            card_info,
            passTypeIdentifier=self.config.pass_type_identifier,
            organizationName=template_data['organization_name'],
            teamIdentifier=self.config.team_identifier
        )

        pass_obj.serialNumber = card.card_id
        pass_obj.description = template_data['description']
        pass_obj.barcode = Barcode(message=card.barcode_value, format=BARCODE_FORMAT)

        pass_obj.backgroundColor = self.background_color(card, rgb=True)
        pass_obj.foregroundColor = self.config.foreground_color
        pass_obj.labelColor = self.config.label_color
        pass_obj.logoText = template_data['logo_text']

        # Web service configuration for pass updates
        if self.config.web_service_url and self.config.authentication_token:
            pass_obj.webServiceURL = self.config.web_service_url
            pass_obj.authenticationToken = self.config.authentication_token
        else:
            logger.debug("No web service configured, pass will not receive updates")

        return pass_obj

    def _barcode_dict(self, card: LoyaltyCard) -> Dict[str, str]:
        return {
            'message': card.barcode_value,
            'format': BARCODE_FORMAT,
            'messageEncoding': BARCODE_ENCODING,
            'altText': card.short_id,
        }

    def _clean_fields(self, document: Dict[str, Any]) -> None:
        """Drop empty attributes the pass model emits for unset field options."""
        card_info = document.get('storeCard') or {}
        for group in FIELD_GROUPS:
            fields = card_info.get(group)
            if not fields:
                continue
            card_info[group] = [
                {k: v for k, v in field.items() if v not in ('', None)}
                for field in fields
            ]
