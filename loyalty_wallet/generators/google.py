# loyalty_wallet/generators/google.py

"""
Google Wallet Pass Generator

Builds generic class and object definitions for loyalty cards and signs
the object into a "save to wallet" link.
"""

import logging
from typing import Dict, Any, Optional

from loyalty_wallet.config import WalletConfig
from loyalty_wallet.crypto.jws import CompactTokenSigner, save_claims, save_url
from loyalty_wallet.errors import ConfigurationError
from loyalty_wallet.models import LoyaltyCard

from .base import BasePassGenerator

logger = logging.getLogger(__name__)

LANGUAGE = 'en-US'


def localized(value: str) -> Dict[str, Any]:
    return {'defaultValue': {'language': LANGUAGE, 'value': value}}


def _text_module_row(first: str, second: str) -> Dict[str, Any]:
    return {
        'twoItems': {
            'startItem': {
                'firstValue': {
                    'fields': [{'fieldPath': f"object.textModulesData['{first}']"}]
                }
            },
            'endItem': {
                'firstValue': {
                    'fields': [{'fieldPath': f"object.textModulesData['{second}']"}]
                }
            },
        }
    }


class GooglePassGenerator(BasePassGenerator):
    """
    Generates Google Wallet generic passes.

    Object ids are "<issuer id>.<card id>" and every card belongs to the
    single configured class "<issuer id>.<class suffix>".
    """

    def __init__(
        self,
        config: WalletConfig,
        signer: Optional[CompactTokenSigner] = None,
        issuer_email: Optional[str] = None
    ):
        """
        Initialize Google pass generator.

        Args:
            config: WalletConfig instance
            signer: Token signer holding the service account key
            issuer_email: Service account email used as token issuer
        """
        super().__init__(config)
        if not config.google_issuer_id:
            raise ConfigurationError("GOOGLE_WALLET_ISSUER_ID is required for Google Wallet passes")
        self.signer = signer
        self.issuer_email = issuer_email

    def get_platform_name(self) -> str:
        return 'google'

    def generate(self, card: LoyaltyCard, iat: Optional[int] = None) -> str:
        """
        Build the save-to-wallet URL for a card.

        Args:
            card: LoyaltyCard instance
            iat: Token issue time in unix seconds (defaults to now)

        Returns:
            URL that adds the card to Google Wallet
        """
        return save_url(self.sign_object(card, iat=iat))

    def sign_object(self, card: LoyaltyCard, iat: Optional[int] = None) -> str:
        """Sign the card's generic object into a compact save token."""
        if self.signer is None or not self.issuer_email:
            raise ConfigurationError("Google Wallet signing requires a service account key and email")

        card_object = self.build_object(card)
        claims = save_claims(
            self.issuer_email,
            card_object,
            iat=iat,
            origins=self.config.google_origins,
        )
        token = self.signer.sign(claims)
        logger.info(f"Signed Google Wallet save token for card {card.short_id} ({len(token)} chars)")
        return token

    # =========================================================================
    # Definitions
    # =========================================================================

    def object_id(self, card_id: str) -> str:
        return f"{self.config.google_issuer_id}.{card_id}"

    @staticmethod
    def card_id_from_object_id(object_id: str) -> str:
        """The card id is the last dot-separated segment of an object id."""
        return object_id.rsplit('.', 1)[-1]

    def build_object(self, card: LoyaltyCard) -> Dict[str, Any]:
        """
        Build the generic object for a card.

        Args:
            card: LoyaltyCard instance

        Returns:
            Generic object resource
        """
        self.validate_card(card)
        template_data = self.get_common_template_data(card)

        card_object = {
            'id': self.object_id(card.card_id),
            'classId': self.config.google_class_id,
            'state': 'ACTIVE',
            'cardTitle': localized(template_data['organization_name']),
            'header': localized(template_data['customer_name']),
            'subheader': localized(template_data['tier']),
            'hexBackgroundColor': self.background_color(card),
            'barcode': {
                'type': 'QR_CODE',
                'value': template_data['barcode_data'],
                'alternateText': template_data['short_id'],
            },
            'textModulesData': [module.to_dict() for module in card.fields],
        }
        if self.config.google_logo_uri:
            card_object['logo'] = {'sourceUri': {'uri': self.config.google_logo_uri}}
        return card_object

    def build_class(self) -> Dict[str, Any]:
        """Build the generic class shared by all loyalty cards."""
        return {
            'id': self.config.google_class_id,
            'multipleDevicesAndHoldersAllowedStatus': 'MULTIPLE_HOLDERS',
            'classTemplateInfo': {
                'cardTemplateOverride': {
                    'cardRowTemplateInfos': [_text_module_row('points', 'level')]
                }
            },
        }
