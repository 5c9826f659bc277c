# loyalty_wallet/generators/base.py

"""
Base Pass Generator

Abstract base class for wallet pass generators. Holds the shared card
checks and template data used by the Apple and Google generators.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any

from loyalty_wallet.config import WalletConfig
from loyalty_wallet.errors import InvalidCardRequest
from loyalty_wallet.models import LoyaltyCard
from loyalty_wallet.policy import TIERS, tier_color

logger = logging.getLogger(__name__)


class BasePassGenerator(ABC):
    """
    Abstract base class for wallet pass generation.

    Platform-specific implementations (Apple, Google) extend this class.
    """

    def __init__(self, config: WalletConfig):
        """
        Initialize the generator.

        Args:
            config: WalletConfig instance
        """
        self.config = config

    @abstractmethod
    def generate(self, card: LoyaltyCard) -> Any:
        """
        Build the platform document for a card.

        Args:
            card: LoyaltyCard instance

        Returns:
            Platform-specific output (pass.json bytes for Apple, save URL for Google)
        """
        pass

    @abstractmethod
    def get_platform_name(self) -> str:
        """Return the platform name (e.g., 'apple', 'google')"""
        pass

    def get_common_template_data(self, card: LoyaltyCard) -> Dict[str, Any]:
        """
        Values shown on both platforms.

        Args:
            card: LoyaltyCard instance

        Returns:
            Dictionary of display values
        """
        return {
            'card_id': card.card_id,
            'short_id': card.short_id,
            'customer_name': card.customer_name,
            'points': str(card.points),
            'tier': card.tier,
            'barcode_data': card.barcode_value,
            'organization_name': self.config.organization_name,
            'description': self.config.description,
            'logo_text': self.config.logo_text,
            'issue_date': datetime.now(timezone.utc).strftime('%Y-%m-%d'),
        }

    def validate_card(self, card: LoyaltyCard) -> bool:
        """
        Validate that a card has everything needed for generation.

        Returns:
            True if valid, raises InvalidCardRequest if not
        """
        if not card.customer_name or not card.customer_name.strip():
            raise InvalidCardRequest("Card must have a customer name")

        if not card.card_id:
            raise InvalidCardRequest("Card must have an identifier")

        if isinstance(card.points, bool) or not isinstance(card.points, int) or card.points < 0:
            raise InvalidCardRequest("Card points must be a non-negative integer")

        if card.tier not in TIERS:
            raise InvalidCardRequest(f"Unknown tier '{card.tier}'")

        return True

    def background_color(self, card: LoyaltyCard, rgb: bool = False) -> str:
        return tier_color(card.tier, rgb=rgb)
