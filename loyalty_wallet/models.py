# loyalty_wallet/models.py

"""
Loyalty Card Models

Immutable value objects passed through the issuance pipeline and the
result wrapper returned to callers.
"""

import uuid
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Dict, Any, Generic, TypeVar

from loyalty_wallet.policy import tier_for, tier_color

T = TypeVar('T')


@dataclass(frozen=True)
class TextModule:
    """A labelled value shown on the card face."""
    id: str
    header: str
    body: str

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'header': self.header, 'body': self.body}


@dataclass(frozen=True)
class LoyaltyCard:
    """
    A loyalty card as issued to a customer.

    Cards are never mutated. Updating the balance produces a new card with
    the same identifier and a freshly derived tier.
    """
    card_id: str
    class_id: str
    customer_name: str
    points: int
    tier: str
    background_color: str
    fields: Tuple[TextModule, ...] = field(default_factory=tuple)

    @property
    def barcode_value(self) -> str:
        return self.card_id

    @property
    def short_id(self) -> str:
        """First eight characters of the card id, upper-cased for display."""
        return self.card_id[:8].upper()

    @classmethod
    def create(
        cls,
        customer_name: str,
        points: int,
        class_id: str,
        card_id: Optional[str] = None
    ) -> 'LoyaltyCard':
        """
        Build a card, deriving tier, colour and display fields from points.

        Args:
            customer_name: Display name of the card holder
            points: Non-negative point balance
            class_id: Program/class identifier the card belongs to
            card_id: Existing identifier to reuse (a new UUID4 if omitted)

        Returns:
            New LoyaltyCard instance
        """
        tier = tier_for(points)
        return cls(
            card_id=card_id or str(uuid.uuid4()),
            class_id=class_id,
            customer_name=customer_name,
            points=points,
            tier=tier,
            background_color=tier_color(tier),
            fields=_display_fields(points, tier),
        )

    def with_points(self, points: int) -> 'LoyaltyCard':
        """Return a superseding card for a new balance."""
        tier = tier_for(points)
        return replace(
            self,
            points=points,
            tier=tier,
            background_color=tier_color(tier),
            fields=_display_fields(points, tier),
        )


def _display_fields(points: int, tier: str) -> Tuple[TextModule, ...]:
    return (
        TextModule(id='points', header='POINTS', body=str(points)),
        TextModule(id='level', header='LEVEL', body=tier),
    )


@dataclass
class IssuanceResult(Generic[T]):
    """
    Result wrapper for issuance operations.

    A failed result never carries an artifact, so callers cannot mistake a
    degraded pass for a real one.
    """
    success: bool
    message: str
    data: Optional[T] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: T = None, message: str = "Success") -> 'IssuanceResult[T]':
        """Create a successful result."""
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error_code: str = None) -> 'IssuanceResult[T]':
        """Create a failure result."""
        return cls(success=False, message=message, error_code=error_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'data': self.data,
            'error_code': self.error_code,
        }


@dataclass(frozen=True)
class IssuedPass:
    """What an issuance hands back: the card plus where to get the artifact."""
    card: LoyaltyCard
    platform: str
    url: str
    token: Optional[str] = None
    storage_key: Optional[str] = None
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cardId': self.card.card_id,
            'customerName': self.card.customer_name,
            'points': self.card.points,
            'tier': self.card.tier,
            'platform': self.platform,
            'url': self.url,
            'storageKey': self.storage_key,
            'size': self.size,
        }
