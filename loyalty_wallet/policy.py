# loyalty_wallet/policy.py

"""
Card Policy

Maps a point balance to its loyalty tier and the colours each wallet
uses to render that tier.
"""

from typing import Dict, List, Tuple

BRONZE = 'Bronze'
SILVER = 'Silver'
GOLD = 'Gold'
PLATINUM = 'Platinum'

# Highest threshold first; the first match wins.
TIER_THRESHOLDS: List[Tuple[int, str]] = [
    (1000, PLATINUM),
    (500, GOLD),
    (100, SILVER),
    (0, BRONZE),
]

TIERS = [BRONZE, SILVER, GOLD, PLATINUM]

TIER_HEX_COLORS: Dict[str, str] = {
    BRONZE: '#CD7F32',
    SILVER: '#C0C0C0',
    GOLD: '#FFD700',
    PLATINUM: '#E5E4E2',
}

TIER_RGB_COLORS: Dict[str, str] = {
    BRONZE: 'rgb(205, 127, 50)',
    SILVER: 'rgb(192, 192, 192)',
    GOLD: 'rgb(255, 215, 0)',
    PLATINUM: 'rgb(229, 228, 226)',
}

DEFAULT_HEX_COLOR = '#4285F4'
DEFAULT_RGB_COLOR = 'rgb(66, 133, 244)'


def tier_for(points: int) -> str:
    """
    Return the tier label for a point balance.

    Args:
        points: Non-negative point balance

    Returns:
        One of Bronze, Silver, Gold or Platinum
    """
    for threshold, tier in TIER_THRESHOLDS:
        if points >= threshold:
            return tier
    return BRONZE


def tier_color(tier: str, rgb: bool = False) -> str:
    """Background colour for a tier, as hex (Google) or rgb() (Apple)."""
    if rgb:
        return TIER_RGB_COLORS.get(tier, DEFAULT_RGB_COLOR)
    return TIER_HEX_COLORS.get(tier, DEFAULT_HEX_COLOR)
