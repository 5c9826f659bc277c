# loyalty_wallet/generators/__init__.py

"""
Wallet Pass Generators

This package contains generators for different wallet platforms:
- Apple Wallet (pass.json documents packaged as .pkpass bundles)
- Google Wallet (generic objects signed into save-to-wallet tokens)

Both generators render the same LoyaltyCard so the two wallets show the
same points, level and barcode.
"""

from .base import BasePassGenerator
from .apple import ApplePassGenerator
from .google import GooglePassGenerator

__all__ = [
    'BasePassGenerator',
    'ApplePassGenerator',
    'GooglePassGenerator',
]
