# loyalty_wallet/routes/__init__.py

"""
HTTP routes for serving passes and issuing cards.
"""

from .public import public_wallet_bp

__all__ = ['public_wallet_bp']
