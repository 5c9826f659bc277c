# loyalty_wallet/__init__.py

"""
Loyalty Wallet Pass Module

Issues loyalty cards for Apple Wallet (.pkpass bundles with a detached
signature) and Google Wallet (signed save-to-wallet tokens), and serves
the resulting passes over HTTP.
"""

from typing import Optional

from flask import Flask

from .config import WalletConfig
from .errors import (
    WalletError, ConfigurationError, KeyParseError, SigningError,
    BundleValidationError, UploadError, InvalidCardRequest
)
from .models import LoyaltyCard, IssuanceResult, IssuedPass
from .policy import tier_for
from .services.pass_service import PassIssuer


def create_app(
    config: Optional[WalletConfig] = None,
    issuer: Optional[PassIssuer] = None,
    testing: bool = False
) -> Flask:
    """
    Create the pass server application.

    Args:
        config: WalletConfig (read from the environment if omitted)
        issuer: Pre-built PassIssuer (built from config if omitted)
        testing: Use test logging and Flask testing mode

    Returns:
        Flask application
    """
    from .cli import register_cli
    from .log_config import init_logging
    from .routes import public_wallet_bp

    app = Flask(__name__)
    app.config['TESTING'] = testing
    init_logging(app)

    wallet_config = config or (issuer.config if issuer else WalletConfig.from_env())
    app.extensions['wallet_issuer'] = issuer or PassIssuer.from_config(wallet_config)

    app.register_blueprint(public_wallet_bp)
    register_cli(app)
    return app


__all__ = [
    'create_app',
    'WalletConfig',
    'WalletError',
    'ConfigurationError',
    'KeyParseError',
    'SigningError',
    'BundleValidationError',
    'UploadError',
    'InvalidCardRequest',
    'LoyaltyCard',
    'IssuanceResult',
    'IssuedPass',
    'PassIssuer',
    'tier_for',
]
