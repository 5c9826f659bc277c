# loyalty_wallet/services/pass_service.py

"""
Pass Issuance Service

Provides a high-level interface for issuing and updating loyalty cards on
both wallet platforms. Each issuance runs one linear pipeline:

    Apple:  pass.json -> validate -> manifest -> sign -> pack -> upload
    Google: generic object -> signed save token -> save URL

Nothing reaches the object store until the archive is complete and
signed, and a failed step never yields a result that looks like a pass.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Dict, Any, List, Iterable, Mapping, Callable

import requests

from loyalty_wallet.bundle.assets import load_images, normalize_images
from loyalty_wallet.bundle.manifest import DOCUMENT_NAME, build_manifest, serialize_manifest
from loyalty_wallet.bundle.packager import ArchivePackager
from loyalty_wallet.bundle.signers import BundleSigner, build_bundle_signer
from loyalty_wallet.bundle.verify import verify_detached_signature
from loyalty_wallet.config import WalletConfig
from loyalty_wallet.crypto.jws import CompactTokenSigner, save_url
from loyalty_wallet.crypto.keys import parse_signing_key
from loyalty_wallet.errors import (
    BundleValidationError, ConfigurationError, InvalidCardRequest, KeyParseError, WalletError
)
from loyalty_wallet.generators import ApplePassGenerator, GooglePassGenerator
from loyalty_wallet.models import LoyaltyCard, IssuanceResult, IssuedPass
from loyalty_wallet.policy import tier_color
from loyalty_wallet.services.google_api import GoogleWalletClient
from loyalty_wallet.services.storage import (
    ObjectStore, PKPASS_CONTENT_TYPE, build_object_store, upload_with_retry
)

logger = logging.getLogger(__name__)

PLATFORMS = ('apple', 'google')


def validate_request(customer_name, points) -> str:
    """
    Check an issuance request before anything is built or signed.

    Returns:
        The stripped customer name

    Raises:
        InvalidCardRequest: on an empty name or a negative/non-integer balance
    """
    if not isinstance(customer_name, str) or not customer_name.strip():
        raise InvalidCardRequest("Customer name is required")
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidCardRequest("Points must be an integer")
    if points < 0:
        raise InvalidCardRequest("Points cannot be negative")
    return customer_name.strip()


class PassIssuer:
    """
    Unified service for loyalty card issuance.

    Collaborators are injected so tests and embedding applications can
    swap any of them; from_config() wires the production set.
    """

    def __init__(
        self,
        config: WalletConfig,
        apple_generator: Optional[ApplePassGenerator] = None,
        bundle_signer: Optional[BundleSigner] = None,
        images: Optional[Mapping[str, bytes]] = None,
        google_generator: Optional[GooglePassGenerator] = None,
        google_client: Optional[GoogleWalletClient] = None,
        object_store: Optional[ObjectStore] = None,
        packager: Optional[ArchivePackager] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.apple_generator = apple_generator
        self.bundle_signer = bundle_signer
        self.images = normalize_images(images) if images else {}
        self.google_generator = google_generator
        self.google_client = google_client
        self.object_store = object_store
        self.packager = packager or ArchivePackager()
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: WalletConfig, session: Optional[requests.Session] = None) -> 'PassIssuer':
        """
        Build an issuer for whichever platforms are configured.

        A platform whose configuration does not validate is left disabled;
        issuing for it raises ConfigurationError.
        """
        options: Dict[str, Any] = {}

        try:
            config.validate_apple()
            options['apple_generator'] = ApplePassGenerator(config)
            options['bundle_signer'] = build_bundle_signer(config, session=session)
            options['images'] = load_images(config.assets_path)
        except (ConfigurationError, KeyParseError, BundleValidationError) as e:
            logger.warning(f"Apple Wallet disabled: {e.message}")
            for name in ('apple_generator', 'bundle_signer', 'images'):
                options.pop(name, None)

        try:
            config.validate_google()
            account = config.load_service_account()
            signer = CompactTokenSigner(parse_signing_key(account['private_key']))
            options['google_generator'] = GooglePassGenerator(config, signer, account['client_email'])
            options['google_client'] = GoogleWalletClient(
                config, signer, account['client_email'], session=session
            )
        except (ConfigurationError, KeyParseError) as e:
            logger.warning(f"Google Wallet disabled: {e.message}")
            options.pop('google_generator', None)
            options.pop('google_client', None)

        options['object_store'] = build_object_store(config, session=session)
        return cls(config, **options)

    # =========================================================================
    # Cards
    # =========================================================================

    def create_card(self, customer_name, points, card_id: Optional[str] = None) -> LoyaltyCard:
        name = validate_request(customer_name, points)
        return LoyaltyCard.create(name, points, self.config.google_class_id, card_id=card_id)

    def preview(self, customer_name, points) -> Dict[str, Any]:
        """Name, points, tier and colour for a prospective card."""
        card = self.create_card(customer_name, points)
        return {
            'customerName': card.customer_name,
            'points': card.points,
            'tier': card.tier,
            'color': card.background_color,
            'appleColor': tier_color(card.tier, rgb=True),
        }

    # =========================================================================
    # Issuance
    # =========================================================================

    def issue(
        self,
        customer_name,
        points,
        platform: str = 'apple',
        card_id: Optional[str] = None
    ) -> IssuanceResult:
        """
        Issue a card on one platform.

        Args:
            customer_name: Display name of the card holder
            points: Non-negative integer balance
            platform: 'apple' or 'google'
            card_id: Reuse an existing card id

        Returns:
            IssuanceResult carrying an IssuedPass on success
        """
        try:
            if platform not in PLATFORMS:
                raise InvalidCardRequest(f"Unknown platform '{platform}'")
            card = self.create_card(customer_name, points, card_id=card_id)
            issued = self._issue_card(card, platform)
        except WalletError as e:
            logger.error(f"Error issuing {platform} pass: {e.message}")
            return IssuanceResult.fail(e.message, e.error_code)

        return IssuanceResult.ok(issued, message=f"Issued {card.tier} card")

    def _issue_card(self, card: LoyaltyCard, platform: str) -> IssuedPass:
        if platform == 'google':
            return self.issue_google(card)
        return self.issue_apple(card)

    def build_apple_pass(self, card: LoyaltyCard) -> bytes:
        """
        Build a signed .pkpass archive for a card.

        Args:
            card: LoyaltyCard instance

        Returns:
            Archive bytes
        """
        if self.apple_generator is None or self.bundle_signer is None:
            raise ConfigurationError("Apple Wallet is not configured")

        document = self.apple_generator.generate(card)

        # Validate before signing so an invalid pass is never signed
        self.packager.validate(document, self.images)

        files = {DOCUMENT_NAME: document}
        files.update(self.images)
        manifest_bytes = serialize_manifest(build_manifest(files))

        signature = self.bundle_signer.sign_manifest(manifest_bytes)
        if self.config.verify_signatures:
            verify_detached_signature(
                signature, manifest_bytes, ca_file=self.config.verify_ca_path or None
            )

        archive = self.packager.pack(document, manifest_bytes, signature, self.images)
        logger.info(
            f"Built Apple Wallet pass for card {card.short_id} with {self.bundle_signer.name} "
            f"({len(archive)} bytes)"
        )
        return archive

    def issue_apple(self, card: LoyaltyCard) -> IssuedPass:
        if self.object_store is None:
            raise ConfigurationError("No object store configured")

        archive = self.build_apple_pass(card)
        key = f"{card.card_id}.pkpass"
        url = upload_with_retry(
            self.object_store,
            archive,
            key,
            content_type=PKPASS_CONTENT_TYPE,
            max_attempts=self.config.upload_max_attempts,
            backoff_seconds=self.config.upload_backoff_seconds,
            sleep=self._sleep,
        )
        return IssuedPass(card=card, platform='apple', url=url, storage_key=key, size=len(archive))

    def issue_google(self, card: LoyaltyCard, iat: Optional[int] = None) -> IssuedPass:
        if self.google_generator is None:
            raise ConfigurationError("Google Wallet is not configured")

        token = self.google_generator.sign_object(card, iat=iat)
        return IssuedPass(card=card, platform='google', url=save_url(token), token=token, size=len(token))

    def issue_both_platforms(self, customer_name, points) -> Dict[str, Any]:
        """
        Issue one card on both platforms.

        Returns:
            Dict with 'apple' and 'google' IssuedPass values (None when that
            platform failed) and the matching '<platform>_error' messages.
        """
        result = {
            'apple': None,
            'google': None,
            'apple_error': None,
            'google_error': None,
        }
        card = self.create_card(customer_name, points)

        for platform in PLATFORMS:
            try:
                result[platform] = self._issue_card(card, platform)
            except WalletError as e:
                result[f'{platform}_error'] = e.message
                logger.error(f"Error issuing {platform} pass: {e.message}")

        return result

    def issue_batch(self, batch: Iterable[Mapping[str, Any]], max_workers: int = 4) -> List[IssuanceResult]:
        """
        Issue independent cards in parallel.

        Args:
            batch: Mappings with customer_name, points and optional platform
            max_workers: Thread pool size

        Returns:
            One IssuanceResult per request, in request order
        """
        def run(request: Mapping[str, Any]) -> IssuanceResult:
            return self.issue(
                request.get('customer_name'),
                request.get('points'),
                platform=request.get('platform', 'apple'),
            )

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(run, list(batch)))

    # =========================================================================
    # Updates
    # =========================================================================

    def update(self, card: LoyaltyCard, points, platform: str = 'apple', notify: bool = True) -> IssuanceResult:
        """
        Supersede a card with a new balance.

        The new card keeps the id and gets a freshly derived tier. Apple
        passes are rebuilt and overwrite the stored archive; Google objects
        are patched in place when an API client is configured.
        """
        try:
            validate_request(card.customer_name, points)
            new_card = card.with_points(points)
            issued = self._issue_card(new_card, platform)
            if platform == 'google' and self.google_client is not None:
                self.google_client.update_object(
                    self.google_generator.object_id(new_card.card_id),
                    self._object_changes(new_card),
                    message=self._update_message(card, new_card) if notify else None,
                )
        except WalletError as e:
            logger.error(f"Error updating card {card.short_id}: {e.message}")
            return IssuanceResult.fail(e.message, e.error_code)

        return IssuanceResult.ok(issued, message=f"Updated card to {new_card.tier}")

    def update_google_object(self, object_id: str, customer_name, points, notify: bool = True) -> IssuanceResult:
        """Update a Google card known only by its object id."""
        if self.google_generator is None:
            return IssuanceResult.fail("Google Wallet is not configured", ConfigurationError.error_code)
        card_id = GooglePassGenerator.card_id_from_object_id(object_id)
        try:
            card = self.create_card(customer_name, 0, card_id=card_id)
        except WalletError as e:
            return IssuanceResult.fail(e.message, e.error_code)
        return self.update(card, points, platform='google', notify=notify)

    def _object_changes(self, card: LoyaltyCard) -> Dict[str, Any]:
        card_object = self.google_generator.build_object(card)
        return {
            key: card_object[key]
            for key in ('subheader', 'hexBackgroundColor', 'textModulesData')
        }

    @staticmethod
    def _update_message(old: LoyaltyCard, new: LoyaltyCard) -> str:
        if old.tier != new.tier:
            return f"Congratulations! You are now {new.tier} with {new.points} points."
        return f"Your balance is now {new.points} points."

    # =========================================================================
    # Google class
    # =========================================================================

    def ensure_google_class(self) -> str:
        if self.google_client is None or self.google_generator is None:
            raise ConfigurationError("Google Wallet is not configured")
        return self.google_client.ensure_class(self.google_generator.build_class())

    # =========================================================================
    # Configuration Status
    # =========================================================================

    def get_config_status(self) -> Dict[str, Any]:
        status = self.config.status()
        status['apple']['ready'] = self.apple_generator is not None and self.bundle_signer is not None
        status['google']['ready'] = self.google_generator is not None
        status['storage'] = self.object_store.name if self.object_store else None
        return status
