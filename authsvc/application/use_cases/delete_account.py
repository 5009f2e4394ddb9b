from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from authsvc.application.dto.auth import DeleteAccountInput
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.credential_exchange_port import CredentialExchangePort
from authsvc.application.ports.identity_verifier_port import IdentityVerifierPort
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.application.ports.token_port import TokenPort
from authsvc.domain.exceptions import AuthenticationError

from .auth_common import PROVIDER, authenticate_user


logger = logging.getLogger(__name__)


class DeleteAccountUseCase:
    """Deletes a user after a fresh Apple re-authentication.

    Order is fixed: revoke the Apple grant first and only then delete local
    rows. If Apple cannot be reached the account stays intact.
    """

    def __init__(
        self,
        *,
        auth_port: AuthPort,
        identity_verifier: IdentityVerifierPort,
        credential_exchanger: CredentialExchangePort,
        token_port: TokenPort,
        image_port: ProfileImagePort | None = None,
    ):
        self._auth_port = auth_port
        self._identity_verifier = identity_verifier
        self._credential_exchanger = credential_exchanger
        self._token_port = token_port
        self._image_port = image_port

    def execute(self, command: DeleteAccountInput) -> None:
        user = authenticate_user(
            access_token=command.access_token,
            auth_port=self._auth_port,
            token_port=self._token_port,
        )

        with ThreadPoolExecutor(max_workers=2) as pool:
            claims_future = pool.submit(
                self._identity_verifier.verify,
                identity_token=command.identity_token,
                nonce=command.nonce,
            )
            tokens_future = pool.submit(
                self._credential_exchanger.exchange,
                authorization_code=command.authorization_code,
            )
            claims = claims_future.result()
            provider_tokens = tokens_future.result()

        identity = self._auth_port.get_identity_for_user_provider(user_id=user.id, provider=PROVIDER)
        if identity is None or identity.provider_user_id != claims.subject:
            logger.warning("delete_account: subject_mismatch user_id=%s", user.id)
            raise AuthenticationError("Re-authentication does not match the signed-in user.")

        self._credential_exchanger.revoke(refresh_token=provider_tokens.refresh_token)

        def _tx(auth_port: AuthPort) -> bool:
            return auth_port.delete_user(user_id=user.id)

        deleted = self._auth_port.execute_in_transaction(_tx)
        logger.info("delete_account: deleted user_id=%s found=%s", user.id, deleted)

        if self._image_port is not None:
            try:
                removed = self._image_port.delete_all_for_user(user_id=user.id)
            except Exception:  # noqa: BLE001
                logger.exception("delete_account: profile_image_cleanup_failed user_id=%s", user.id)
            else:
                logger.info("delete_account: profile_images_removed user_id=%s count=%s", user.id, removed)
