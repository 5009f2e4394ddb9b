from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

from authsvc.application.dto.auth import SignInInput, SignInOutput
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.credential_exchange_port import CredentialExchangePort
from authsvc.application.ports.identity_verifier_port import IdentityVerifierPort
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.application.ports.token_cipher_port import TokenCipherPort
from authsvc.application.ports.token_port import TokenPort
from authsvc.application.services.session_store import SessionStore
from authsvc.domain.entities.user import Identity, User
from authsvc.domain.exceptions import DuplicateRecordError, InternalError, ValidationError

from .auth_common import PROVIDER, build_auth_user_output, normalize_email, utcnow


logger = logging.getLogger(__name__)


class SignInUseCase:
    def __init__(
        self,
        *,
        auth_port: AuthPort,
        identity_verifier: IdentityVerifierPort,
        credential_exchanger: CredentialExchangePort,
        token_port: TokenPort,
        token_cipher: TokenCipherPort,
        session_store: SessionStore,
        image_port: ProfileImagePort | None = None,
    ):
        self._auth_port = auth_port
        self._identity_verifier = identity_verifier
        self._credential_exchanger = credential_exchanger
        self._token_port = token_port
        self._token_cipher = token_cipher
        self._session_store = session_store
        self._image_port = image_port

    def execute(self, command: SignInInput) -> SignInOutput:
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

        refresh_token_enc = self._token_cipher.encrypt(provider_tokens.refresh_token)

        created = False
        identity = self._find_identity(claims.subject)
        if identity is None:
            try:
                user = self._enroll(command, subject=claims.subject, refresh_token_enc=refresh_token_enc)
                created = True
            except DuplicateRecordError as exc:
                # A concurrent sign-in may have enrolled the same subject first.
                identity = self._find_identity(claims.subject)
                if identity is None:
                    raise ValidationError("Email already in use.", fields={"email": "Already in use."}) from exc
                logger.info("sign_in: enroll_conflict_resolved identity_id=%s", identity.id)
        if not created:
            user = self._link_returning_user(identity, refresh_token_enc=refresh_token_enc)

        issued = self._session_store.create_session(user_id=user.id, device=command.device)
        access_token, access_expires_at = self._token_port.generate_access_token(user_id=user.id, now=utcnow())
        logger.info("sign_in: completed user_id=%s created=%s", user.id, created)
        return SignInOutput(
            user=build_auth_user_output(user, self._image_port),
            access_token=access_token,
            access_token_expires_at=access_expires_at,
            refresh_token=issued.refresh_token,
            refresh_token_expires_at=issued.expires_at,
            created=created,
        )

    def _find_identity(self, subject: str) -> Identity | None:
        return self._auth_port.get_identity_by_provider_user_id(provider=PROVIDER, provider_user_id=subject)

    def _link_returning_user(self, identity: Identity, *, refresh_token_enc: str) -> User:
        user = self._auth_port.get_user_by_id(user_id=identity.user_id)
        if user is None:
            raise InternalError("User linked to Apple identity was not found.")
        self._auth_port.update_identity_provider_refresh_token(
            identity_id=identity.id,
            provider_refresh_token_enc=refresh_token_enc,
            updated_at=utcnow(),
        )
        return user

    def _enroll(self, command: SignInInput, *, subject: str, refresh_token_enc: str) -> User:
        full_name = (command.full_name or "").strip()
        email = normalize_email(command.email or "")
        missing = {}
        if not full_name:
            missing["fullName"] = "Required for new users."
        if not email:
            missing["email"] = "Required for new users."
        if missing:
            raise ValidationError("Email and full name are required for new users.", fields=missing)

        def _tx(auth_port: AuthPort) -> User:
            if auth_port.get_user_by_email(email=email) is not None:
                raise DuplicateRecordError("Email already in use.")
            now = utcnow()
            user = auth_port.create_user(
                user_id=str(uuid4()),
                full_name=full_name,
                email=email,
                display_name=full_name,
                created_at=now,
            )
            auth_port.create_identity(
                identity_id=str(uuid4()),
                user_id=user.id,
                provider=PROVIDER,
                provider_user_id=subject,
                identifier=email,
                provider_refresh_token_enc=refresh_token_enc,
                created_at=now,
            )
            return user

        user = self._auth_port.execute_in_transaction(_tx)
        logger.info("sign_in: enrolled user_id=%s", user.id)
        return user
