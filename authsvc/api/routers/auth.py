from __future__ import annotations

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from authsvc.api.deps import (
    get_access_token,
    get_current_user,
    get_delete_account_use_case,
    get_device_info,
    get_get_me_use_case,
    get_refresh_session_use_case,
    get_sign_in_use_case,
    get_sign_out_use_case,
    get_update_profile_use_case,
)
from authsvc.api.schemas.auth import (
    AuthTokenResponse,
    DeleteAccountRequest,
    DeleteAccountResponse,
    RefreshRequest,
    SignInRequest,
    SignOutRequest,
    SignOutResponse,
    UpdateProfileRequest,
    UserResponse,
)
from authsvc.application.dto.auth import (
    AuthUserOutput,
    DeleteAccountInput,
    DeviceInfo,
    RefreshSessionInput,
    SignInInput,
    SignOutInput,
)
from authsvc.application.dto.profile import UpdateProfileInput
from authsvc.application.use_cases.delete_account import DeleteAccountUseCase
from authsvc.application.use_cases.get_me import GetMeUseCase
from authsvc.application.use_cases.refresh_session import RefreshSessionUseCase
from authsvc.application.use_cases.sign_in import SignInUseCase
from authsvc.application.use_cases.sign_out import SignOutUseCase
from authsvc.application.use_cases.update_profile import UpdateProfileUseCase
from authsvc.domain.entities.user import User
from authsvc.domain.exceptions import (
    AuthenticationError,
    ExternalProviderError,
    InternalError,
    ValidationError,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


def _user_response(user: AuthUserOutput) -> UserResponse:
    return UserResponse(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        display_name=user.display_name,
        profile_image_url=user.profile_image_url,
        created_at=int(user.created_at.timestamp()),
        updated_at=int(user.updated_at.timestamp()),
    )


def _token_response(output) -> AuthTokenResponse:
    return AuthTokenResponse(
        user=_user_response(output.user),
        access_token=output.access_token,
        access_token_expires_at=int(output.access_token_expires_at.timestamp()),
        refresh_token=output.refresh_token,
        refresh_token_expires_at=int(output.refresh_token_expires_at.timestamp()),
    )


def _decode_image(image_base64: str | None) -> bytes | None:
    if image_base64 is None:
        return None
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image payload is not valid base64.", fields={"imageBase64": "Invalid base64."}) from exc


def _bad_request(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": str(exc), "fields": exc.fields})


def _unauthorized(exc: AuthenticationError, *, route: str) -> HTTPException:
    logger.info("auth_api: unauthorized route=%s reason=%s", route, exc)
    return HTTPException(status_code=401, detail="Unauthorized")


def _bad_gateway(exc: ExternalProviderError, *, route: str) -> HTTPException:
    logger.error(
        "auth_api: provider_error route=%s upstream_status=%s upstream_body=%s",
        route,
        exc.status_code,
        exc.body,
    )
    return HTTPException(status_code=502, detail="Identity provider request failed")


def _internal(exc: InternalError, *, route: str) -> HTTPException:
    logger.error("auth_api: internal_error route=%s", route, exc_info=exc)
    return HTTPException(status_code=500, detail="Internal server error")


@router.post("/signin", response_model=AuthTokenResponse)
def sign_in(
    req: SignInRequest,
    response: Response,
    device: DeviceInfo = Depends(get_device_info),
    use_case: SignInUseCase = Depends(get_sign_in_use_case),
):
    try:
        output = use_case.execute(
            SignInInput(
                identity_token=req.identity_token,
                authorization_code=req.authorization_code,
                nonce=req.nonce,
                full_name=req.full_name,
                email=str(req.email) if req.email is not None else None,
                device=device,
            )
        )
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    except AuthenticationError as exc:
        raise _unauthorized(exc, route="signin") from exc
    except ExternalProviderError as exc:
        raise _bad_gateway(exc, route="signin") from exc
    except InternalError as exc:
        raise _internal(exc, route="signin") from exc
    response.status_code = 201 if output.created else 200
    return _token_response(output)


@router.post("/refresh", response_model=AuthTokenResponse)
def refresh(
    req: RefreshRequest,
    device: DeviceInfo = Depends(get_device_info),
    use_case: RefreshSessionUseCase = Depends(get_refresh_session_use_case),
):
    try:
        output = use_case.execute(RefreshSessionInput(refresh_token=req.refresh_token, device=device))
    except AuthenticationError as exc:
        raise _unauthorized(exc, route="refresh") from exc
    return _token_response(output)


@router.post("/signout", response_model=SignOutResponse)
def sign_out(
    req: SignOutRequest,
    use_case: SignOutUseCase = Depends(get_sign_out_use_case),
):
    output = use_case.execute(SignOutInput(refresh_token=req.refresh_token))
    return SignOutResponse(found=output.found)


@router.get("/me", response_model=UserResponse)
def me(
    current_user: User = Depends(get_current_user),
    use_case: GetMeUseCase = Depends(get_get_me_use_case),
):
    return _user_response(use_case.execute(user=current_user))


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    req: UpdateProfileRequest,
    access_token: str = Depends(get_access_token),
    use_case: UpdateProfileUseCase = Depends(get_update_profile_use_case),
):
    try:
        output = use_case.execute(
            UpdateProfileInput(
                access_token=access_token,
                full_name=req.full_name,
                display_name=req.display_name,
                image_bytes=_decode_image(req.image_base64),
                image_mime_type=req.image_mime_type,
            )
        )
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    except AuthenticationError as exc:
        raise _unauthorized(exc, route="profile") from exc
    return _user_response(output)


@router.post("/delete-account", response_model=DeleteAccountResponse)
def delete_account(
    req: DeleteAccountRequest,
    access_token: str = Depends(get_access_token),
    use_case: DeleteAccountUseCase = Depends(get_delete_account_use_case),
):
    try:
        use_case.execute(
            DeleteAccountInput(
                access_token=access_token,
                identity_token=req.identity_token,
                authorization_code=req.authorization_code,
                nonce=req.nonce,
            )
        )
    except AuthenticationError as exc:
        raise _unauthorized(exc, route="delete-account") from exc
    except ExternalProviderError as exc:
        raise _bad_gateway(exc, route="delete-account") from exc
    return DeleteAccountResponse(deleted=True)
