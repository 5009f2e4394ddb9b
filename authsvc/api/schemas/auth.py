from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignInRequest(CamelModel):
    identity_token: str = Field(..., alias="identityToken", min_length=1)
    authorization_code: str = Field(..., alias="authorizationCode", min_length=1)
    nonce: str = Field(..., min_length=1)
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, alias="fullName", max_length=200)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class SignOutRequest(CamelModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class DeleteAccountRequest(CamelModel):
    identity_token: str = Field(..., alias="identityToken", min_length=1)
    authorization_code: str = Field(..., alias="authorizationCode", min_length=1)
    nonce: str = Field(..., min_length=1)


class UpdateProfileRequest(CamelModel):
    full_name: str | None = Field(default=None, alias="fullName", max_length=200)
    display_name: str | None = Field(default=None, alias="displayName", max_length=200)
    image_base64: str | None = Field(default=None, alias="imageBase64")
    image_mime_type: str | None = Field(default=None, alias="imageMimeType")


class UserResponse(CamelModel):
    id: str
    full_name: str = Field(..., alias="fullName")
    email: str
    display_name: str = Field(..., alias="displayName")
    profile_image_url: str | None = Field(default=None, alias="profileImageUrl")
    created_at: int = Field(..., alias="createdAt")
    updated_at: int = Field(..., alias="updatedAt")


class AuthTokenResponse(CamelModel):
    user: UserResponse
    access_token: str = Field(..., alias="accessToken")
    access_token_expires_at: int = Field(..., alias="accessTokenExpiresAt")
    refresh_token: str = Field(..., alias="refreshToken")
    refresh_token_expires_at: int = Field(..., alias="refreshTokenExpiresAt")


class SignOutResponse(BaseModel):
    found: bool


class DeleteAccountResponse(BaseModel):
    deleted: bool
