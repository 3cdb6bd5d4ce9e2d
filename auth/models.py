from __future__ import annotations

from dataclasses import dataclass, field


def unwrap_envelope(payload: dict) -> dict:
    """Strip the backend's ``{"success", "data"}`` envelope when present."""
    if "success" in payload and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


@dataclass
class CredentialPair:
    access_token: str
    refresh_token: str

    @classmethod
    def from_payload(cls, payload: dict) -> "CredentialPair":
        if not isinstance(payload, dict):
            raise RuntimeError("Token response must be a JSON object.")
        body = unwrap_envelope(payload)
        tokens = body.get("tokens", body)
        if not isinstance(tokens, dict):
            raise RuntimeError("Token response tokens must be a JSON object.")

        access_token = tokens.get("accessToken")
        refresh_token = tokens.get("refreshToken")
        if not isinstance(access_token, str) or not access_token:
            raise RuntimeError("Token response missing accessToken.")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise RuntimeError("Token response missing refreshToken.")

        return cls(access_token=access_token, refresh_token=refresh_token)

    def to_payload(self) -> dict[str, str]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


@dataclass
class AuthUser:
    id: str
    email: str
    full_name: str | None = None
    role: str = "staff"
    phone: str | None = None
    is_active: bool = True
    is_email_verified: bool = False

    @classmethod
    def from_payload(cls, payload: dict, *, role: str = "staff") -> "AuthUser":
        user_id = payload.get("id")
        email = payload.get("email")
        if not isinstance(user_id, str) or not user_id:
            raise RuntimeError("User payload missing id.")
        if not isinstance(email, str):
            raise RuntimeError("User payload missing email.")

        return cls(
            id=user_id,
            email=email,
            full_name=payload.get("fullName"),
            role=role,
            phone=payload.get("phone"),
            is_active=bool(payload.get("isActive", True)),
            is_email_verified=bool(payload.get("isEmailVerified", False)),
        )


@dataclass
class AuthSession:
    user: AuthUser
    credentials: CredentialPair
    permissions: list[str] = field(default_factory=list)

    def has_permission(self, code: str) -> bool:
        return code in self.permissions

    def has_any_permission(self, *codes: str) -> bool:
        return any(code in self.permissions for code in codes)

    def has_all_permissions(self, *codes: str) -> bool:
        return all(code in self.permissions for code in codes)
