from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

GOOGLE_PROVIDER = "google"


class Principal(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    provider: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    session_id: str = ""
    access_token: str
    refresh_token: Optional[str] = None
    principal: Principal

    provider_token: Optional[str] = None
    provider_refresh_token: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.principal.id

    @property
    def is_google(self) -> bool:
        return self.principal.provider == GOOGLE_PROVIDER


def _first(*values: Any) -> Optional[str]:
    for v in values:
        if v:
            return str(v)
    return None


def normalize_principal(raw_user: Dict[str, Any]) -> Principal:
    """Build a Principal from an auth provider user record.

    Profile fields can live under `user_metadata` or `raw_user_meta_data`;
    the first non-empty value wins.
    """
    user_meta = raw_user.get("user_metadata") or {}
    raw_meta = raw_user.get("raw_user_meta_data") or {}
    app_meta = raw_user.get("app_metadata") or {}

    metadata = {**raw_meta, **user_meta}

    return Principal(
        id=str(raw_user["id"]),
        email=raw_user.get("email"),
        full_name=_first(
            user_meta.get("full_name"),
            raw_meta.get("full_name"),
            user_meta.get("name"),
            raw_meta.get("name"),
        ),
        avatar_url=_first(user_meta.get("avatar_url"), raw_meta.get("avatar_url")),
        provider=app_meta.get("provider"),
        metadata=metadata,
    )


def session_from_token_response(
    payload: Dict[str, Any],
    provider_token: Optional[str] = None,
    provider_refresh_token: Optional[str] = None,
) -> Session:
    return Session(
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token"),
        principal=normalize_principal(payload["user"]),
        provider_token=provider_token or payload.get("provider_token"),
        provider_refresh_token=provider_refresh_token
        or payload.get("provider_refresh_token"),
    )
