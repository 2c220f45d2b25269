from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any

import httpx
import jwt

from .errors import AuthError


TOKEN_URL = "https://oauth2.googleapis.com/token"
MESSAGING_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class ServiceAccountCredential:
    project_id: str
    client_email: str
    private_key: str = field(repr=False)
    private_key_id: str | None = None
    token_uri: str = TOKEN_URL


@dataclass(frozen=True)
class AccessToken:
    value: str = field(repr=False)
    expires_at: datetime

    def expired(self, now: datetime | None = None, leeway_seconds: int = 60) -> bool:
        moment = now or datetime.now(timezone.utc)
        return moment >= self.expires_at - timedelta(seconds=leeway_seconds)


def decode_service_account(encoded: str) -> ServiceAccountCredential:
    try:
        raw = json.loads(base64.b64decode(encoded, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as exc:
        raise AuthError(f"Service account is not valid base64 JSON: {exc}") from exc
    return parse_service_account(raw)


def load_service_account(path: str) -> ServiceAccountCredential:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, ValueError) as exc:
        raise AuthError(f"Unable to read service account file {path}: {exc}") from exc
    return parse_service_account(raw)


def parse_service_account(raw: Any) -> ServiceAccountCredential:
    if not isinstance(raw, dict):
        raise AuthError("Service account must be a JSON object")
    missing = [key for key in ("project_id", "client_email", "private_key") if not raw.get(key)]
    if missing:
        raise AuthError(f"Service account is missing: {', '.join(missing)}")
    return ServiceAccountCredential(
        project_id=str(raw["project_id"]),
        client_email=str(raw["client_email"]),
        private_key=str(raw["private_key"]).replace("\\n", "\n"),
        private_key_id=raw.get("private_key_id"),
        token_uri=str(raw.get("token_uri") or TOKEN_URL),
    )


def build_assertion(
    credential: ServiceAccountCredential,
    audience: str = TOKEN_URL,
    now: datetime | None = None,
    scope: str = MESSAGING_SCOPE,
) -> str:
    issued = int((now or datetime.now(timezone.utc)).timestamp())
    claims = {
        "iss": credential.client_email,
        "sub": credential.client_email,
        "aud": audience,
        "scope": scope,
        "iat": issued,
        "exp": issued + ASSERTION_LIFETIME_SECONDS,
    }
    headers = {"kid": credential.private_key_id} if credential.private_key_id else None
    try:
        return jwt.encode(claims, credential.private_key, algorithm="RS256", headers=headers)
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise AuthError(f"Unable to sign token assertion: {exc}") from exc


async def get_access_token(
    credential: ServiceAccountCredential,
    client: httpx.AsyncClient,
    token_url: str = TOKEN_URL,
) -> AccessToken:
    """Exchange a signed assertion for an access token. Every call hits the token endpoint."""
    now = datetime.now(timezone.utc)
    assertion = build_assertion(credential, audience=token_url, now=now)
    form = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
    try:
        response = await client.post(token_url, data=form)
    except httpx.HTTPError as exc:
        raise AuthError(f"Token exchange request failed: {exc}") from exc

    if not 200 <= response.status_code < 300:
        raise AuthError(f"Token endpoint returned {response.status_code}: {response.text}")
    try:
        data = response.json()
    except ValueError as exc:
        raise AuthError("Token endpoint returned a non-JSON response") from exc
    if not isinstance(data, dict) or not data.get("access_token"):
        raise AuthError("Token endpoint response has no access_token")

    lifetime = _expires_in(data.get("expires_in"))
    return AccessToken(
        value=str(data["access_token"]),
        expires_at=now + timedelta(seconds=lifetime),
    )


class TokenCache:
    def __init__(self, token_url: str = TOKEN_URL, leeway_seconds: int = 60) -> None:
        self._token_url = token_url
        self._leeway_seconds = leeway_seconds
        self._tokens: dict[str, AccessToken] = {}
        self._logger = logging.getLogger(__name__)

    async def get(
        self,
        credential: ServiceAccountCredential,
        client: httpx.AsyncClient,
    ) -> AccessToken:
        cached = self._tokens.get(credential.client_email)
        if cached and not cached.expired(leeway_seconds=self._leeway_seconds):
            return cached
        self._logger.debug("Exchanging assertion for %s", credential.client_email)
        token = await get_access_token(credential, client, self._token_url)
        self._tokens[credential.client_email] = token
        return token


def _expires_in(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_LIFETIME_SECONDS
