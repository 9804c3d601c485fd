"""
Auth abstraction for the hosted GoTrue (Supabase Auth) API and an in-memory
test implementation.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlencode

import requests

from visionboard.errors import AuthenticationError, BackendError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Identity
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class OAuthStart:
    """Where to send the browser, plus the PKCE verifier to keep until callback."""

    url: str
    code_verifier: str


class AuthClient(Protocol):
    """Defines the auth operations the service consumes."""

    def sign_up(
        self, email: str, password: str, *, email_redirect_to: Optional[str] = None
    ) -> Optional[AuthSession]:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart:
        ...

    def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession:
        ...

    def get_user(self, access_token: str) -> Optional[Identity]:
        ...

    def sign_out(self, access_token: str) -> None:
        ...


def _pkce_pair() -> tuple[str, str]:
    verifier = secrets.token_urlsafe(48)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def _require_credentials(email: str, password: str) -> str:
    email = (email or "").strip()
    if not email or not (password or "").strip():
        raise ValidationError("Please enter an email and password.")
    return email


@dataclass
class _UserEntry:
    id: str
    email: str
    salt: bytes
    password_hash: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000)


@dataclass
class InMemoryAuthClient:
    """Test double for the hosted auth service."""

    base_url: str = "https://auth.example.test"
    require_email_confirmation: bool = False
    users: Dict[str, _UserEntry] = field(default_factory=dict)
    tokens: Dict[str, str] = field(default_factory=dict)
    codes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = Lock()

    def reset(self) -> None:
        with self._lock:
            self.users.clear()
            self.tokens.clear()
            self.codes.clear()

    def _issue_session(self, entry: _UserEntry) -> AuthSession:
        token = secrets.token_urlsafe(32)
        self.tokens[token] = entry.id
        return AuthSession(
            access_token=token,
            refresh_token=secrets.token_urlsafe(16),
            user=Identity(id=entry.id, email=entry.email),
        )

    def _find_by_id(self, user_id: str) -> Optional[_UserEntry]:
        for entry in self.users.values():
            if entry.id == user_id:
                return entry
        return None

    def sign_up(
        self, email: str, password: str, *, email_redirect_to: Optional[str] = None
    ) -> Optional[AuthSession]:
        email = _require_credentials(email, password)
        key = email.lower()
        with self._lock:
            if key in self.users:
                raise ValidationError("User already registered")
            salt = secrets.token_bytes(16)
            entry = _UserEntry(
                id=str(uuid.uuid4()),
                email=email,
                salt=salt,
                password_hash=_hash_password(password, salt),
            )
            self.users[key] = entry
            if self.require_email_confirmation:
                return None
            return self._issue_session(entry)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = _require_credentials(email, password)
        with self._lock:
            entry = self.users.get(email.lower())
            if not entry or not secrets.compare_digest(
                entry.password_hash, _hash_password(password, entry.salt)
            ):
                raise AuthenticationError("Invalid login credentials")
            return self._issue_session(entry)

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart:
        verifier, challenge = _pkce_pair()
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": challenge,
                "code_challenge_method": "s256",
            }
        )
        return OAuthStart(url=f"{self.base_url}/authorize?{query}", code_verifier=verifier)

    def issue_code(self, user_id: str) -> str:
        """Simulate the provider redirect: mint a one-time code for a user."""
        code = secrets.token_urlsafe(16)
        with self._lock:
            self.codes[code] = user_id
        return code

    def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession:
        with self._lock:
            user_id = self.codes.pop(code, None)
            entry = self._find_by_id(user_id) if user_id else None
            if not entry:
                raise AuthenticationError("Invalid or expired authorization code")
            return self._issue_session(entry)

    def get_user(self, access_token: str) -> Optional[Identity]:
        with self._lock:
            user_id = self.tokens.get(access_token)
            entry = self._find_by_id(user_id) if user_id else None
        if not entry:
            return None
        return Identity(id=entry.id, email=entry.email)

    def sign_out(self, access_token: str) -> None:
        with self._lock:
            self.tokens.pop(access_token, None)


@dataclass
class SupabaseAuthClient:
    """
    Client for the hosted GoTrue REST API (`/auth/v1/...`).
    """

    url: str
    anon_key: str
    timeout: float = 25.0

    def __post_init__(self):
        self.url = self.url.rstrip("/")
        self._http = requests.Session()

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Content-Type": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        try:
            return self._http.request(
                method,
                f"{self.url}/auth/v1/{path}",
                headers=self._headers(access_token),
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise BackendError(f"Auth request failed: {exc}") from exc

    @staticmethod
    def _extract_error(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            msg = (
                body.get("msg")
                or body.get("message")
                or body.get("error_description")
                or body.get("error")
            )
            if msg:
                return str(msg)
        text = (response.text or "").strip()
        return text[:300] if text else f"HTTP {response.status_code}: request failed"

    @staticmethod
    def _parse_session(body: Dict[str, Any]) -> AuthSession:
        user = body.get("user") or {}
        if not body.get("access_token") or not user.get("id"):
            raise BackendError("Auth response returned no access token or user id.")
        return AuthSession(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            user=Identity(id=user["id"], email=user.get("email")),
        )

    def _check(self, response: requests.Response, client_error: type) -> Dict[str, Any]:
        if response.status_code >= 500:
            raise BackendError(self._extract_error(response))
        if response.status_code >= 300:
            raise client_error(self._extract_error(response))
        return response.json() if response.content else {}

    def sign_up(
        self, email: str, password: str, *, email_redirect_to: Optional[str] = None
    ) -> Optional[AuthSession]:
        email = _require_credentials(email, password)
        params = {"redirect_to": email_redirect_to} if email_redirect_to else None
        response = self._request(
            "POST",
            "signup",
            params=params,
            json={"email": email, "password": password},
        )
        body = self._check(response, ValidationError)
        if not body.get("access_token"):
            # Email confirmation pending; no session yet.
            return None
        return self._parse_session(body)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = _require_credentials(email, password)
        response = self._request(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._parse_session(self._check(response, AuthenticationError))

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart:
        verifier, challenge = _pkce_pair()
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": challenge,
                "code_challenge_method": "s256",
            }
        )
        return OAuthStart(
            url=f"{self.url}/auth/v1/authorize?{query}", code_verifier=verifier
        )

    def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession:
        response = self._request(
            "POST",
            "token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier or ""},
        )
        return self._parse_session(self._check(response, AuthenticationError))

    def get_user(self, access_token: str) -> Optional[Identity]:
        response = self._request("GET", "user", access_token=access_token)
        if response.status_code in (401, 403):
            return None
        body = self._check(response, BackendError)
        if not body.get("id"):
            return None
        return Identity(id=body["id"], email=body.get("email"))

    def sign_out(self, access_token: str) -> None:
        response = self._request("POST", "logout", access_token=access_token)
        if response.status_code in (401, 403, 404):
            logger.info("Sign-out for an already invalid session")
            return
        self._check(response, BackendError)
