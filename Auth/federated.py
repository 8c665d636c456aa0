# Auth/federated.py
"""Firebase ID-token verification against Google's published JWKS."""
import logging
import threading
from typing import Any, Callable, Dict, Optional

import requests
from jose import JWTError, jwt

from Core.errors import AuthenticationInvalid

logger = logging.getLogger(__name__)

JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
ISSUER_PREFIX = "https://securetoken.google.com/"


def fetch_jwks(url: str = JWKS_URL) -> Dict[str, Any]:
    r = requests.get(url, timeout=10)
    r.raise_for_status()
    return r.json()


class FederatedVerifier:
    """
    Verifies RS256 ID tokens issued for one Firebase project.

    The key set is cached and fetched again once when a token carries a
    ``kid`` we have not seen (Google rotates its keys every few hours).
    """

    def __init__(self, project_id: str, key_loader: Callable[[], Dict[str, Any]] = fetch_jwks):
        self.project_id = project_id
        self.issuer = ISSUER_PREFIX + project_id
        self._key_loader = key_loader
        self._jwks: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def _keys(self, refresh: bool = False) -> Dict[str, Any]:
        with self._lock:
            if self._jwks is None or refresh:
                try:
                    self._jwks = self._key_loader()
                except requests.RequestException as e:
                    logger.error("Could not fetch identity provider keys: %s", e)
                    raise AuthenticationInvalid()
            return self._jwks

    def _rsa_key_for(self, kid: str) -> Dict[str, str]:
        for refresh in (False, True):
            for key in self._keys(refresh=refresh).get("keys", []):
                if key.get("kid") == kid:
                    return {"kty": key["kty"], "kid": key["kid"], "n": key["n"], "e": key["e"]}
        raise AuthenticationInvalid()

    def verify(self, token: str, kid: str) -> Dict[str, Any]:
        rsa_key = self._rsa_key_for(kid)
        try:
            claims = jwt.decode(
                token,
                rsa_key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                options={"verify_at_hash": False},
            )
        except JWTError:
            raise AuthenticationInvalid()
        if not claims.get("sub"):
            raise AuthenticationInvalid()
        if claims.get("email_verified") is not True:
            raise AuthenticationInvalid()
        return claims
