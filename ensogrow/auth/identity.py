"""Identity verification with pluggable providers."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from starlette.concurrency import run_in_threadpool

from ensogrow.errors import Unauthenticated
from ensogrow.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as asserted by the identity provider."""

    uid: str
    email: Optional[str] = None


class IdentityVerifier(Protocol):
    """Protocol for identity providers."""

    async def verify(self, token: str) -> Principal:
        """Verify a bearer token and return the caller it identifies."""
        ...

    def close(self) -> None:
        ...


class FirebaseIdentityVerifier:
    """Firebase ID-token verifier."""

    APP_NAME = "ensogrow"

    def __init__(self, service_account: Dict[str, Any]):
        """Initialize a dedicated Firebase app from service-account JSON."""
        self.app = firebase_admin.initialize_app(
            credentials.Certificate(service_account),
            name=self.APP_NAME,
        )

    async def verify(self, token: str) -> Principal:
        # verify_id_token may fetch signing certificates over the network
        try:
            decoded = await run_in_threadpool(firebase_auth.verify_id_token, token, self.app)
        except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError) as e:
            raise Unauthenticated(error=str(e))
        except firebase_auth.CertificateFetchError as e:
            logger.error(f"Could not fetch Firebase signing certificates: {e}")
            raise Unauthenticated(error="Identity provider unavailable")
        except ValueError as e:
            raise Unauthenticated(error=str(e))

        return Principal(uid=decoded["uid"], email=decoded.get("email"))

    def close(self) -> None:
        firebase_admin.delete_app(self.app)


class LocalStubIdentityVerifier:
    """
    Trusting verifier for local development and tests.

    The bearer token is read as ``<uid>`` or ``<uid>:<email>``; nothing is
    verified. Refused in production by settings validation.
    """

    async def verify(self, token: str) -> Principal:
        uid, _, email = token.partition(":")
        uid = uid.strip()
        if not uid:
            raise Unauthenticated(error="Empty token")
        return Principal(uid=uid, email=email.strip() or f"{uid}@local.test")

    def close(self) -> None:
        pass


def get_identity_verifier() -> IdentityVerifier:
    """
    Build the configured identity verifier.

    Raises:
        ValueError: If Firebase is selected but its credential is unusable
    """
    if settings.AUTH_PROVIDER == "firebase":
        return FirebaseIdentityVerifier(settings.firebase_credentials())
    return LocalStubIdentityVerifier()
