import hashlib
import secrets
from typing import Optional


def hash_secret(secret: str) -> str:
    """
    Hash a secret so comparisons run over equal-length digests
    """
    return hashlib.sha256(secret.strip().encode()).hexdigest()


class AccessGate:
    """
    Validates the single shared operator credential.

    The configured secret is supplied from outside and only ever compared
    against; it is never stored elsewhere or rotated here.
    """

    def __init__(self, secret: str):
        self._secret_hash = hash_secret(secret)

    def verify(self, candidate_secret: Optional[str]) -> bool:
        if not candidate_secret:
            return False
        return secrets.compare_digest(hash_secret(candidate_secret), self._secret_hash)

    def verify_bearer(self, authorization: Optional[str]) -> bool:
        """
        Verify an ``Authorization: Bearer <secret>`` header value
        """
        if not authorization or not authorization.startswith("Bearer "):
            return False
        return self.verify(authorization[len("Bearer "):])
