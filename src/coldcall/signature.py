import hashlib
import hmac

SIGNATURE_HEADER = "x-vapi-signature"


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature over the raw body."""
    if not signature:
        return False
    expected = sign(body, secret)
    return hmac.compare_digest(signature.strip().encode("utf-8"), expected.encode("utf-8"))
