import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def sign_payload(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, signature_header: str | None, body: bytes) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body.

    ``body`` must be the bytes exactly as received; a parsed and re-serialized
    payload will not match what GitHub signed.
    """
    if not signature_header or not secret:
        return False

    expected_signature = sign_payload(secret, body)
    return hmac.compare_digest(
        expected_signature.encode(), signature_header.encode()
    )
