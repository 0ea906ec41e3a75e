"""Token generation and shareable/QR URL construction. No state, no I/O."""
import hashlib
import secrets
from urllib.parse import quote

TOKEN_BYTES = 32  # 64 hex characters
LINK_PATH = "/q/"
QR_MARGIN = 10


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of the token, stored alongside it."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_link_url(token: str, base_url: str) -> str:
    return f"{(base_url or '').rstrip('/')}{LINK_PATH}{token}"


def build_qr_url(link_url: str, qr_service_url: str, size: int = 300, fmt: str = "png") -> str:
    """URL of a rendered QR image for link_url, served by the external QR endpoint."""
    data = quote(link_url, safe="")
    return f"{qr_service_url}?size={size}x{size}&data={data}&format={fmt}&margin={QR_MARGIN}"


def extract_token(link_url: str) -> str | None:
    """Token segment of a shareable URL, or None if the URL has no /q/ segment."""
    if not link_url or LINK_PATH not in link_url:
        return None
    tail = link_url.rsplit(LINK_PATH, 1)[1]
    tail = tail.split("?", 1)[0].split("#", 1)[0].strip("/")
    return tail or None
