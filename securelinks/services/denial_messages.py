"""User-facing explanations for each denial reason, in Bahasa Malaysia and English."""
from dataclasses import dataclass

from securelinks.models.access_log import DenialReason

DEFAULT_LANG = "ms"


@dataclass(frozen=True)
class DenialMessage:
    title: str
    message: str
    action: str


MESSAGES_MS: dict[DenialReason, DenialMessage] = {
    DenialReason.invalid: DenialMessage(
        title="Pautan Tidak Sah",
        message="Pautan tidak sah atau tidak wujud.",
        action="Sila hubungi ejen anda untuk mendapatkan pautan baharu.",
    ),
    DenialReason.expired: DenialMessage(
        title="Pautan Telah Tamat Tempoh",
        message="Pautan ini telah tamat tempoh.",
        action="Sila minta pautan baharu daripada pemaju atau ejen anda.",
    ),
    DenialReason.revoked: DenialMessage(
        title="Pautan Telah Dibatalkan",
        message="Pautan ini telah dibatalkan.",
        action="Sila hubungi pemaju untuk maklumat lanjut.",
    ),
    DenialReason.exhausted: DenialMessage(
        title="Had Penggunaan Dicapai",
        message="Pautan ini telah mencapai had penggunaan maksimum.",
        action="Sila minta pautan baharu jika anda perlu akses semula.",
    ),
    DenialReason.error: DenialMessage(
        title="Ralat Sistem",
        message="Ralat sistem. Sila cuba sebentar lagi.",
        action="Sila cuba sebentar lagi atau hubungi sokongan.",
    ),
}

MESSAGES_EN: dict[DenialReason, DenialMessage] = {
    DenialReason.invalid: DenialMessage(
        title="Invalid Link",
        message="This link is invalid or does not exist.",
        action="Please contact your agent to get a new link.",
    ),
    DenialReason.expired: DenialMessage(
        title="Link Expired",
        message="This link has expired.",
        action="Please request a new link from your developer or agent.",
    ),
    DenialReason.revoked: DenialMessage(
        title="Link Revoked",
        message="This link has been revoked.",
        action="Please contact the developer for more information.",
    ),
    DenialReason.exhausted: DenialMessage(
        title="Usage Limit Reached",
        message="This link has reached its maximum usage limit.",
        action="Please request a new link if you need access again.",
    ),
    DenialReason.error: DenialMessage(
        title="System Error",
        message="System error. Please try again later.",
        action="Please try again later or contact support.",
    ),
}

_TABLES = {"ms": MESSAGES_MS, "en": MESSAGES_EN}


def parse_reason(value: str | None) -> DenialReason:
    """Reason from a query string; anything unrecognised is treated as invalid."""
    try:
        return DenialReason((value or "").strip().lower())
    except ValueError:
        return DenialReason.invalid


def get_denial_message(reason: DenialReason | str, lang: str = DEFAULT_LANG) -> DenialMessage:
    table = _TABLES.get((lang or "").strip().lower(), _TABLES[DEFAULT_LANG])
    if not isinstance(reason, DenialReason):
        reason = parse_reason(reason)
    return table[reason]
