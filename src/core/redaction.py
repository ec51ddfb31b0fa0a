"""Helpers for keeping personal data and secrets out of log lines."""


def mask_email(email: str | None) -> str:
    """Mask the local part of an email address.

    ``jane.doe@example.com`` becomes ``j***@example.com``.
    """
    if not email:
        return "<none>"
    local, sep, domain = email.partition("@")
    if not sep:
        return mask_identifier(email)
    return f"{local[:1]}***@{domain}"


def mask_identifier(value: object, visible: int = 8) -> str:
    """Keep only the leading characters of an identifier."""
    text = str(value) if value is not None else ""
    if not text:
        return "<none>"
    if len(text) <= visible:
        return text[:1] + "***"
    return text[:visible] + "..."
