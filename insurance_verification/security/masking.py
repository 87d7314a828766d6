"""Presentation-only masking of PHI values."""
import re
from typing import Optional, Union

from insurance_verification.models.enums import MaskKind

MASK_TOKEN = "***"


def _mask_identifier(value: str) -> str:
    # Too short to reveal both ends without exposing most of the value
    if len(value) <= 4:
        return MASK_TOKEN
    return f"{value[:2]}{MASK_TOKEN}{value[-2:]}"


def mask_for_display(value: Optional[str], kind: Union[MaskKind, str]) -> str:
    """
    Mask a sensitive value for display.

    Identifiers keep their first two and last two characters around ``***``.
    Values of four characters or fewer become ``***`` alone, since keeping
    both ends would reveal the whole value. The result depends only on the
    value and kind, so masking is stable across calls. Stored values are
    never modified.

    Args:
        value: Raw value
        kind: What the value is (policy, member_id, phone, email, ssn)

    Returns:
        Masked string ("" for empty input)
    """
    if not value:
        return ""
    kind = MaskKind(kind)

    if kind in (MaskKind.POLICY, MaskKind.MEMBER_ID):
        return _mask_identifier(value)

    if kind is MaskKind.PHONE:
        digits = re.sub(r"\D", "", value)
        return f"(***) ***-{digits[-4:]}"

    if kind is MaskKind.EMAIL:
        username, sep, domain = value.partition("@")
        if not sep or not domain:
            return MASK_TOKEN
        return f"{username[:2]}{MASK_TOKEN}@{domain}"

    if kind is MaskKind.SSN:
        digits = re.sub(r"\D", "", value)
        return f"***-**-{digits[-4:]}"

    return MASK_TOKEN
