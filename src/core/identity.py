"""Identity normalization for phone-number based actors and recipients."""

import re


_NON_DIGITS = re.compile(r"\D")


def normalize_identity(identity: str | None) -> str:
    """Reduce an identity to its canonical digits-only form.

    Drops any routing suffix (``1234@c.us`` -> ``1234``) and every non-digit
    character (``+91 98765-43210`` -> ``919876543210``). Must be applied before
    storing or comparing a creator, assignee or actor.

    Returns:
        The normalized identity, or an empty string for empty input.
    """
    if not identity:
        return ""

    return _NON_DIGITS.sub("", identity.split("@", 1)[0])


def normalize_identities(identities: list[str]) -> list[str]:
    """Normalize a sequence of identities, keeping first-seen order and dropping blanks and duplicates."""
    seen: dict[str, None] = {}
    for identity in identities:
        normalized = normalize_identity(identity)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)
