import re
import unicodedata

SLUG_MIN_LENGTH = 2
SLUG_MAX_LENGTH = 50
_SLUG_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def normalize_slug(value: str) -> str:
    """Reduz um nome livre a um slug de clínica (minúsculo, ascii, hífens simples)."""
    if not value:
        return ""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-{2,}", "-", value)

    return value.strip("-")[:SLUG_MAX_LENGTH].strip("-")


def validate_company_slug(slug: str) -> bool:
    if not slug:
        return False
    normalized = slug.strip().lower()
    if not SLUG_MIN_LENGTH <= len(normalized) <= SLUG_MAX_LENGTH:
        return False
    if "--" in normalized:
        return False
    return bool(_SLUG_PATTERN.match(normalized))
