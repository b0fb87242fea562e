import re
from typing import Optional


_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()


def collapse_whitespace(value: Optional[str]) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def same_full_address(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_text(a) == normalize_text(b)


def format_full_address(street: str, city: str, state: str, zip_code: str) -> str:
    return f"{street}, {city}, {state} {zip_code}"
