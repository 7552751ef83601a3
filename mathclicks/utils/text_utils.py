import re
from typing import Optional

_LEADING_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize_answer(text: str) -> str:
    """
    Nettoie une réponse : trim + minuscules.
    """
    if not text:
        return ""
    return text.strip().lower()


def strip_whitespace(text: str) -> str:
    return re.sub(r"\s+", "", text or "")


def parse_leading_float(text: str) -> Optional[float]:
    """
    Lit le nombre en tête de chaîne ("12.5cm" -> 12.5, "abc" -> None).
    Même comportement que parseFloat côté navigateur.
    """
    if text is None:
        return None
    m = _LEADING_FLOAT_RE.match(text.lstrip())
    if not m:
        return None
    return float(m.group(0))
