import re, unicodedata

from config import Config

def normalize_email(s: str) -> str:
    if not s:
        return ""
    # Unicode-normalize, strip “format” chars (incl. zero-width), trim spaces, lowercase
    s = unicodedata.normalize("NFKC", s)
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Cf")
    s = s.strip().lower()
    s = re.sub(r"\s+", "", s)
    return s

def format_currency(amount: float) -> str:
    # whole shillings, thousands separated
    return f"{Config.CURRENCY_CODE} {amount:,.0f}"

def parse_currency(value: str) -> float:
    numeric = re.sub(r"[^\d.-]", "", value or "")
    try:
        return float(numeric)
    except ValueError:
        return 0.0
