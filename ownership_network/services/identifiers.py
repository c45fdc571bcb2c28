"""Normalization of Brazilian company (CNPJ) and person (CPF) identifiers."""
import re
from typing import Any, Optional

from ownership_network.exceptions import InvalidIdentifier

CNPJ_LENGTH = 14
MIN_DEGREE = 1
MAX_DEGREE = 4
DEFAULT_DEGREE = 3

_NON_DIGIT = re.compile(r"\D")
_DIGITS_AND_PUNCT = re.compile(r"^[\d.\-/\s]+$")


def only_digits(value: Any) -> str:
    return _NON_DIGIT.sub("", str(value or ""))


def normalize_cnpj(value: Any) -> str:
    """Return the 14 CNPJ digits of `value` or raise InvalidIdentifier."""
    if value is None or not str(value).strip():
        raise InvalidIdentifier("CNPJ é obrigatório")
    digits = only_digits(value)
    if len(digits) != CNPJ_LENGTH:
        raise InvalidIdentifier("CNPJ deve ter 14 dígitos", details=f"got {len(digits)} digits")
    return digits


def normalize_person_id(value: Any) -> str:
    """Normalize a partner id.

    Formatted tax ids ("123.456.789-00", "***456789**" fragments) are reduced to
    digits; opaque record-store keys such as UUIDs are only trimmed.
    """
    s = str(value or "").strip()
    if not s:
        raise InvalidIdentifier("Identificador de sócio vazio")
    if _DIGITS_AND_PUNCT.match(s):
        return only_digits(s)
    return s


def normalize_cpf_fragment(value: Any, min_digits: int = 6) -> str:
    """Digits of a (possibly partial) CPF; the record store keeps at least six."""
    if value is None or not str(value).strip():
        raise InvalidIdentifier("Parâmetro cpf é obrigatório")
    digits = only_digits(value)
    if len(digits) < min_digits:
        raise InvalidIdentifier("CPF inválido", details=f"expected at least {min_digits} digits")
    return digits


def mask_cpf(value: Any) -> str:
    """Render a CPF showing only its middle six digits: ***.456.789-**"""
    digits = only_digits(value).rjust(11, "0")
    return f"***.{digits[3:6]}.{digits[6:9]}-**"


def parse_degree(raw: Optional[Any], default: int = DEFAULT_DEGREE) -> int:
    """Lenient integer parse clamped to [1, 4]; garbage falls back to `default`."""
    try:
        value = int(str(raw).strip()) if raw is not None else default
    except ValueError:
        value = default
    if value == 0:
        # "0" is treated like a missing value, matching `parseInt(x) || 3`
        value = default
    return min(max(value, MIN_DEGREE), MAX_DEGREE)
