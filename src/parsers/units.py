"""Token unit normalization: raw ledger integers to human-readable amounts.

Raw amounts travel as integer strings and are only divided here, using a
wide decimal context so u64 (and u128) balances keep every digit.
"""

import re
from decimal import Context, Decimal, InvalidOperation

# Wrapped SOL mint; the native asset is processed as this token
SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9
MAX_DECIMALS = 18

# 2^256 has 78 digits; enough headroom for any SPL amount plus 18 decimals
_EXACT = Context(prec=100)
_INT_RE = re.compile(r"-?\d+")


def normalize(raw_amount: str | int, decimals: int) -> Decimal:
    """Convert a raw integer amount to UI units: raw / 10^decimals, exactly."""
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise ValueError(f"decimals must be a non-negative integer, got {decimals!r}")
    if decimals > MAX_DECIMALS:
        raise ValueError(f"decimals must be <= {MAX_DECIMALS}, got {decimals}")

    text = str(raw_amount).strip()
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"raw amount must be an integer string, got {raw_amount!r}")

    return Decimal(text).scaleb(-decimals, context=_EXACT)


def scale_amount(value: Decimal | float | int, decimals: int) -> Decimal:
    """Rescale a quantity that a third-party payload reports in raw units.

    Unlike ``normalize`` the input may already carry a fractional part
    (TrenchBot reports JSON numbers, not integer strings).
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    return amount.scaleb(-decimals, context=_EXACT)


def lamports_to_sol(lamports: int | str) -> Decimal:
    return normalize(lamports, SOL_DECIMALS)


def resolve_decimals(
    mint: str,
    reported: int | None,
    listed: int | None = None,
) -> tuple[int, bool]:
    """Pick decimals for a mint: indexer value, then token list, then default.

    Returns (decimals, assumed). ``assumed`` is True only when no source
    knew the mint and 0 was substituted; callers surface it as a warning.
    """
    for candidate in (reported, listed):
        if candidate is not None and 0 <= candidate <= MAX_DECIMALS:
            return candidate, False
    if mint == SOL_MINT:
        return SOL_DECIMALS, False
    return 0, True
