# vault/core/units.py
from decimal import Decimal, InvalidOperation, localcontext

WEI_PER_ETHER = 10 ** 18


def parse_ether(value: str) -> int:
    """Convert a decimal ether string ("1.5") to an integer amount of wei."""
    try:
        dec = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        raise ValueError(f"Not a decimal amount: {value!r}")
    if not dec.is_finite():
        raise ValueError(f"Not a decimal amount: {value!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        wei = dec.scaleb(18)
        if wei != wei.to_integral_value():
            raise ValueError(f"Too many decimal places (max 18): {value!r}")
        return int(wei)


def format_ether(wei: int) -> str:
    """Render wei as ether, trimming trailing zeros but keeping one decimal ("1.0")."""
    sign = "-" if wei < 0 else ""
    whole, frac = divmod(abs(wei), WEI_PER_ETHER)
    frac_str = f"{frac:018d}".rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"
