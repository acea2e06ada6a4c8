from decimal import Decimal

WAD_DECIMALS = 18


def from_wad(value: int) -> Decimal:
    """Convert a wad-denominated integer (18 decimals) into a Decimal"""
    # Built from a string so values past the 28-digit context precision stay exact
    return Decimal(f"{value}e-{WAD_DECIMALS}")


def bytes32_to_string(value: bytes) -> str:
    """bytes32 ilk identifiers are right-padded ASCII, e.g. b'ETH-A\\x00...'"""
    return value.rstrip(b"\x00").decode("ascii", errors="replace")


def format_amount(value: Decimal) -> str:
    """Plain decimal string without trailing zeros, e.g. Decimal('5.000') -> '5'"""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
