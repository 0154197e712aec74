"""Fast, non-cryptographic fingerprint used for change detection."""

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def checksum(text: str) -> str:
    """
    32-bit rolling hash (h * 31 + unit) over the UTF-16 code units of `text`,
    rendered as base36 of its absolute value.

    Matches the fingerprints already stored in the mirror table, so the
    UTF-16 iteration and signed 32-bit wrap must stay as they are.
    """
    encoded = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))
