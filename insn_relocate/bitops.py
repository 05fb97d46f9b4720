"""Bit-field helpers for fixed-width instruction words."""

__all__ = ["bit", "bits", "set_bit", "set_bits", "sign_extend"]


def _mask(width: int) -> int:
    return (1 << width) - 1


def bit(value: int, n: int) -> int:
    """Return bit ``n`` of ``value`` (0 or 1)."""
    return (value >> n) & 1


def bits(value: int, lo: int, hi: int) -> int:
    """Return the field spanning bits ``lo`` to ``hi`` inclusive."""
    if hi < lo:
        raise ValueError(f"invalid bit range {lo}..{hi}")
    return (value >> lo) & _mask(hi - lo + 1)


def set_bit(value: int, n: int, flag: int) -> int:
    """Return ``value`` with bit ``n`` set to the low bit of ``flag``."""
    return (value & ~(1 << n)) | ((flag & 1) << n)


def set_bits(value: int, lo: int, hi: int, field: int) -> int:
    """Return ``value`` with bits ``lo`` to ``hi`` replaced by ``field``.

    ``field`` is truncated to the width of the range.
    """
    if hi < lo:
        raise ValueError(f"invalid bit range {lo}..{hi}")
    mask = _mask(hi - lo + 1)
    return (value & ~(mask << lo)) | ((field & mask) << lo)


def sign_extend(value: int, width: int) -> int:
    """Interpret the low ``width`` bits of ``value`` as a signed integer."""
    if width <= 0:
        raise ValueError("width must be positive")
    value &= _mask(width)
    if value >> (width - 1):
        value -= 1 << width
    return value