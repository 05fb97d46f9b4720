import pytest

from insn_relocate.bitops import bit, bits, set_bit, set_bits, sign_extend


def test_bits_top_nibble():
    assert bits(0x12345678, 28, 31) == 0x1


@pytest.mark.parametrize("n", [0, 5, 31])
def test_set_bit_then_read(n):
    value = set_bit(0, n, 1)
    assert bit(value, n) == 1
    assert set_bit(value, n, 0) == 0


@pytest.mark.parametrize("lo,hi,field", [(0, 3, 9), (5, 23, 0x7FFFF), (29, 30, 2)])
def test_set_bits_round_trip(lo, hi, field):
    value = set_bits(0xFFFFFFFF, lo, hi, field)
    assert bits(value, lo, hi) == field


def test_set_bits_keeps_other_bits():
    value = set_bits(0xFFFFFFFF, 8, 15, 0)
    assert bits(value, 0, 7) == bits(0xFFFFFFFF, 0, 7)
    assert bits(value, 16, 31) == bits(0xFFFFFFFF, 16, 31)
    assert bits(value, 8, 15) == 0


def test_set_bits_truncates_field():
    assert bits(set_bits(0, 0, 3, 0x1F), 4, 7) == 0


def test_sign_extend_positive_unchanged():
    assert sign_extend(0x7F, 8) == 0x7F


def test_sign_extend_negative():
    assert sign_extend(0xFF, 8) == -1


def test_sign_extend_ignores_high_bits():
    assert sign_extend(0x100 | 0x05, 8) == 5


def test_invalid_range():
    with pytest.raises(ValueError):
        bits(1, 5, 2)
    with pytest.raises(ValueError):
        set_bits(1, 5, 2, 0)
    with pytest.raises(ValueError):
        sign_extend(1, 0)