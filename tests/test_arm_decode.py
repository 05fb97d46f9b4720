import pytest

from insn_relocate.arm_decode import ArmShift, a32_expand_imm, arm_shift_c, is_thumb2


@pytest.mark.parametrize("kind", list(ArmShift))
def test_zero_count_passes_value_and_carry(kind):
    assert arm_shift_c(0x12345678, kind, 0, 1) == (0x12345678, 1)
    assert arm_shift_c(0x12345678, kind, 0, 0) == (0x12345678, 0)


def test_lsl_carries_out_top_bit():
    assert arm_shift_c(0x80000001, ArmShift.LSL, 1) == (2, 1)


def test_lsr_carries_out_low_bit():
    assert arm_shift_c(3, ArmShift.LSR, 1) == (1, 1)


def test_lsl_then_lsr_round_trip():
    value = 0x00ABCDEF
    shifted, _ = arm_shift_c(value, ArmShift.LSL, 8)
    back, _ = arm_shift_c(shifted, ArmShift.LSR, 8)
    assert back == value


def test_asr_keeps_sign():
    result, carry = arm_shift_c(0x80000000, ArmShift.ASR, 4)
    assert result >> 28 == 0xF
    assert carry == 0
    positive, _ = arm_shift_c(0x40000000, ArmShift.ASR, 4)
    plain, _ = arm_shift_c(0x40000000, ArmShift.LSR, 4)
    assert positive == plain


def test_ror_full_turn_is_identity():
    assert arm_shift_c(0xDEADBEEF, ArmShift.ROR, 32)[0] == 0xDEADBEEF


def test_ror_carry_is_result_top_bit():
    result, carry = arm_shift_c(1, ArmShift.ROR, 1)
    assert result == 0x80000000
    assert carry == 1


def test_rrx_shifts_in_carry():
    assert arm_shift_c(1, ArmShift.RRX, 1, 1) == (0x80000000, 1)


def test_unknown_shift_type_rejected():
    with pytest.raises(ValueError):
        arm_shift_c(1, 9, 1)


def test_expand_imm_without_rotation():
    assert a32_expand_imm(0x0FF) == 0xFF


def test_expand_imm_rotates():
    assert a32_expand_imm(0x4FF) == 0xFF000000


def test_expand_imm_never_exceeds_32_bits():
    for imm12 in range(0, 0x1000, 37):
        assert 0 <= a32_expand_imm(imm12) <= 0xFFFFFFFF


@pytest.mark.parametrize(
    "insn, expected",
    [
        (0xF000, True),
        (0xF85F, True),
        (0xE800, True),
        (0xE000, False),
        (0xBF00, False),
        (0x4800, False),
    ],
)
def test_is_thumb2(insn, expected):
    assert is_thumb2(insn) is expected


def test_is_thumb2_ignores_high_halfword():
    assert is_thumb2(0xFFFF0000 | 0xBF00) is False
    assert is_thumb2(0x0000F000) is True