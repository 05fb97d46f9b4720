"""A32 shift, immediate expansion and T32 width helpers."""

from __future__ import annotations

from enum import IntEnum

from .bitops import bits, sign_extend

__all__ = ["ArmShift", "arm_shift_c", "a32_expand_imm", "is_thumb2"]

_U32 = 0xFFFFFFFF


class ArmShift(IntEnum):
    """Shift types of the A32 barrel shifter."""

    LSL = 0
    LSR = 1
    ASR = 2
    ROR = 3
    RRX = 4


def arm_shift_c(val: int, shift_type: int, shift_count: int, carry_in: int = 0) -> tuple[int, int]:
    """Shift a 32-bit value and return ``(result, carry_out)``.

    A shift count of zero leaves the value unchanged and passes the carry through.
    """
    kind = ArmShift(shift_type)
    val &= _U32
    carry_in &= 1
    if shift_count < 0:
        raise ValueError("shift count must not be negative")
    if shift_count == 0:
        return val, carry_in

    if kind is ArmShift.LSL:
        wide = val << shift_count
        return wide & _U32, (wide >> 32) & 1
    if kind is ArmShift.LSR:
        wide = val >> (shift_count - 1)
        return (wide >> 1) & _U32, wide & 1
    if kind is ArmShift.ASR:
        wide = sign_extend(val, 32) >> (shift_count - 1)
        return (wide >> 1) & _U32, wide & 1
    if kind is ArmShift.ROR:
        count = shift_count % 32
        result = ((val >> count) | (val << (32 - count))) & _U32
        return result, result >> 31
    # RRX
    return ((carry_in << 31) | (val >> 1)) & _U32, val & 1


def a32_expand_imm(imm12: int) -> int:
    """Expand an A32 modified immediate: imm8 rotated right by twice imm4."""
    unrotated = bits(imm12, 0, 7)
    value, _ = arm_shift_c(unrotated, ArmShift.ROR, 2 * bits(imm12, 8, 11))
    return value


def is_thumb2(insn: int) -> bool:
    """Whether the halfword in the low 16 bits of ``insn`` starts a 32-bit T32 instruction."""
    first = insn & 0xFFFF
    return bits(first, 13, 15) == 0b111 and bits(first, 11, 12) != 0b00