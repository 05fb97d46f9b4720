"""AArch64 PC-relative instruction classification and offset encoding."""

from __future__ import annotations

from enum import Enum

from .bitops import bit, bits, set_bit, set_bits, sign_extend

_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF
_PAGE_MASK = ~(0x1000 - 1)

# Load register (literal).
LOAD_REG_LITERAL_FIXED = 0x18000000
LOAD_REG_LITERAL_FIXED_MASK = 0x3B000000

# PC relative addressing.
PC_REL_ADDRESSING_FIXED = 0x10000000
PC_REL_ADDRESSING_FIXED_MASK = 0x1F000000
PC_REL_ADDRESSING_MASK = 0x9F000000
ADR = PC_REL_ADDRESSING_FIXED | 0x00000000
ADRP = PC_REL_ADDRESSING_FIXED | 0x80000000

# Unconditional branch.
UNCONDITIONAL_BRANCH_FIXED = 0x14000000
UNCONDITIONAL_BRANCH_FIXED_MASK = 0x7C000000
UNCONDITIONAL_BRANCH_MASK = 0xFC000000
B = UNCONDITIONAL_BRANCH_FIXED | 0x00000000
BL = UNCONDITIONAL_BRANCH_FIXED | 0x80000000

# Compare and branch.
COMPARE_BRANCH_FIXED = 0x34000000
COMPARE_BRANCH_FIXED_MASK = 0x7E000000
COMPARE_BRANCH_MASK = 0xFF000000

# Conditional branch.
CONDITIONAL_BRANCH_FIXED = 0x54000000
CONDITIONAL_BRANCH_FIXED_MASK = 0xFE000000
CONDITIONAL_BRANCH_MASK = 0xFF000010

# Test and branch.
TEST_BRANCH_FIXED = 0x36000000
TEST_BRANCH_FIXED_MASK = 0x7E000000
TEST_BRANCH_MASK = 0x7F000000

# A rewritten short branch skips "ldr x17, label; br x17" to reach the
# fall-through path: three instructions ahead.
_SKIP_STUB_OFFSET = 4 * 3


class Arm64InsnKind(Enum):
    """The PC-relative instruction families that need relocation."""

    B_BL = "b_bl"
    LDR_LITERAL = "ldr_literal"
    ADR = "adr"
    ADRP = "adrp"
    B_COND = "b_cond"
    COMPARE_B = "compare_b"
    TEST_B = "test_b"
    OTHER = "other"


# --- immediate offsets ---


def decode_imm14_offset(instr: int) -> int:
    """Byte offset of a test-and-branch instruction."""
    return sign_extend(bits(instr, 5, 18) << 2, 2 + 14)


def encode_imm14_offset(instr: int, offset: int) -> int:
    """Return ``instr`` with its imm14 field set to ``offset``."""
    return set_bits(instr & _U32, 5, 18, bits(offset >> 2, 0, 13))


def decode_imm19_offset(instr: int) -> int:
    """Byte offset of a conditional, compare-branch or literal-load instruction."""
    return sign_extend(bits(instr, 5, 23) << 2, 2 + 19)


def encode_imm19_offset(instr: int, offset: int) -> int:
    """Return ``instr`` with its imm19 field set to ``offset``."""
    return set_bits(instr & _U32, 5, 23, bits(offset >> 2, 0, 18))


def decode_imm26_offset(instr: int) -> int:
    """Byte offset of an unconditional B or BL."""
    return sign_extend(bits(instr, 0, 25) << 2, 2 + 26)


def encode_imm26_offset(instr: int, offset: int) -> int:
    """Return ``instr`` with its imm26 field set to ``offset``."""
    return set_bits(instr & _U32, 0, 25, bits(offset >> 2, 0, 25))


def decode_immhi_immlo_offset(instr: int) -> int:
    """Signed 21-bit immediate of ADR/ADRP (immlo in bits 29-30, immhi in 5-23)."""
    immlo = bits(instr, 29, 30)
    immhi = bits(instr, 5, 23)
    return sign_extend(immlo + (immhi << 2), 2 + 19)


def encode_immhi_immlo_offset(instr: int, offset: int) -> int:
    """Return ``instr`` with its immhi:immlo fields set to ``offset``."""
    instr = set_bits(instr & _U32, 29, 30, offset)
    return set_bits(instr, 5, 23, offset >> 2)


def decode_immhi_immlo_zero12_offset(instr: int) -> int:
    """ADRP page offset in bytes."""
    return decode_immhi_immlo_offset(instr) << 12


def encode_immhi_immlo_zero12_offset(instr: int, offset: int) -> int:
    """Return ``instr`` with its ADRP page offset set to ``offset`` bytes."""
    return encode_immhi_immlo_offset(instr, offset >> 12)


def decode_rt(instr: int) -> int:
    """Target register field (bits 0-4)."""
    return bits(instr, 0, 4)


def decode_rd(instr: int) -> int:
    """Destination register field (bits 0-4)."""
    return bits(instr, 0, 4)


# --- classification ---


def is_b_bl(instr: int) -> bool:
    return (instr & UNCONDITIONAL_BRANCH_FIXED_MASK) == UNCONDITIONAL_BRANCH_FIXED


def is_ldr_literal(instr: int) -> bool:
    return (instr & LOAD_REG_LITERAL_FIXED_MASK) == LOAD_REG_LITERAL_FIXED


def is_adr(instr: int) -> bool:
    return (instr & PC_REL_ADDRESSING_FIXED_MASK) == PC_REL_ADDRESSING_FIXED and (
        instr & PC_REL_ADDRESSING_MASK
    ) == ADR


def is_adrp(instr: int) -> bool:
    return (instr & PC_REL_ADDRESSING_FIXED_MASK) == PC_REL_ADDRESSING_FIXED and (
        instr & PC_REL_ADDRESSING_MASK
    ) == ADRP


def is_b_cond(instr: int) -> bool:
    return (instr & CONDITIONAL_BRANCH_FIXED_MASK) == CONDITIONAL_BRANCH_FIXED


def is_compare_b(instr: int) -> bool:
    return (instr & COMPARE_BRANCH_FIXED_MASK) == COMPARE_BRANCH_FIXED


def is_test_b(instr: int) -> bool:
    return (instr & TEST_BRANCH_FIXED_MASK) == TEST_BRANCH_FIXED


_CHECKS = (
    (is_b_bl, Arm64InsnKind.B_BL),
    (is_ldr_literal, Arm64InsnKind.LDR_LITERAL),
    (is_adr, Arm64InsnKind.ADR),
    (is_adrp, Arm64InsnKind.ADRP),
    (is_b_cond, Arm64InsnKind.B_COND),
    (is_compare_b, Arm64InsnKind.COMPARE_B),
    (is_test_b, Arm64InsnKind.TEST_B),
)


def classify(instr: int) -> Arm64InsnKind:
    """Return the relocation family of ``instr``, checked in relocation order."""
    return next((kind for check, kind in _CHECKS if check(instr)), Arm64InsnKind.OTHER)


def branch_target(instr: int, address: int) -> int:
    """Absolute address that a PC-relative ``instr`` at ``address`` refers to.

    Raises ValueError for instructions that are not PC-relative.
    """
    kind = classify(instr)
    if kind is Arm64InsnKind.B_BL:
        offset = decode_imm26_offset(instr)
    elif kind in (Arm64InsnKind.LDR_LITERAL, Arm64InsnKind.B_COND, Arm64InsnKind.COMPARE_B):
        offset = decode_imm19_offset(instr)
    elif kind is Arm64InsnKind.ADR:
        offset = decode_immhi_immlo_offset(instr)
    elif kind is Arm64InsnKind.ADRP:
        return ((address + decode_immhi_immlo_zero12_offset(instr)) & _PAGE_MASK) & _U64
    elif kind is Arm64InsnKind.TEST_B:
        offset = decode_imm14_offset(instr)
    else:
        raise ValueError(f"instruction {instr:#010x} is not PC-relative")
    return (address + offset) & _U64


def invert_conditional_branch(instr: int) -> int:
    """Invert a short conditional branch so it skips a three-instruction stub.

    B.cond gets its condition flipped; CBZ/CBNZ and TBZ/TBNZ swap via bit 24.
    The new target is twelve bytes ahead. Raises ValueError for other
    instructions.
    """
    kind = classify(instr)
    instr &= _U32
    if kind is Arm64InsnKind.B_COND:
        instr = set_bits(instr, 0, 3, bits(instr, 0, 3) ^ 1)
        return set_bits(instr, 5, 23, _SKIP_STUB_OFFSET >> 2)
    if kind is Arm64InsnKind.COMPARE_B:
        instr = set_bit(instr, 24, bit(instr, 24) ^ 1)
        return set_bits(instr, 5, 23, _SKIP_STUB_OFFSET >> 2)
    if kind is Arm64InsnKind.TEST_B:
        instr = set_bit(instr, 24, bit(instr, 24) ^ 1)
        return set_bits(instr, 5, 18, _SKIP_STUB_OFFSET >> 2)
    raise ValueError(f"instruction {instr:#010x} is not a conditional branch")