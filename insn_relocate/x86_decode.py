"""Length and operand decoding of single x86 and x86-64 instructions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum, IntFlag

from .bitops import sign_extend
from .x86_opcodes import InsnSpec, modrm_reg_group_spec, one_byte_spec, two_byte_spec
from .x86_reader import InsnReader

__all__ = [
    "DecodeFlag",
    "Prefix",
    "Register",
    "MemOperand",
    "Operand",
    "DecodedInsn",
    "has_modrm_byte",
    "has_immediate",
    "immediate_type",
    "immediate_bits",
    "decode",
]

# General-purpose register numbers as encoded in ModR/M and SIB fields.
_GP_SP = 4
_GP_BP = 5
_GP_BX = 3
_GP_SI = 6
_GP_R13 = 13

_TWO_BYTE_ESCAPE = 0x0F
_MODES = (16, 32, 64)


class DecodeFlag(IntFlag):
    """Facts found while decoding an instruction."""

    NONE = 0
    HAS_BASE = 1 << 0
    HAS_INDEX = 1 << 1
    IS_ADDRESS = 1 << 2
    IP_RELATIVE = 1 << 3
    OPERAND_SIZE_64 = 1 << 4


class Prefix(IntFlag):
    """Legacy instruction prefixes."""

    NONE = 0
    LOCK = 0x0001  # F0
    REPNE = 0x0002  # F2
    REPNZ = 0x0002
    REPE = 0x0004  # F3
    REP = 0x0004
    REPZ = 0x0004
    ES = 0x0008  # 26
    CS = 0x0010  # 2E
    SS = 0x0020  # 36
    DS = 0x0040  # 3E
    FS = 0x0080  # 64
    GS = 0x0100  # 65
    OPERAND_SIZE = 0x0200  # 66
    ADDRESS_SIZE = 0x0400  # 67


class Register(IntEnum):
    """Symbolic registers; ``RIP`` marks an IP-relative memory operand."""

    NONE = 0
    RAX = 1
    RBX = 2
    RCX = 3
    RDX = 4
    RDI = 5
    RSI = 6
    RBP = 7
    RSP = 8
    R8 = 9
    R9 = 10
    R10 = 11
    R11 = 12
    R12 = 13
    R13 = 14
    R14 = 15
    R15 = 16
    RIP = 17


_LEGACY_PREFIXES = {
    0xF0: Prefix.LOCK,
    0xF2: Prefix.REPNE,
    0xF3: Prefix.REPE,
    0x2E: Prefix.CS,
    0x36: Prefix.SS,
    0x3E: Prefix.DS,
    0x26: Prefix.ES,
    0x64: Prefix.FS,
    0x65: Prefix.GS,
    0x66: Prefix.OPERAND_SIZE,
    0x67: Prefix.ADDRESS_SIZE,
}


@dataclass
class MemOperand:
    """A memory reference.

    ``base`` and ``index`` are encoded register numbers (0-15), ``None`` when
    absent, or ``Register.RIP`` for an IP-relative reference. ``disp`` is the
    sign-extended displacement.
    """

    base: int | None = None
    index: int | None = None
    scale: int = 0
    disp: int = 0


@dataclass
class Operand:
    """A register operand together with its memory form."""

    reg: int = 0
    mem: MemOperand = field(default_factory=MemOperand)


@dataclass
class DecodedInsn:
    """The decoded fields of one instruction.

    ``operands[0]`` holds the ModR/M reg field, ``operands[1]`` the r/m
    operand. ``primary_opcode`` is the byte after 0x0F for two-byte opcodes.
    ``immediate`` is unsigned; ``signed_immediate`` gives its signed value.
    """

    spec: InsnSpec | None = None
    flags: DecodeFlag = DecodeFlag.NONE
    length: int = 0
    displacement_offset: int = 0
    immediate_offset: int = 0
    operands: list[Operand] = field(default_factory=lambda: [Operand() for _ in range(3)])
    prefix: Prefix = Prefix.NONE
    rex: int = 0
    primary_opcode: int = 0
    two_byte: bool = False
    modrm: int = 0
    sib: int = 0
    immediate: int = 0
    immediate_size: int = 0

    @property
    def name(self) -> str:
        return self.spec.name if self.spec is not None else ""

    @property
    def signed_immediate(self) -> int:
        if not self.immediate_size:
            return 0
        return sign_extend(self.immediate, self.immediate_size)


# --- spec queries ---


def has_modrm_byte(spec: InsnSpec) -> bool:
    """Whether an instruction of ``spec`` carries a ModR/M byte."""
    return any(op.code in "GEMR" for op in spec.operands)


def has_immediate(spec: InsnSpec) -> bool:
    """Whether an instruction of ``spec`` carries an immediate or offset."""
    return any(op.code in "JIO" for op in spec.operands)


def immediate_type(spec: InsnSpec) -> str | None:
    """Size letter of the first immediate operand, or None."""
    return next((op.type for op in spec.operands if op.code in "JIO"), None)


_FIXED_IMM_BITS = {"b": 8, "w": 16, "d": 32, "q": 64}


def immediate_bits(spec: InsnSpec, operand_bits: int) -> int:
    """Immediate width in bits for the effective operand size ``operand_bits``."""
    kind = immediate_type(spec)
    if kind in _FIXED_IMM_BITS:
        return _FIXED_IMM_BITS[kind]
    if kind == "z":
        return 32 if operand_bits == 64 else operand_bits
    if kind == "v":
        return operand_bits
    return 0


# --- decoding steps ---


def _rex_w(rex: int) -> int:
    return (rex >> 3) & 1


def _rex_r(rex: int) -> int:
    return (rex >> 2) & 1


def _rex_x(rex: int) -> int:
    return (rex >> 1) & 1


def _rex_b(rex: int) -> int:
    return rex & 1


def _decode_prefix(rd: InsnReader, insn: DecodedInsn, mode: int) -> Prefix:
    prefix = Prefix.NONE
    while True:
        c = rd.peek_byte()
        # A REX prefix must immediately precede the opcode.
        if mode == 64 and 0x40 <= c <= 0x4F:
            rex = rd.read_byte()
            if _rex_w(rex):
                insn.flags |= DecodeFlag.OPERAND_SIZE_64
            insn.rex = rex
            return prefix
        found = _LEGACY_PREFIXES.get(c)
        if found is None:
            return prefix
        rd.read_byte()
        prefix |= found


def _decode_opcode(rd: InsnReader, insn: DecodedInsn) -> None:
    opcode = rd.read_byte()
    if opcode == _TWO_BYTE_ESCAPE:
        opcode = rd.read_byte()
        spec = two_byte_spec(opcode)
        insn.two_byte = True
    else:
        spec = one_byte_spec(opcode)

    if spec.is_sse_group:
        raise NotImplementedError(f"SSE opcode {opcode:#04x} is not supported")

    if spec.is_modrm_reg_group:
        reg = (rd.peek_byte() >> 3) & 7
        member = modrm_reg_group_spec(spec.group, reg)
        spec = replace(spec, name=member.name, flags=member.flags)

    insn.primary_opcode = opcode
    insn.spec = spec


def _decode_modrm_sib(rd: InsnReader, insn: DecodedInsn, mode: int) -> None:
    modrm = rd.read_byte()
    insn.modrm = modrm
    mod = modrm >> 6
    raw_rm = modrm & 7
    rm = (_rex_b(insn.rex) << 3) | raw_rm
    reg = (_rex_r(insn.rex) << 3) | ((modrm >> 3) & 7)

    reg_op = insn.operands[0]
    mem_op = insn.operands[1]
    reg_op.reg = reg

    if mod == 3:
        mem_op.reg = rm
        return

    insn.flags |= DecodeFlag.IS_ADDRESS

    address_size = bool(insn.prefix & Prefix.ADDRESS_SIZE)
    if mode == 64:
        address_bits = 32 if address_size else 64
    elif mode == 32:
        address_bits = 16 if address_size else 32
    else:
        raise ValueError("16-bit address mode not supported")

    disp_bits = 0
    mem = mem_op.mem

    if address_bits in (32, 64):
        mem.base = rm
        insn.flags |= DecodeFlag.HAS_BASE

        if mod == 0 and raw_rm == 5:
            insn.flags = DecodeFlag.IP_RELATIVE
            mem.base = Register.RIP
            disp_bits = 32
        elif mod == 1:
            disp_bits = 8
        elif mod == 2:
            disp_bits = 32

        if raw_rm == 4:
            sib = rd.read_byte()
            insn.sib = sib
            sib_base = sib & 7
            sib_index = (sib >> 3) & 7
            mem.base = sib_base | (_rex_b(insn.rex) << 3)
            mem.index = sib_index | (_rex_x(insn.rex) << 3)
            mem.scale = 1 << (sib >> 6)
            insn.flags |= DecodeFlag.HAS_BASE
            if sib_index == _GP_SP:
                mem.index = None
                mem.scale = 0
            else:
                insn.flags |= DecodeFlag.HAS_INDEX

            no_base = mem.base == _GP_BP or (address_bits == 64 and mem.base == _GP_R13)
            if no_base:
                if mod == 0:
                    mem.base = None
                disp_bits = 8 if mod == 1 else 32
    else:
        if mod == 0 and raw_rm == 6:
            disp_bits = 16  # [disp16]
        else:
            if raw_rm in (0, 1):  # [bx + si/di]
                mem.base = _GP_BX
                mem.index = _GP_SI + (raw_rm & 1)
                insn.flags |= DecodeFlag.HAS_BASE | DecodeFlag.HAS_INDEX
            elif raw_rm in (2, 3):  # [bp + si/di]
                mem.base = _GP_BP
                mem.index = _GP_SI + (raw_rm & 1)
                insn.flags |= DecodeFlag.HAS_BASE | DecodeFlag.HAS_INDEX
            elif raw_rm in (4, 5):  # [si/di]
                mem.base = _GP_SI + (raw_rm & 1)
                insn.flags |= DecodeFlag.HAS_BASE
            elif raw_rm == 6:  # [bp + disp]
                mem.base = _GP_BP
                insn.flags |= DecodeFlag.HAS_BASE
            else:  # [bx + disp]
                mem.base = _GP_BX
                insn.flags |= DecodeFlag.HAS_BASE
            if mod != 0:
                disp_bits = 8 if mod == 1 else 16

    if disp_bits:
        insn.displacement_offset = rd.offset
        mem.disp = sign_extend(rd.read_number(disp_bits), disp_bits)


def _decode_immediate(rd: InsnReader, insn: DecodedInsn, mode: int) -> None:
    operand_bits = 16 if insn.prefix & Prefix.OPERAND_SIZE else 32
    if insn.flags & DecodeFlag.OPERAND_SIZE_64:
        operand_bits = 64
    if mode == 64 and insn.spec.default_64_bit:
        operand_bits = 64

    imm_bits = immediate_bits(insn.spec, operand_bits)
    if not imm_bits:
        return
    insn.immediate_offset = rd.offset
    insn.immediate = rd.read_number(imm_bits)
    insn.immediate_size = imm_bits


def decode(data: bytes, mode: int = 64) -> DecodedInsn:
    """Decode the instruction at the start of ``data`` in 16, 32 or 64-bit ``mode``.

    Raises ValueError for an unknown mode, empty input or 16-bit addressing,
    and NotImplementedError for SSE opcodes.
    """
    if mode not in _MODES:
        raise ValueError(f"unsupported mode {mode}")
    if not data:
        raise ValueError("no instruction bytes")

    rd = InsnReader(data)
    insn = DecodedInsn()
    insn.prefix = _decode_prefix(rd, insn, mode)
    _decode_opcode(rd, insn)
    if has_modrm_byte(insn.spec):
        _decode_modrm_sib(rd, insn, mode)
    if has_immediate(insn.spec):
        _decode_immediate(rd, insn, mode)
    insn.length = rd.offset
    return insn