"""Opcode specification tables for one-byte, two-byte and ModR/M-group x86 instructions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

__all__ = [
    "SPEC_DEFAULT_64_BIT",
    "GROUP_START",
    "SSE_GROUP_START",
    "GROUP_END",
    "InsnGroup",
    "OperandSpec",
    "InsnSpec",
    "group_flag",
    "one_byte_spec",
    "two_byte_spec",
    "modrm_reg_group_spec",
]

# The instruction defaults to a 64-bit operand size in 64-bit mode.
SPEC_DEFAULT_64_BIT = 1 << 0

GROUP_START = 0
SSE_GROUP_START = 19
GROUP_END = 35

_GROUP_SHIFT = 5
_GROUP_MASK = (1 << 6) - 1


class InsnGroup(IntEnum):
    """Opcode-extension groups, as stored in the group bits of a spec's flags."""

    MODRM_1 = 1
    MODRM_1A = 2
    MODRM_2 = 3
    MODRM_3 = 4
    MODRM_4 = 5
    MODRM_5 = 6
    MODRM_6 = 7
    MODRM_7 = 8
    MODRM_8 = 9
    MODRM_9 = 10
    MODRM_10 = 11
    MODRM_11 = 12
    MODRM_12 = 13
    MODRM_13 = 14
    MODRM_14 = 15
    MODRM_15 = 16
    MODRM_16 = 17
    MODRM_P = 18
    SSE_10 = 20
    SSE_28 = 21
    SSE_50 = 22
    SSE_58 = 23
    SSE_60 = 24
    SSE_68 = 25
    SSE_70 = 26
    SSE_78 = 27
    SSE_C0 = 28
    SSE_D0 = 29
    SSE_D8 = 30
    SSE_E0 = 31
    SSE_E8 = 32
    SSE_F0 = 33
    SSE_F8 = 34


def group_flag(group: int) -> int:
    """Flag bits that place a spec in ``group``."""
    return (group & _GROUP_MASK) << _GROUP_SHIFT


@dataclass(frozen=True)
class OperandSpec:
    """An operand in two-letter notation: addressing ``code`` and size ``type``.

    ``code`` is for example ``E`` (ModR/M r/m), ``G`` (ModR/M reg), ``I``
    (immediate) or ``J`` (relative offset); ``type`` is the size letter.
    Unused operand slots are ``__``.
    """

    code: str
    type: str

    @classmethod
    def parse(cls, text: str) -> OperandSpec:
        if len(text) != 2:
            raise ValueError(f"operand spec must have two characters: {text!r}")
        return cls(text[0], text[1])

    @property
    def is_none(self) -> bool:
        return self.code == "_"

    def __str__(self) -> str:
        return self.code + self.type


@dataclass(frozen=True)
class InsnSpec:
    """Name, up to three operands and flags of one opcode."""

    name: str
    operands: tuple[OperandSpec, OperandSpec, OperandSpec]
    flags: int = 0

    @property
    def group(self) -> int:
        """Index of the extension group this opcode defers to, or 0."""
        return (self.flags >> _GROUP_SHIFT) & _GROUP_MASK

    @property
    def is_modrm_reg_group(self) -> bool:
        return GROUP_START < self.group < SSE_GROUP_START

    @property
    def is_sse_group(self) -> bool:
        return self.group > SSE_GROUP_START

    @property
    def default_64_bit(self) -> bool:
        return bool(self.flags & SPEC_DEFAULT_64_BIT)


def _op(name: str, *operands: str, flags: int = 0) -> InsnSpec:
    if len(operands) > 3:
        raise ValueError("at most three operands")
    padded = operands + ("__",) * (3 - len(operands))
    a, b, c = (OperandSpec.parse(o) for o in padded)
    return InsnSpec(name, (a, b, c), flags)


_D64 = SPEC_DEFAULT_64_BIT
_G = group_flag

_CONDITIONS = ("o", "no", "b", "nb", "z", "nz", "be", "nbe", "s", "ns", "p", "np", "l", "nl", "le", "nle")
_GP_REGS = ("AX", "CX", "DX", "BX", "SP", "BP", "SI", "DI")
_BYTE_REGS = ("AL", "CL", "DL", "BL", "AH", "CH", "DH", "BH")


def _combine(name: str) -> list[InsnSpec]:
    return [
        _op(name, "Eb", "Gb"),
        _op(name, "Ev", "Gv"),
        _op(name, "Gb", "Eb"),
        _op(name, "Gv", "Ev"),
        _op(name, "AL", "Ib"),
        _op(name, "AX", "Iz"),
    ]


def _same(name: str, count: int, *operands: str, flags: int = 0) -> list[InsnSpec]:
    return [_op(name, *operands, flags=flags)] * count


def _named(names: str, *operands: str, flags: int = 0) -> list[InsnSpec]:
    return [_op(name, *operands, flags=flags) for name in names.split()]


_ONE_BYTE: tuple[InsnSpec, ...] = tuple(
    # 0x00
    _combine("add")
    + [_op("push_es"), _op("pop_es", flags=_D64)]
    + _combine("or")
    + [_op("push_cs", flags=_D64), _op("escape_two_byte")]
    # 0x10
    + _combine("adc")
    + [_op("push_ss"), _op("pop_ss")]
    + _combine("sbb")
    + [_op("push_ds"), _op("pop_ds")]
    # 0x20
    + _combine("and")
    + [_op("segment_es"), _op("daa")]
    + _combine("sub")
    + [_op("segment_cs"), _op("das")]
    # 0x30
    + _combine("xor")
    + [_op("segment_ss"), _op("aaa")]
    + _combine("cmp")
    + [_op("segment_ds"), _op("aas")]
    # 0x40
    + [_op("inc", r) for r in _GP_REGS]
    + [_op("dec", r) for r in _GP_REGS]
    # 0x50
    + [_op("push", r, flags=_D64) for r in _GP_REGS]
    + [_op("pop", r, flags=_D64) for r in _GP_REGS]
    # 0x60
    + [
        _op("pusha"),
        _op("popa"),
        _op("bound", "Gv", "Ma"),
        _op("movsxd", "Gv", "Ed"),
        _op("segment_fs"),
        _op("segment_gs"),
        _op("operand_type"),
        _op("address_size"),
        _op("push", "Iz", flags=_D64),
        _op("imul", "Gv", "Ev", "Iz"),
        _op("push", "Ib", flags=_D64),
        _op("imul", "Gv", "Ev", "Ib"),
        _op("insb", "DX"),
        _op("insw", "DX"),
        _op("outsb", "DX"),
        _op("outsw", "DX"),
    ]
    # 0x70
    + [_op("j" + c, "Jb") for c in _CONDITIONS]
    # 0x80
    + [
        _op("modrm_group_1", "Eb", "Ib", flags=_G(InsnGroup.MODRM_1)),
        _op("modrm_group_1", "Ev", "Iz", flags=_G(InsnGroup.MODRM_1)),
        _op("modrm_group_1", "Eb", "Ib", flags=_G(InsnGroup.MODRM_1)),
        _op("modrm_group_1", "Ev", "Ib", flags=_G(InsnGroup.MODRM_1)),
        _op("test", "Eb", "Gb"),
        _op("test", "Ev", "Gv"),
        _op("xchg", "Eb", "Gb"),
        _op("xchg", "Ev", "Gv"),
        _op("mov", "Eb", "Gb"),
        _op("mov", "Ev", "Gv"),
        _op("mov", "Gb", "Eb"),
        _op("mov", "Gv", "Ev"),
        _op("mov", "Ev", "Sw"),
        _op("lea", "Gv", "Ev"),
        _op("mov", "Sw", "Ew"),
        _op("modrm_group_1a", "Ev", flags=_G(InsnGroup.MODRM_1A)),
    ]
    # 0x90
    + [_op("nop")]
    + [_op("xchg", r) for r in _GP_REGS[1:]]
    + [
        _op("cbw"),
        _op("cwd"),
        _op("call", "Ap"),
        _op("wait"),
        _op("pushf"),
        _op("popf"),
        _op("sahf"),
        _op("lahf"),
    ]
    # 0xa0
    + [
        _op("mov", "AL", "Ob"),
        _op("mov", "AX", "Ov"),
        _op("mov", "Ob", "AL"),
        _op("mov", "Ov", "AX"),
        _op("movsb"),
        _op("movsw"),
        _op("cmpsb"),
        _op("cmpsw"),
        _op("test", "AL", "Ib"),
        _op("test", "AX", "Iz"),
        _op("stosb", "AL"),
        _op("stosw", "AX"),
        _op("lodsb", "AL"),
        _op("lodsw", "AX"),
        _op("scasb", "AL"),
        _op("scasw", "AX"),
    ]
    # 0xb0
    + [_op("mov", r, "Ib") for r in _BYTE_REGS]
    + [_op("mov", r, "Iv") for r in _GP_REGS]
    # 0xc0
    + [
        _op("modrm_group_2", "Eb", "Ib", flags=_G(InsnGroup.MODRM_2)),
        _op("modrm_group_2", "Ev", "Ib", flags=_G(InsnGroup.MODRM_2)),
        _op("ret", "Iw"),
        _op("ret"),
        _op("les", "Gz", "Mp"),
        _op("lds", "Gz", "Mp"),
        _op("modrm_group_11", "Eb", "Ib", flags=_G(InsnGroup.MODRM_11)),
        _op("modrm_group_11", "Ev", "Iz", flags=_G(InsnGroup.MODRM_11)),
        _op("enter", "Iw", "Ib"),
        _op("leave"),
        _op("ret", "Iw"),
        _op("ret"),
        _op("int3"),
        _op("int", "Ib"),
        _op("into"),
        _op("iret"),
    ]
    # 0xd0
    + [
        _op("modrm_group_2", "Eb", "1b", flags=_G(InsnGroup.MODRM_2)),
        _op("modrm_group_2", "Ev", "1b", flags=_G(InsnGroup.MODRM_2)),
        _op("modrm_group_2", "Eb", "CL", flags=_G(InsnGroup.MODRM_2)),
        _op("modrm_group_2", "Ev", "CL", flags=_G(InsnGroup.MODRM_2)),
        _op("aam"),
        _op("aad"),
        _op("salc"),
        _op("xlat"),
    ]
    + _same("bad", 8)
    # 0xe0
    + [
        _op("loopnz", "Jb"),
        _op("loopz", "Jb"),
        _op("loop", "Jb"),
        _op("jcxz", "Jb"),
        _op("in", "AL", "Ib"),
        _op("in", "AX", "Ib"),
        _op("out", "Ib", "AL"),
        _op("out", "Ib", "AX"),
        _op("call", "Jz", flags=_D64),
        _op("jmp", "Jz", flags=_D64),
        _op("jmp", "Ap"),
        _op("jmp", "Jb"),
        _op("in", "AL", "DX"),
        _op("in", "AX", "DX"),
        _op("out", "DX", "AL"),
        _op("out", "DX", "AX"),
    ]
    # 0xf0
    + [
        _op("lock"),
        _op("int1"),
        _op("repne"),
        _op("rep"),
        _op("hlt"),
        _op("cmc"),
        _op("modrm_group_3", flags=_G(InsnGroup.MODRM_3)),
        _op("modrm_group_3", flags=_G(InsnGroup.MODRM_3)),
        _op("clc"),
        _op("stc"),
        _op("cli"),
        _op("sti"),
        _op("cld"),
        _op("std"),
        _op("modrm_group_4", "Eb", flags=_G(InsnGroup.MODRM_4)),
        _op("modrm_group_5", flags=_G(InsnGroup.MODRM_5)),
    ]
)

_S = {g: _G(g) for g in InsnGroup}

_TWO_BYTE: tuple[InsnSpec, ...] = tuple(
    # 0x00
    [
        _op("modrm_group_6", flags=_G(InsnGroup.MODRM_6)),
        _op("modrm_group_7", flags=_G(InsnGroup.MODRM_7)),
        _op("lar", "Gv", "Ew"),
        _op("lsl", "Gv", "Ew"),
        _op("bad"),
        _op("syscall"),
        _op("clts"),
        _op("sysret"),
        _op("invd"),
        _op("wbinvd"),
        _op("bad"),
        _op("ud2"),
        _op("bad"),
        _op("modrm_group_p", flags=_G(InsnGroup.MODRM_P)),
        _op("femms"),
        _op("escape_3dnow"),
    ]
    # 0x10
    + [
        _op("movups", "Gx", "Ex", flags=_S[InsnGroup.SSE_10]),
        _op("movups", "Ex", "Gx", flags=_S[InsnGroup.SSE_10]),
        _op("movlps", "Ex", "Gx", flags=_S[InsnGroup.SSE_10]),
        _op("movlps", "Gx", "Ex", flags=_S[InsnGroup.SSE_10]),
        _op("unpcklps", "Gx", "Ex", flags=_S[InsnGroup.SSE_10]),
        _op("unpckhps", "Gx", "Ex", flags=_S[InsnGroup.SSE_10]),
        _op("movhps", "Ex", "Gx", flags=_S[InsnGroup.SSE_10]),
        _op("movhps", "Gx", "Ex", flags=_S[InsnGroup.SSE_10]),
        _op("modrm_group_16", flags=_G(InsnGroup.MODRM_16)),
    ]
    + _same("nop", 7)
    # 0x20
    + [
        _op("mov", "Rv", "Cv"),
        _op("mov", "Rv", "Dv"),
        _op("mov", "Cv", "Rv"),
        _op("mov", "Dv", "Rv"),
    ]
    + _same("bad", 4)
    + [
        _op("movaps", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
        _op("movaps", "Ex", "Gx", flags=_S[InsnGroup.SSE_28]),
        _op("cvtpi2ps", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
        _op("movntps", "Mx", "Gx", flags=_S[InsnGroup.SSE_28]),
        _op("cvttps2pi", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
        _op("cvtps2pi", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
        _op("ucomiss", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
        _op("comiss", "Gx", "Ex", flags=_S[InsnGroup.SSE_28]),
    ]
    # 0x30
    + _named("wrmsr rdtsc rdmsr rdpmc sysenter sysexit")
    + _same("bad", 10)
    # 0x40
    + [_op("cmov" + c, "Gv", "Ev") for c in _CONDITIONS]
    # 0x50
    + [_op("movmskps", "Gd", "Rx", flags=_S[InsnGroup.SSE_50])]
    + _named("sqrtps rsqrtps rcpps andps andnps orps xorps", "Gx", "Ex", flags=_S[InsnGroup.SSE_50])
    + _named("addps mulps cvtps2pd cvtdq2ps subps minps divps maxps", "Gx", "Ex", flags=_S[InsnGroup.SSE_58])
    # 0x60
    + _named(
        "punpcklbw punpcklwd punpckldq packsswb pcmpgtb pcmpgtw pcmpgtd packuswb",
        "Gm",
        "Em",
        flags=_S[InsnGroup.SSE_60],
    )
    + _named("punpckhbw punpckhwd punpckhdq packssdw", "Gm", "Em", flags=_S[InsnGroup.SSE_68])
    + _same("bad", 2, flags=_S[InsnGroup.SSE_68])
    + _named("movd movq", "Gm", "Em", flags=_S[InsnGroup.SSE_68])
    # 0x70
    + [
        _op("pshufw", "Gm", "Em", "Ib", flags=_S[InsnGroup.SSE_70]),
        _op("modrm_group_12", flags=_G(InsnGroup.MODRM_12)),
        _op("modrm_group_13", flags=_G(InsnGroup.MODRM_13)),
        _op("modrm_group_14", flags=_G(InsnGroup.MODRM_14)),
    ]
    + _named("pcmpeqb pcmpeqw pcmpeqd", "Gm", "Em", flags=_S[InsnGroup.SSE_70])
    + [_op("emms", flags=_S[InsnGroup.SSE_70])]
    + _same("bad", 6, flags=_S[InsnGroup.SSE_78])
    + _named("movd movq", "Em", "Gm", flags=_S[InsnGroup.SSE_78])
    # 0x80
    + [_op("jmp" + c, "Jz") for c in _CONDITIONS]
    # 0x90
    + [_op("set" + c, "Eb") for c in _CONDITIONS]
    # 0xa0
    + [
        _op("push_fs"),
        _op("pop_fs"),
        _op("cpuid"),
        _op("bt", "Ev", "Gv"),
        _op("shld", "Ev", "Gv", "Ib"),
        _op("shld", "Ev", "Gv", "CL"),
        _op("bad"),
        _op("bad"),
        _op("push_gs"),
        _op("pop_gs"),
        _op("rsm"),
        _op("bts", "Ev", "Gv"),
        _op("shrd", "Ev", "Gv", "Ib"),
        _op("shrd", "Ev", "Gv", "CL"),
        _op("modrm_group_15", flags=_G(InsnGroup.MODRM_15)),
        _op("imul", "Gv", "Ev"),
    ]
    # 0xb0
    + [
        _op("cmpxchg", "Eb", "Gb"),
        _op("cmpxchg", "Ev", "Gv"),
        _op("lss", "Gz", "Mp"),
        _op("btr", "Ev", "Gv"),
        _op("lfs", "Gz", "Mp"),
        _op("lgs", "Gz", "Mp"),
        _op("movzbl", "Gv", "Eb"),
        _op("movzwl", "Gv", "Ew"),
        _op("bad"),
        _op("modrm_group_10", flags=_G(InsnGroup.MODRM_10)),
        _op("modrm_group_8", "Ev", "Ib", flags=_G(InsnGroup.MODRM_8)),
        _op("btc", "Ev", "Gv"),
        _op("bsf", "Gv", "Ev"),
        _op("bsr", "Gv", "Ev"),
        _op("movsx", "Gv", "Eb"),
        _op("movsx", "Gv", "Ew"),
    ]
    # 0xc0
    + [
        _op("xadd", "Eb", "Gb"),
        _op("xadd", "Ev", "Gv"),
        _op("cmpps", "Gx", "Ex", "Ib", flags=_S[InsnGroup.SSE_C0]),
        _op("movnti", "Mv", "Gv"),
        _op("pinsrw", "Gm", "Ew", "Ib", flags=_S[InsnGroup.SSE_C0]),
        _op("pextrw", "Gd", "Rm", "Ib", flags=_S[InsnGroup.SSE_C0]),
        _op("shufps", "Gx", "Ex", "Ib", flags=_S[InsnGroup.SSE_C0]),
        _op("modrm_group_9", "Mx", flags=_G(InsnGroup.MODRM_9)),
    ]
    + [_op("bswap", r) for r in _GP_REGS]
    # 0xd0
    + [_op("bad", flags=_S[InsnGroup.SSE_D0])]
    + _named("psrlw psrld psrlq paddq pmullw", "Gm", "Em", flags=_S[InsnGroup.SSE_D0])
    + [
        _op("bad", flags=_S[InsnGroup.SSE_D0]),
        _op("pmovmskb", "Gd", "Rm", flags=_S[InsnGroup.SSE_D0]),
    ]
    + _named("psubusb psubusw pminub pand paddusb paddusw pmaxub pandn", "Gm", "Em", flags=_S[InsnGroup.SSE_D8])
    # 0xe0
    + _named("pavgb psraw psrad pavgw pmulhuw pmulhw bad", "Gm", "Em", flags=_S[InsnGroup.SSE_E0])
    + [_op("movntq", "Mm", "Gm", flags=_S[InsnGroup.SSE_E0])]
    + _named("psubsb psubsw pminsw por paddsb paddsw pmaxsw pxor", "Gm", "Em", flags=_S[InsnGroup.SSE_E8])
    # 0xf0
    + [_op("bad", flags=_S[InsnGroup.SSE_F0])]
    + _named("psllw pslld psllq pmuludq pmaddwd psadbw maskmovq", "Gm", "Em", flags=_S[InsnGroup.SSE_F0])
    + _named("psubb psubw psubd psubq paddb paddw paddd", "Gm", "Em", flags=_S[InsnGroup.SSE_F8])
    + [_op("bad", flags=_S[InsnGroup.SSE_F8])]
)

_BAD8 = _same("bad", 8)

_MODRM_REG_GROUPS: dict[int, tuple[InsnSpec, ...]] = {
    InsnGroup.MODRM_1: tuple(_named("add or adc sbb and sub xor cmp")),
    InsnGroup.MODRM_1A: tuple([_op("pop", flags=_D64)] + _same("bad", 7)),
    InsnGroup.MODRM_2: tuple(_named("rol ror rcl rcr shl shr sal sar")),
    InsnGroup.MODRM_3: tuple(_named("test test not neg mul imul div idiv")),
    InsnGroup.MODRM_4: tuple(_named("inc dec") + _same("bad", 6)),
    InsnGroup.MODRM_5: (
        _op("inc", "Ev"),
        _op("dec", "Ev"),
        _op("call", "Ev", flags=_D64),
        _op("call", "Mp"),
        _op("jmp", "Ev", flags=_D64),
        _op("jmp", "Mp"),
        _op("push", "Ev", flags=_D64),
        _op("bad"),
    ),
    InsnGroup.MODRM_6: tuple(_named("sldt str lldt ltr verr verw", "Ev") + _same("bad", 2)),
    InsnGroup.MODRM_7: (
        _op("sgdt", "Mv"),
        _op("sidt", "Mv"),
        _op("lgdt", "Mv"),
        _op("lidt", "Mv"),
        _op("smsw", "Ev"),
        _op("bad"),
        _op("lmsw", "Ew"),
        _op("invlpg", "Mv"),
    ),
    InsnGroup.MODRM_8: tuple(_same("bad", 4) + _named("bt bts btr btc", "Ev", "Ib")),
    InsnGroup.MODRM_9: tuple([_op("bad"), _op("cmpxchg", "Mx")] + _same("bad", 6)),
    InsnGroup.MODRM_10: tuple(_BAD8),
    InsnGroup.MODRM_11: tuple([_op("mov")] + _same("bad", 7)),
    InsnGroup.MODRM_12: (
        _op("bad"),
        _op("bad"),
        _op("psrlw", "Rm", "Ib"),
        _op("bad"),
        _op("psraw", "Rm", "Ib"),
        _op("bad"),
        _op("psllw", "Rm", "Ib"),
        _op("bad"),
    ),
    InsnGroup.MODRM_13: (
        _op("bad"),
        _op("bad"),
        _op("psrld", "Rm", "Ib"),
        _op("bad"),
        _op("psrad", "Rm", "Ib"),
        _op("bad"),
        _op("pslld", "Rm", "Ib"),
        _op("bad"),
    ),
    InsnGroup.MODRM_14: (
        _op("bad"),
        _op("bad"),
        _op("psrlq", "Rm", "Ib"),
        _op("bad"),
        _op("bad"),
        _op("bad"),
        _op("psllq", "Rm", "Ib"),
        _op("bad"),
    ),
    InsnGroup.MODRM_15: (
        _op("fxsave", "Mv"),
        _op("fxrstor", "Mv"),
        _op("ldmxcsr", "Mv"),
        _op("stmxcsr", "Mv"),
        _op("bad"),
        _op("lfence", "Mv"),
        _op("mfence", "Mv"),
        _op("sfence", "Mv"),
    ),
    InsnGroup.MODRM_16: tuple(
        _named("prefetch_nta prefetch_t0 prefetch_t1 prefetch_t2", "Mv") + _same("prefetch_nop", 4, "Mv")
    ),
    InsnGroup.MODRM_P: tuple(
        _named("prefetch_exclusive prefetch_modified prefetch_nop prefetch_modified", "Mv")
        + _same("prefetch_nop", 4, "Mv")
    ),
}


def _check_tables() -> None:
    if len(_ONE_BYTE) != 256 or len(_TWO_BYTE) != 256:
        raise RuntimeError("opcode tables must have 256 entries")
    if any(len(entries) != 8 for entries in _MODRM_REG_GROUPS.values()):
        raise RuntimeError("ModR/M groups must have 8 entries")


_check_tables()


def _check_opcode(opcode: int) -> None:
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"opcode {opcode} out of range")


def one_byte_spec(opcode: int) -> InsnSpec:
    """Spec of a one-byte opcode."""
    _check_opcode(opcode)
    return _ONE_BYTE[opcode]


def two_byte_spec(opcode: int) -> InsnSpec:
    """Spec of the opcode byte that follows a 0x0F escape."""
    _check_opcode(opcode)
    return _TWO_BYTE[opcode]


def modrm_reg_group_spec(group: int, reg: int) -> InsnSpec:
    """Spec selected by the ModR/M reg field ``reg`` within extension ``group``."""
    entries = _MODRM_REG_GROUPS.get(group)
    if entries is None:
        raise ValueError(f"{group} is not a ModR/M reg group")
    if not 0 <= reg <= 7:
        raise ValueError(f"ModR/M reg field {reg} out of range")
    return entries[reg]