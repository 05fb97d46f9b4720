"""A small T32 assembler with literal-pool data labels."""

from __future__ import annotations

from dataclasses import dataclass, field

from .bitops import bits, set_bit, set_bits, sign_extend

__all__ = ["PC", "ThumbLabel", "ThumbAssembler"]

PC = 15
THUMB_PC_OFFSET = 4
THUMB1_INSN_LEN = 2
THUMB2_INSN_LEN = 4

_U16 = 0xFFFF
_U32 = 0xFFFFFFFF


@dataclass
class ThumbLabel:
    """A 32-bit literal-pool entry reached by literal LDR.W instructions."""

    data: int = 0
    is_pc_register: bool = False
    position: int | None = None
    references: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.data &= _U32

    @property
    def is_bound(self) -> bool:
        return self.position is not None

    def link_to(self, pc_offset: int) -> None:
        """Record a literal load at ``pc_offset`` to be patched when the label is bound."""
        self.references.append(pc_offset)

    def bind_to(self, position: int) -> None:
        """Fix the label at buffer offset ``position``."""
        self.position = position


def _check_register(reg: int) -> None:
    if not 0 <= reg <= 15:
        raise ValueError(f"invalid register r{reg}")


class ThumbAssembler:
    """Emits T32 code into a byte buffer based at ``realized_address``."""

    def __init__(self, realized_address: int = 0) -> None:
        self.realized_address = realized_address
        self.buffer = bytearray()
        self.data_labels: list[ThumbLabel] = []

    @property
    def code(self) -> bytes:
        return bytes(self.buffer)

    @property
    def pc_offset(self) -> int:
        return len(self.buffer)

    # --- raw emission ---

    def emit_int16(self, value: int) -> None:
        self.buffer += (value & _U16).to_bytes(2, "little")

    def emit_address(self, value: int) -> None:
        self.buffer += (value & _U32).to_bytes(4, "little")

    def _load16(self, offset: int) -> int:
        return int.from_bytes(self.buffer[offset : offset + 2], "little")

    def _store16(self, offset: int, value: int) -> None:
        self.buffer[offset : offset + 2] = (value & _U16).to_bytes(2, "little")

    # --- 16-bit instructions ---

    def t1_nop(self) -> None:
        self.emit_int16(0xBF00)

    def t1_b(self, imm: int) -> None:
        """Unconditional 16-bit branch by ``imm`` bytes."""
        if not -(1 << 11) <= imm < (1 << 11):
            raise ValueError(f"branch offset {imm} out of range")
        if imm % 2:
            raise ValueError(f"branch offset {imm} is not halfword aligned")
        self.emit_int16(0xE000 | bits(imm >> 1, 0, 10))

    # --- 32-bit instructions ---

    def t2_b(self, imm: int) -> None:
        self._emit_branch(imm, link=False)

    def t2_bl(self, imm: int) -> None:
        self._emit_branch(imm, link=True)

    def _emit_branch(self, imm: int, link: bool) -> None:
        imm = sign_extend(imm, 32)
        if not -(1 << 24) <= imm < (1 << 24):
            raise ValueError(f"branch offset {imm} out of range")
        if imm % 2:
            raise ValueError(f"branch offset {imm} is not halfword aligned")
        operand = imm >> 1
        sign = (imm >> 31) & 1
        i1 = (operand >> 22) & 1
        i2 = (operand >> 21) & 1
        imm10 = (operand >> 11) & 0x3FF
        imm11 = operand & 0x7FF
        j1 = int(not (i1 ^ sign))
        j2 = int(not (i2 ^ sign))
        self.emit_int16(0xF000 | (sign << 10) | imm10)
        second = 0x9000 | (j1 << 13) | (j2 << 11) | imm11
        if link:
            second |= 1 << 14
        self.emit_int16(second)

    def t2_ldr(self, rt: int, rn: int, offset: int = 0) -> None:
        """LDR.W ``rt``, [``rn``, #``offset``]; a PC base gives a literal load."""
        _check_register(rt)
        _check_register(rn)
        if rn == PC:
            add = offset > 0
            imm12 = offset if add else -offset
            if imm12 > 0xFFF:
                raise ValueError(f"literal offset {offset} out of range")
            self.emit_int16(0xF85F | (0x80 if add else 0))
            self.emit_int16((rt << 12) | imm12)
        elif offset >= 0:
            if offset > 0xFFF:
                raise ValueError(f"load offset {offset} out of range")
            self.emit_int16(0xF8D0 | rn)
            self.emit_int16((rt << 12) | offset)
        else:
            if -offset > 0xFF:
                raise ValueError(f"load offset {offset} out of range")
            self.emit_int16(0xF850 | rn)
            self.emit_int16(0x0C00 | (rt << 12) | -offset)

    def t2_ldr_label(self, rt: int, label: ThumbLabel) -> None:
        """Literal load of ``label``'s data, patched later if the label is unbound."""
        if label.is_bound:
            self.t2_ldr(rt, PC, label.position - len(self.buffer))
        else:
            label.link_to(len(self.buffer))
            self.t2_ldr(rt, PC, 0)

    def align_thumb_nop(self) -> None:
        """Pad with a NOP so the next instruction is word aligned."""
        if (len(self.buffer) + self.realized_address) % THUMB2_INSN_LEN:
            self.t1_nop()

    # --- labels ---

    def bind_label(self, label: ThumbLabel) -> None:
        """Bind ``label`` at the current offset and patch loads that refer to it."""
        label.bind_to(len(self.buffer))
        for ref in label.references:
            pc = ref + THUMB_PC_OFFSET
            if pc % 4:
                raise ValueError(f"literal load at offset {ref} is not word aligned")
            first = self._load16(ref)
            second = self._load16(ref + THUMB1_INSN_LEN)
            imm12 = label.position - pc
            if imm12 > 0:
                first = set_bit(first, 7, 1)
            else:
                first = set_bit(first, 7, 0)
                imm12 = -imm12
            if imm12 > 0xFFF:
                raise ValueError(f"literal at offset {label.position} out of reach")
            second = set_bits(second, 0, 11, imm12)
            self._store16(ref, first)
            self._store16(ref + THUMB1_INSN_LEN, second)

    def append_reloc_label(self, label: ThumbLabel) -> None:
        self.data_labels.append(label)

    def reloc_data_labels(self) -> None:
        """Emit every data label's word at the end of the code, binding it there."""
        for label in self.data_labels:
            self.bind_label(label)
            self.emit_address(label.data)

    def reloc_label_fixup(self, offset_map: dict[int, int]) -> None:
        """Replace label data that names an original offset with its relocated offset."""
        for label in self.data_labels:
            key = sign_extend(label.data, 32)
            if key in offset_map:
                label.data = offset_map[key] & _U32