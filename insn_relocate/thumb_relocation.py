"""Relocation of T32 (Thumb) code to a new address.

Each PC-relative instruction is rewritten so that it reaches the same
absolute target from wherever the relocated copy is placed. Targets are
materialised through literal-pool words loaded by LDR.W instructions.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .arm_decode import is_thumb2
from .bitops import bit, bits, set_bit, set_bits, sign_extend
from .thumb_assembler import PC, THUMB_PC_OFFSET, ThumbAssembler, ThumbLabel

__all__ = ["ThumbRelocation", "relocate_thumb"]

_U32 = 0xFFFFFFFF
_THUMB_ADDRESS_FLAG = 1
_VOLATILE_REGISTER = 12
_B_COND_T1 = 0xD000


@dataclass(frozen=True)
class ThumbRelocation:
    """The outcome of relocating a run of Thumb instructions.

    ``origin_size`` is the number of original bytes that were relocated;
    it is shorter than the input when an instruction switched to the ARM
    instruction set. ``offset_map`` maps original offsets to offsets in
    ``code``.
    """

    code: bytes
    origin_address: int
    origin_size: int
    offset_map: dict[int, int] = field(default_factory=dict)
    switched_to_arm: bool = False

    @property
    def resume_address(self) -> int:
        """Address of the first original instruction that was not relocated."""
        return (self.origin_address + self.origin_size) & _U32


def _align_floor(value: int, alignment: int) -> int:
    return value - value % alignment


class _ThumbRelocator:
    def __init__(self, code: bytes, address: int) -> None:
        self.code = bytes(code)
        self.src = address & ~_THUMB_ADDRESS_FLAG & _U32
        self.cursor = 0
        self.asm = ThumbAssembler(0)
        self.offset_map: dict[int, int] = {}
        self.state_changes: set[int] = set()

    # --- helpers ---

    def cur_src(self) -> int:
        """The PC value seen by the instruction under the cursor."""
        return (self.src + self.cursor + THUMB_PC_OFFSET) & _U32

    def _label(self, data: int, is_pc_register: bool = False) -> ThumbLabel:
        label = ThumbLabel(data & _U32, is_pc_register)
        self.asm.append_reloc_label(label)
        return label

    def _halfword(self, offset: int) -> int:
        if offset + 2 > len(self.code):
            raise ValueError(f"truncated instruction at offset {offset}")
        return int.from_bytes(self.code[offset : offset + 2], "little")

    def _emit_b_cond_skip(self, cond: int) -> None:
        # b<cond> over the following nop and branch to the literal load
        self.asm.emit_int16(set_bits(_B_COND_T1, 8, 11, cond) | (4 >> 1))
        self.asm.t1_nop()

    # --- 16-bit instructions ---

    def thumb1(self, insn: int) -> None:
        asm = self.asm
        asm.align_thumb_nop()

        if bits(insn, 10, 15) == 0b010001:
            op = bits(insn, 8, 9)
            rm = bits(insn, 3, 6)
            if op != 0b11 and rm == PC:
                # add/sub/cmp/mov with PC as source: read PC from a scratch register
                rewritten = set_bits(insn, 3, 6, _VOLATILE_REGISTER)
                label = self._label(self.cur_src())
                asm.t2_ldr_label(_VOLATILE_REGISTER, label)
                asm.emit_int16(rewritten)
                return
            if op == 0b11 and rm == PC:
                target = self.cur_src()
                label = self._label(target, True)
                if bit(insn, 7):  # BLX pc
                    asm.t2_bl(4)
                    asm.t2_b(4)
                asm.t2_ldr_label(PC, label)
                self.state_changes.add(target)
                return

        elif (insn & 0xF800) == 0x4800:  # LDR (literal)
            target = _align_floor(self.cur_src() + (bits(insn, 0, 7) << 2), 4)
            rt = bits(insn, 8, 10)
            label = self._label(target)
            asm.t2_ldr_label(rt, label)
            asm.t2_ldr(rt, rt, 0)
            return

        elif (insn & 0xF800) == 0xA000:  # ADR
            rd = bits(insn, 8, 10)
            label = self._label(self.cur_src() + (bits(insn, 0, 7) << 2))
            asm.t2_ldr_label(rd, label)
            return

        elif (insn & 0xF000) == 0xD000:  # B<cond>
            cond = bits(insn, 8, 11)
            if cond >= 0b1110:
                raise ValueError(f"unsupported conditional instruction {insn:#06x}")
            imm = sign_extend(bits(insn, 0, 7) << 1, 8 + 1)
            label = self._label((self.cur_src() + imm) | 1, True)
            self._emit_b_cond_skip(cond)
            asm.t2_b(4)
            asm.t2_ldr_label(PC, label)
            return

        elif (insn & 0xF500) == 0xB100:  # CBZ, CBNZ
            imm = (bit(insn, 9) << 6) | (bits(insn, 3, 7) << 1)
            label = self._label(self.cur_src() + imm + 1, True)
            rewritten = set_bits(insn, 3, 7, bits(0x4, 1, 5))
            rewritten = set_bit(rewritten, 9, bit(0x4, 6))
            asm.emit_int16(rewritten)
            asm.t1_nop()
            asm.t2_b(4)
            asm.t2_ldr_label(PC, label)
            return

        elif (insn & 0xF800) == 0xE000:  # B
            imm = sign_extend(bits(insn, 0, 10) << 1, 11 + 1)
            label = self._label(self.cur_src() + imm + 1, True)
            asm.t2_ldr_label(PC, label)
            return

        asm.emit_int16(insn)

    # --- 32-bit instructions ---

    def thumb2(self, insn1: int, insn2: int) -> None:
        asm = self.asm
        asm.align_thumb_nop()

        if (insn1 & 0xF800) == 0xF000 and (insn2 & 0x8000) == 0x8000:
            op1 = bits(insn1, 6, 9)
            op3 = bits(insn2, 12, 14)
            s = bit(insn1, 10)
            j1 = bit(insn2, 13)
            j2 = bit(insn2, 11)
            i1 = int(not (j1 ^ s))
            i2 = int(not (j2 ^ s))

            if (op1 & 0b1110) != 0b1110 and (op3 & 0b101) == 0b000:  # B<cond>.W
                imm = sign_extend(
                    (s << 20) | (j2 << 19) | (j1 << 18) | (bits(insn1, 0, 5) << 12)
                    | (bits(insn2, 0, 10) << 1),
                    21,
                )
                target = (self.cur_src() + imm) | 1
                self._emit_b_cond_skip(bits(insn1, 6, 9))
                asm.t2_b(8)
                asm.t2_ldr(PC, PC, 0)
                asm.emit_address(target)
                return

            if (op3 & 0b101) in (0b001, 0b101):  # B.W, BL
                imm = sign_extend(
                    (s << 24) | (i1 << 23) | (i2 << 22) | (bits(insn1, 0, 9) << 12)
                    | (bits(insn2, 0, 10) << 1),
                    25,
                )
                target = (self.cur_src() + imm) | 1
                if op3 & 0b100:
                    asm.t2_bl(4)
                    asm.t2_b(8)
                asm.t2_ldr(PC, PC, 0)
                asm.emit_address(target)
                return

            if (op3 & 0b101) == 0b100:  # BLX to ARM
                imm = sign_extend(
                    (s << 24) | (i1 << 23) | (i2 << 22) | (bits(insn1, 0, 9) << 12)
                    | (bits(insn2, 1, 10) << 2),
                    25,
                )
                target = _align_floor(self.cur_src(), 4) + imm
                asm.t2_bl(4)
                asm.t2_b(8)
                asm.t2_ldr(PC, PC, 0)
                asm.emit_address(target)
                return

        elif (insn1 & 0xFA10) == 0xF200 and (insn2 & 0x8000) == 0:
            o1 = bit(insn1, 7)
            o2 = bit(insn1, 5)
            simple = bit(insn1, 8) == 0 and (bits(insn2, 5, 6) & 0b10) == 0
            if simple and o1 == o2 and bits(insn1, 0, 3) == 0b1111:  # ADR.W
                imm = (bit(insn1, 10) << 11) | (bits(insn2, 12, 14) << 8) | bits(insn2, 0, 7)
                target = self.cur_src() - imm if o1 else self.cur_src() + imm
                asm.t2_ldr(bits(insn2, 8, 11), PC, 4)
                asm.t2_b(4)
                asm.emit_address(target)
                return

        elif (insn1 & 0xFF7F) == 0xF85F:  # LDR.W (literal)
            imm12 = bits(insn2, 0, 11)
            target = self.cur_src() + imm12 if bit(insn1, 7) else self.cur_src() - imm12
            rt = bits(insn2, 12, 15)
            asm.t2_ldr(rt, PC, 8)
            asm.t2_ldr(rt, rt, 0)
            asm.t2_b(4)
            asm.emit_address(target)
            return

        asm.emit_int16(insn1)
        asm.emit_int16(insn2)

    # --- driver ---

    def run(self) -> bool:
        """Relocate until the end or an instruction-set switch; True on a switch."""
        while self.cursor < len(self.code):
            self.offset_map[self.cursor] = self.asm.pc_offset
            self.asm.t1_nop()
            first = self._halfword(self.cursor)
            if is_thumb2(first):
                second = self._halfword(self.cursor + 2)
                self.thumb2(first, second)
                self.cursor += 4
            else:
                self.thumb1(first)
                self.cursor += 2
            if (self.src + self.cursor) & _U32 in self.state_changes:
                return True
        return False


def relocate_thumb(code: bytes, address: int, branch: bool = True) -> ThumbRelocation:
    """Relocate the Thumb instructions in ``code``, originally at ``address``.

    With ``branch`` the relocated code ends with a jump back to the first
    original instruction that was not relocated. Raises ValueError on
    truncated or unsupported instructions.
    """
    relocator = _ThumbRelocator(code, address)
    switched = relocator.run()
    asm = relocator.asm

    resume = (relocator.src + relocator.cursor) & _U32
    if branch:
        asm.align_thumb_nop()
        asm.t2_ldr(PC, PC, 0)
        asm.emit_address(resume if switched else resume | _THUMB_ADDRESS_FLAG)

    asm.reloc_label_fixup(relocator.offset_map)
    asm.reloc_data_labels()

    return ThumbRelocation(
        code=asm.code,
        origin_address=relocator.src,
        origin_size=relocator.cursor,
        offset_map=dict(relocator.offset_map),
        switched_to_arm=switched,
    )