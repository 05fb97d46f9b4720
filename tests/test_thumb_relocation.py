import pytest

from insn_relocate.thumb_assembler import ThumbAssembler
from insn_relocate.thumb_relocation import ThumbRelocation, relocate_thumb

ADDR = 0x10000
NOP = (0xBF00).to_bytes(2, "little")


def _h(code, offset):
    return int.from_bytes(code[offset : offset + 2], "little")


def _w(code, offset):
    return int.from_bytes(code[offset : offset + 4], "little")


def _halfwords(*values):
    return b"".join(v.to_bytes(2, "little") for v in values)


def _literal_target(code, offset):
    """Word loaded by the LDR.W literal instruction at ``offset``."""
    first, second = _h(code, offset), _h(code, offset + 2)
    assert first & 0xFF7F == 0xF85F
    imm = second & 0xFFF
    base = (offset + 4) & ~3
    where = base + imm if first & 0x80 else base - imm
    return _w(code, where)


def test_plain_instruction_is_copied():
    code = _halfwords(0x4608)  # mov r0, r1
    result = relocate_thumb(code, ADDR, branch=False)
    assert isinstance(result, ThumbRelocation)
    assert result.code[:4] == NOP + NOP
    assert result.code[4:6] == code
    assert result.origin_size == 2
    assert result.switched_to_arm is False


def test_branch_back_to_rest():
    code = _halfwords(0x4608)
    result = relocate_thumb(code, ADDR, branch=True)
    tail = len(result.code) - 8
    assert _h(result.code, tail) == 0xF85F
    assert _w(result.code, len(result.code) - 4) == ADDR + len(code) + 1
    assert result.resume_address == ADDR + len(code)


def test_thumb_flag_in_address_is_ignored():
    code = _halfwords(0x4608)
    assert relocate_thumb(code, ADDR | 1).code == relocate_thumb(code, ADDR).code


def test_offset_map_tracks_each_instruction():
    code = _halfwords(0x4608, 0x4611)
    result = relocate_thumb(code, ADDR, branch=False)
    assert sorted(result.offset_map) == [0, 2]
    assert result.offset_map[0] == 0
    assert result.offset_map[2] > result.offset_map[0]
    assert result.code[result.offset_map[2] :].startswith(NOP)


def test_thumb1_unconditional_branch():
    code = _halfwords(0xE004)  # b +8
    result = relocate_thumb(code, ADDR, branch=False)
    assert _literal_target(result.code, 4) == (ADDR + 4 + 8) | 1


def test_thumb1_conditional_branch():
    code = _halfwords(0xD002)  # beq +4
    result = relocate_thumb(code, ADDR, branch=False)
    assert _h(result.code, 4) == 0xD002
    assert result.code[6:8] == NOP
    assert _literal_target(result.code, 12) == (ADDR + 4 + 4) | 1


def test_thumb1_conditional_branch_rejects_svc():
    with pytest.raises(ValueError):
        relocate_thumb(_halfwords(0xDF00), ADDR)


def test_thumb1_cbz():
    code = _halfwords(0xB110)  # cbz r0, +4
    result = relocate_thumb(code, ADDR, branch=False)
    assert _h(result.code, 4) & 0xF500 == 0xB100
    assert _literal_target(result.code, 12) == ADDR + 4 + 4 + 1


def test_thumb1_ldr_literal():
    code = _halfwords(0x4801)  # ldr r0, [pc, #4]
    result = relocate_thumb(code, ADDR, branch=False)
    assert _literal_target(result.code, 4) == ADDR + 4 + 4
    assert _h(result.code, 8) == 0xF8D0  # ldr.w r0, [r0]


def test_thumb1_add_pc_uses_scratch_register():
    code = _halfwords(0x4478)  # add r0, pc
    result = relocate_thumb(code, ADDR, branch=False)
    assert _h(result.code, 6) >> 12 == 12
    assert _literal_target(result.code, 4) == ADDR + 4
    assert (_h(result.code, 8) >> 3) & 0xF == 12


def test_thumb2_branch():
    asm = ThumbAssembler()
    asm.t2_b(0x100)
    result = relocate_thumb(asm.code, ADDR, branch=False)
    assert _literal_target(result.code, 4) == (ADDR + 4 + 0x100) | 1
    assert result.origin_size == 4


def test_thumb2_branch_with_link():
    asm = ThumbAssembler()
    asm.t2_bl(-0x200)
    result = relocate_thumb(asm.code, ADDR, branch=False)
    assert _h(result.code, 6) & 0xD000 == 0xD000
    assert _literal_target(result.code, 12) == (ADDR + 4 - 0x200) | 1


def test_thumb2_conditional_branch():
    code = _halfwords(0xF000, 0x8020)  # beq.w +0x40
    result = relocate_thumb(code, ADDR, branch=False)
    assert _h(result.code, 4) == 0xD002
    assert _literal_target(result.code, 12) == (ADDR + 4 + 0x40) | 1


def test_thumb2_ldr_literal():
    code = _halfwords(0xF8DF, 0x1008)  # ldr.w r1, [pc, #8]
    result = relocate_thumb(code, ADDR, branch=False)
    assert _literal_target(result.code, 4) == ADDR + 4 + 8
    assert _h(result.code, 8) == 0xF8D1


def test_truncated_thumb2_raises():
    with pytest.raises(ValueError):
        relocate_thumb(_halfwords(0xF000), ADDR)


def test_odd_length_raises():
    with pytest.raises(ValueError):
        relocate_thumb(_halfwords(0x4608) + b"\x00", ADDR)