import pytest

from insn_relocate.thumb_assembler import PC, ThumbAssembler, ThumbLabel


def halfwords(code):
    return [int.from_bytes(code[i : i + 2], "little") for i in range(0, len(code), 2)]


def test_nop_encoding():
    asm = ThumbAssembler()
    asm.t1_nop()
    assert asm.code == bytes([0x00, 0xBF])


def test_emit_address_little_endian():
    asm = ThumbAssembler()
    asm.emit_address(0x11223344)
    assert asm.code == bytes([0x44, 0x33, 0x22, 0x11])


def test_emit_int16_truncates_negative():
    asm = ThumbAssembler()
    asm.emit_int16(-1)
    assert asm.code == b"\xff\xff"


def test_t1_b_encoding_and_range():
    asm = ThumbAssembler()
    asm.t1_b(4)
    assert halfwords(asm.code) == [0xE000 | 2]
    with pytest.raises(ValueError):
        asm.t1_b(3)
    with pytest.raises(ValueError):
        asm.t1_b(4096)


def test_t2_b_wide_branch():
    asm = ThumbAssembler()
    asm.t2_b(4)
    assert halfwords(asm.code) == [0xF000, 0xB802]


def test_t2_bl_sets_link_bit():
    plain = ThumbAssembler()
    plain.t2_b(8)
    linked = ThumbAssembler()
    linked.t2_bl(8)
    b_words = halfwords(plain.code)
    bl_words = halfwords(linked.code)
    assert b_words[0] == bl_words[0]
    assert bl_words[1] == b_words[1] | 0x4000


def test_t2_branch_rejects_odd_offset():
    with pytest.raises(ValueError):
        ThumbAssembler().t2_b(3)


def test_t2_ldr_literal_add_and_subtract():
    asm = ThumbAssembler()
    asm.t2_ldr(PC, PC, 0)
    asm.t2_ldr(3, PC, 8)
    words = halfwords(asm.code)
    assert words[0] == 0xF85F
    assert words[1] == PC << 12
    assert words[2] == 0xF85F | 0x80
    assert words[3] == (3 << 12) | 8


def test_t2_ldr_register_base():
    asm = ThumbAssembler()
    asm.t2_ldr(2, 2, 0)
    assert halfwords(asm.code) == [0xF8D0 | 2, 2 << 12]


def test_t2_ldr_rejects_bad_register():
    with pytest.raises(ValueError):
        ThumbAssembler().t2_ldr(16, PC, 0)


def test_align_thumb_nop_pads_only_when_needed():
    asm = ThumbAssembler()
    asm.align_thumb_nop()
    assert len(asm.code) == 0
    asm.t1_nop()
    asm.align_thumb_nop()
    assert len(asm.code) % 4 == 0


def test_align_uses_realized_address():
    asm = ThumbAssembler(realized_address=2)
    asm.align_thumb_nop()
    assert asm.code == bytes([0x00, 0xBF])


def test_literal_pool_patches_forward_reference():
    asm = ThumbAssembler()
    label = ThumbLabel(0x1234)
    asm.append_reloc_label(label)
    asm.t2_ldr_label(PC, label)
    asm.t2_b(4)
    asm.reloc_data_labels()
    words = halfwords(asm.code)
    assert words[0:2] == [0xF8DF, 0xF004]
    assert label.position == 8
    assert asm.code[8:12] == (0x1234).to_bytes(4, "little")


def test_literal_directly_after_load():
    asm = ThumbAssembler()
    label = ThumbLabel(0xCAFEBABE)
    asm.append_reloc_label(label)
    asm.t2_ldr_label(1, label)
    asm.reloc_data_labels()
    assert len(asm.code) == 8
    assert asm.code[4:] == (0xCAFEBABE).to_bytes(4, "little")
    assert halfwords(asm.code)[1] & 0xFFF == 0


def test_bound_label_uses_known_offset():
    asm = ThumbAssembler()
    label = ThumbLabel(7)
    asm.bind_label(label)
    asm.emit_address(label.data)
    asm.t2_ldr_label(0, label)
    words = halfwords(asm.code)
    assert label.references == []
    assert words[2] == 0xF85F
    assert words[3] & 0xFFF == 4


def test_misaligned_literal_load_rejected():
    asm = ThumbAssembler()
    label = ThumbLabel(1)
    asm.t1_nop()
    asm.append_reloc_label(label)
    asm.t2_ldr_label(0, label)
    with pytest.raises(ValueError):
        asm.reloc_data_labels()


def test_reloc_label_fixup_maps_offsets():
    asm = ThumbAssembler()
    mapped = ThumbLabel(6)
    untouched = ThumbLabel(10)
    asm.append_reloc_label(mapped)
    asm.append_reloc_label(untouched)
    asm.reloc_label_fixup({6: 20})
    assert mapped.data == 20
    assert untouched.data == 10


def test_label_link_and_bind():
    label = ThumbLabel()
    assert not label.is_bound
    label.link_to(4)
    label.bind_to(12)
    assert label.references == [4]
    assert label.position == 12
    assert label.is_bound