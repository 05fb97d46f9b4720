import pytest

from insn_relocate.x86_reader import FILL_BYTE, InsnReader


def test_peek_does_not_advance():
    reader = InsnReader(bytes([0x48, 0x89]))
    assert reader.peek_byte() == 0x48
    assert reader.peek_byte() == 0x48
    assert reader.offset == 0
    assert reader.read_byte() == 0x48
    assert reader.peek_byte() == 0x89


@pytest.mark.parametrize("value,size,method", [
    (0x1234, 2, "read_word"),
    (0xDEADBEEF, 4, "read_dword"),
    (0x0102030405060708, 8, "read_qword"),
])
def test_little_endian_round_trip(value, size, method):
    reader = InsnReader(value.to_bytes(size, "little"))
    assert getattr(reader, method)() == value
    assert reader.offset == size


@pytest.mark.parametrize("bits", [8, 16, 32, 64])
def test_read_number_matches_width(bits):
    value = (1 << bits) - 2
    reader = InsnReader(value.to_bytes(bits // 8, "little"))
    assert reader.read_number(bits) == value
    assert reader.offset == bits // 8


def test_read_number_rejects_other_widths():
    reader = InsnReader(b"\x00" * 4)
    with pytest.raises(ValueError):
        reader.read_number(24)
    assert reader.offset == 0


def test_short_input_is_padded_with_fill_byte():
    reader = InsnReader(b"\x90")
    assert reader.read_byte() == 0x90
    assert reader.read_byte() == FILL_BYTE
    assert FILL_BYTE == 0xCC


def test_window_limits_input_to_fifteen_bytes():
    reader = InsnReader(bytes(range(1, 21)))
    consumed = [reader.read_byte() for _ in range(15)]
    assert consumed == list(range(1, 16))
    assert reader.read_byte() == FILL_BYTE


def test_reading_past_buffer_raises():
    reader = InsnReader(b"")
    for _ in range(20):
        assert reader.read_byte() == FILL_BYTE
    with pytest.raises(ValueError):
        reader.read_byte()
    with pytest.raises(ValueError):
        reader.peek_byte()


def test_sequential_reads_track_offset():
    data = bytes([0xE8]) + (0x100).to_bytes(4, "little")
    reader = InsnReader(data)
    assert reader.read_byte() == 0xE8
    assert reader.offset == 1
    assert reader.read_dword() == 0x100
    assert reader.offset == len(data)