"""Relocation of x86 and x86-64 code to a new address.

PC-relative branches are rewritten so that they still reach their
original targets from the relocated copy. In 64-bit mode far targets are
reached through absolute ``jmp [rip]`` stubs. RIP-relative memory
operands are re-encoded in a helper block placed near the data by a
caller-supplied allocator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from .x86_decode import DecodedInsn, DecodeFlag, Register, decode

__all__ = [
    "NEAR_JUMP_RANGE",
    "JMP_ABSOLUTE_SIZE",
    "RelocationResult",
    "jmp_absolute",
    "relocate_insn",
    "relocate",
]

_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF

# Reach of a rel32 displacement.
NEAR_JUMP_RANGE = 2 * 1024 * 1024 * 1024
# Size of "jmp [rip+0]" followed by its 8-byte target.
JMP_ABSOLUTE_SIZE = 6 + 8

_INITIAL_CAPACITY = 32
_CAPACITY_STEP = 16

NearAllocator = Callable[[int, int, int], int]
"""Called as ``allocator(size, target, max_distance)``; returns a block address."""


@dataclass(frozen=True)
class RelocationResult:
    """Relocated code together with the helper blocks it depends on.

    ``patches`` maps addresses of near helper blocks to the bytes that
    must be written there. ``capacity`` is the size of the code block
    that holds ``code``.
    """

    code: bytes
    origin_address: int
    origin_size: int
    relocated_address: int
    capacity: int
    patches: dict[int, bytes] = field(default_factory=dict)

    @property
    def resume_address(self) -> int:
        """Address of the first original instruction that was not relocated."""
        return self.origin_address + self.origin_size


def _check_mode(mode: int) -> None:
    if mode not in (32, 64):
        raise ValueError(f"unsupported mode {mode}")


def _mask(mode: int) -> int:
    return _U64 if mode == 64 else _U32


def jmp_absolute(target: int) -> bytes:
    """Encode ``jmp [rip+0]`` followed by the 64-bit ``target``."""
    return b"\xff\x25" + bytes(4) + (target & _U64).to_bytes(8, "little")


def _rel32(target: int, next_ip: int) -> bytes:
    return ((target - next_ip) & _U32).to_bytes(4, "little")


def _relocate_rip_relative(
    insn: DecodedInsn,
    raw: bytes,
    next_ip: int,
    relo_ip: int,
    near_allocator: Optional[NearAllocator],
) -> tuple[bytes, dict[int, bytes]]:
    target = (next_ip + insn.operands[1].mem.disp) & _U64
    if near_allocator is None:
        raise ValueError("a near allocator is needed to relocate a RIP-relative instruction")

    stub_address = near_allocator(insn.length + JMP_ABSOLUTE_SIZE, target, NEAR_JUMP_RANGE)
    code = jmp_absolute(stub_address)

    new_disp = target - (stub_address + insn.length)
    if not -(1 << 31) <= new_disp < (1 << 31):
        raise ValueError(f"helper block at {stub_address:#x} is out of reach of {target:#x}")

    stub = raw[: insn.displacement_offset] + new_disp.to_bytes(4, "little", signed=True)
    if insn.immediate_offset:
        stub += raw[insn.immediate_offset :]
    stub += jmp_absolute(relo_ip + len(code))
    return code, {stub_address: stub}


def relocate_insn(
    data: bytes,
    orig_ip: int,
    relo_ip: int,
    mode: int = 64,
    near_allocator: Optional[NearAllocator] = None,
) -> tuple[DecodedInsn, bytes, dict[int, bytes]]:
    """Relocate the instruction at the start of ``data``.

    ``orig_ip`` is its original address and ``relo_ip`` the address its
    replacement will have. Returns the decoded instruction, the
    replacement bytes and any helper blocks (address to bytes).

    Raises ValueError for truncated input, unsupported modes or encodings,
    and NotImplementedError for LOOP/LOOPcc/JCXZ.
    """
    _check_mode(mode)
    insn = decode(data, mode)
    if insn.length > len(data):
        raise ValueError("truncated instruction")

    raw = bytes(data[: insn.length])
    mask = _mask(mode)
    # The IP register holds the address of the next instruction.
    next_ip = (orig_ip + insn.length) & mask
    opcode = insn.primary_opcode
    one_byte = not insn.two_byte

    if one_byte and 0x70 <= opcode <= 0x7F:  # jcc rel8
        target = (next_ip + insn.signed_immediate) & mask
        if mode == 32:
            code = bytes([0x0F, 0x80 | (opcode & 0x0F)]) + _rel32(target, relo_ip + 6)
        else:
            # jcc over a short jmp to the absolute jump that reaches the target
            code = bytes([opcode, 2, 0xEB, JMP_ABSOLUTE_SIZE]) + jmp_absolute(target)
        return insn, code, {}

    if (
        mode == 64
        and DecodeFlag.IP_RELATIVE in insn.flags
        and insn.operands[1].mem.base == Register.RIP
    ):
        code, patches = _relocate_rip_relative(insn, raw, next_ip, relo_ip, near_allocator)
        return insn, code, patches

    if one_byte and opcode == 0xEB:  # jmp rel8
        target = (next_ip + insn.signed_immediate) & mask
        if mode == 32:
            code = b"\xe9" + _rel32(target, relo_ip + 5)
        else:
            code = jmp_absolute(target)
        return insn, code, {}

    if one_byte and opcode in (0xE8, 0xE9):  # call / jmp rel32
        if insn.immediate_offset != 1:
            raise ValueError("prefixed relative call or jump is not supported")
        target = (next_ip + insn.signed_immediate) & mask
        if mode == 32:
            code = raw[: insn.immediate_offset] + _rel32(target, relo_ip + 5)
        elif opcode == 0xE8:
            # call [rip+2]; jmp over the 8-byte target
            code = b"\xff\x15" + (2).to_bytes(4, "little") + b"\xeb\x08" + target.to_bytes(8, "little")
        else:
            code = jmp_absolute(target)
        return insn, code, {}

    if one_byte and 0xE0 <= opcode <= 0xE2:
        raise NotImplementedError("LOOP/LOOPcc relocation is not supported")
    if one_byte and opcode == 0xE3:
        raise NotImplementedError("JCXZ/JECXZ/JRCXZ relocation is not supported")

    return insn, raw, {}


def relocate(
    code: bytes,
    origin_address: int,
    relocated_address: int,
    mode: int = 64,
    branch: bool = True,
    capacity: int = _INITIAL_CAPACITY,
    near_allocator: Optional[NearAllocator] = None,
) -> RelocationResult:
    """Relocate every instruction of ``code`` from ``origin_address`` to ``relocated_address``.

    With ``branch`` the relocated code ends with a jump back to the first
    byte after the relocated instructions. The reported capacity starts
    at ``capacity`` and grows in 16-byte steps until the code fits.
    """
    _check_mode(mode)
    if capacity <= 0:
        raise ValueError("capacity must be positive")

    mask = _mask(mode)
    out = bytearray()
    patches: dict[int, bytes] = {}
    cursor = 0
    orig_ip = origin_address & mask

    while cursor < len(code):
        relo_ip = (relocated_address + len(out)) & mask
        insn, chunk, stubs = relocate_insn(code[cursor:], orig_ip, relo_ip, mode, near_allocator)
        out += chunk
        patches.update(stubs)
        cursor += insn.length
        orig_ip = (orig_ip + insn.length) & mask

    if branch:
        relo_ip = (relocated_address + len(out)) & mask
        if mode == 64:
            out += jmp_absolute(orig_ip)
        else:
            out += b"\xe9" + _rel32(orig_ip, relo_ip + 5)

    size = capacity
    while len(out) > size:
        size += _CAPACITY_STEP

    return RelocationResult(
        code=bytes(out),
        origin_address=origin_address & mask,
        origin_size=cursor,
        relocated_address=relocated_address & mask,
        capacity=size,
        patches=patches,
    )