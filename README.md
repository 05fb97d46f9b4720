# insn_relocate

Tools for moving machine code from one address to another. When a few
instructions are copied out of a function, for example to build a hook
trampoline, any PC-relative instruction among them (branches, literal loads,
`adr`/`adrp`, RIP-relative operands) would point to the wrong place at its
new address. This package decodes such instructions and rewrites them so they
still reach their original targets.

Everything works on plain `bytes` and integers; nothing touches live memory.

## Modules

- `insn_relocate.bitops`: `bit`, `bits`, `set_bit`, `set_bits` and
  `sign_extend` for fixed-width instruction words.
- `insn_relocate.arm64`: decoding and encoding of the `imm14`, `imm19`,
  `imm26` and `immhi:immlo` offset fields, `decode_rt`/`decode_rd`, the
  `is_*` classifiers, `classify` (returning an `Arm64InsnKind`),
  `branch_target` and `invert_conditional_branch`.
- `insn_relocate.arm_decode`: the A32 barrel shifter `arm_shift_c` (with
  `ArmShift`), `a32_expand_imm` and `is_thumb2`.
- `insn_relocate.thumb_assembler`: `ThumbAssembler`, a small T32 assembler
  (`t1_nop`, `t1_b`, `t2_b`, `t2_bl`, `t2_ldr`, `t2_ldr_label`,
  `align_thumb_nop`) with literal-pool labels (`ThumbLabel`,
  `append_reloc_label`, `reloc_data_labels`, `reloc_label_fixup`).
- `insn_relocate.thumb_relocation`: `relocate_thumb`, which rewrites Thumb
  code and returns a `ThumbRelocation`.
- `insn_relocate.x86_opcodes`: one-byte, two-byte and ModR/M-group opcode
  tables (`one_byte_spec`, `two_byte_spec`, `modrm_reg_group_spec`,
  `InsnSpec`, `OperandSpec`).
- `insn_relocate.x86_reader`: `InsnReader`, a little-endian reader over one
  instruction window.
- `insn_relocate.x86_decode`: `decode`, an instruction length and operand
  decoder for 32 and 64-bit modes, returning a `DecodedInsn`.
- `insn_relocate.x86_relocation`: `relocate_insn`, `relocate` (returning a
  `RelocationResult`) and `jmp_absolute`.

## Installation

```
pip install .
```

Python 3.10 or later is required; there are no runtime dependencies.

## Examples

Decode the target of an ARM64 branch:

```python
from insn_relocate import arm64

insn = 0x14000004                                  # b #+16
print(arm64.classify(insn))                        # Arm64InsnKind.B_BL
print(hex(arm64.branch_target(insn, 0x1000)))      # 0x1010
```

Decode an x86-64 instruction:

```python
from insn_relocate.x86_decode import decode

insn = decode(bytes([0x48, 0x8B, 0x05, 0x10, 0x00, 0x00, 0x00]), 64)
print(insn.name, insn.length)                      # mov 7, a RIP-relative load
```

Relocate x64 code to a new address, ending with a jump back to the rest of
the original code:

```python
from insn_relocate.x86_relocation import relocate

code = bytes([0x55, 0xEB, 0x10])                   # push rbp; jmp short +0x10
result = relocate(code, 0x401000, 0x7F0000, mode=64, branch=True)
print(result.origin_size, len(result.code))        # 3 29
```

The short `jmp` becomes an absolute `jmp [rip]` to its original target.
Relocating a RIP-relative instruction in 64-bit mode needs a
`near_allocator` callable, called as `allocator(size, target, max_distance)`,
that returns the address of a helper block near the data; the bytes to write
there come back in `result.patches`.

Relocate Thumb code (an odd address marks Thumb state):

```python
from insn_relocate.thumb_relocation import relocate_thumb

result = relocate_thumb(bytes.fromhex("00bf"), 0x8001, branch=True)
print(result.origin_size, hex(result.resume_address))   # 2 0x8002
```

## What the package does not do

- It does not allocate executable memory, write code into a process or
  flush instruction caches; results are bytes for the caller to place.
- ARM64 support covers decoding, classification and branch inversion; there
  is no function that emits a complete relocated ARM64 block.
- A32 (ARM state) code is not relocated. `relocate_thumb` stops when an
  instruction switches to the ARM instruction set and reports it through
  `switched_to_arm`.
- x86 SSE-group opcodes, 16-bit address mode and LOOP/LOOPcc/JCXZ are not
  supported and raise an error.
- There is no command-line tool.

## Running the tests

```
pip install .[test]
pytest
```