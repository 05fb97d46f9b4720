"""Decoding and relocation of Thumb, ARM64, x86 and x64 instructions."""

__version__ = "0.1.0"

__all__ = [
    "bitops",
    "arm64",
    "arm_decode",
    "thumb_assembler",
    "thumb_relocation",
    "x86_opcodes",
    "x86_reader",
    "x86_decode",
    "x86_relocation",
]