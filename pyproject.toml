[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "insn_relocate"
version = "0.1.0"
description = "Decode and relocate machine instructions for Thumb, ARM64, x86 and x64 code"
requires-python = ">=3.10"
dependencies = []
keywords = ["relocation", "instructions", "arm64", "thumb", "x86", "x64", "decoder", "trampoline"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["insn_relocate"]

[tool.pytest.ini_options]
addopts = "-ra"
