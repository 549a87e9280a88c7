from __future__ import annotations

import re
from typing import Dict, List, Optional

from core.machine import INSTRUCTION_SIZE, SP, MachineError
from core.model import Instruction, Listing, Operand


class ParseError(MachineError):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.line_no = line_no
        self.text = text


REGISTER_ALIASES: Dict[str, int] = {f"x{i}": i for i in range(31)}
REGISTER_ALIASES.update({"sp": SP, "lr": 30, "fp": 29})
ZERO_REGISTERS = {"xzr", "wzr"}

ADDRESS_LINE_RE = re.compile(r"^([0-9A-Fa-f]+):\s+[0-9A-Fa-f]{8}\s+(\S.*)$")
LABEL_RE = re.compile(r"^([A-Za-z_.$][A-Za-z0-9_.$]*)\s*:\s*(.*)$")
IMM_RE = re.compile(r"#?(-?)(0x[0-9A-Fa-f]+|\d+)")
BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def _strip_comment(line: str) -> str:
    for marker in ("//", ";"):
        line = line.split(marker, 1)[0]
    return BLOCK_COMMENT_RE.sub("", line)


def _parse_immediate(raw: str) -> Optional[int]:
    match = IMM_RE.fullmatch(raw.strip())
    if not match:
        return None
    digits = match.group(2)
    value = int(digits, 16) if digits.lower().startswith("0x") else int(digits, 10)
    return -value if match.group(1) else value


def _parse_operand(token: str) -> Operand:
    raw = token.strip()
    lower = raw.lower()
    if lower in REGISTER_ALIASES:
        return Operand(type="reg", value=REGISTER_ALIASES[lower], text=raw)
    if lower in ZERO_REGISTERS:
        return Operand(type="zr", value=0, text=raw)
    if raw.startswith("[") and raw.endswith("]"):
        parts = [part.strip() for part in raw[1:-1].split(",")]
        base = parts[0].lower()
        if base not in REGISTER_ALIASES or len(parts) > 2:
            return Operand(type="unsupported", value=raw, text=raw)
        offset = 0
        if len(parts) == 2:
            parsed = _parse_immediate(parts[1])
            if parsed is None:
                return Operand(type="unsupported", value=raw, text=raw)
            offset = parsed
        return Operand(type="mem", value=(REGISTER_ALIASES[base], offset), text=raw)
    value = _parse_immediate(raw)
    if value is not None:
        return Operand(type="imm", value=value, text=raw)
    if re.fullmatch(r"[A-Za-z_.$][A-Za-z0-9_.$]*", raw):
        return Operand(type="label", value=lower, text=raw)
    return Operand(type="unsupported", value=raw, text=raw)


def _split_args(text: str) -> List[str]:
    items: List[str] = []
    current: List[str] = []
    depth = 0
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]" and depth > 0:
            depth -= 1
        if ch == "," and depth == 0:
            item = "".join(current).strip()
            if item:
                items.append(item)
            current = []
            continue
        current.append(ch)
    item = "".join(current).strip()
    if item:
        items.append(item)
    return items


def parse_instruction(text: str, line_no: int = 0) -> Instruction:
    working = _strip_comment(text).strip()
    if not working:
        raise ParseError("Empty instruction", line_no, text)
    parts = working.split(None, 1)
    operands: List[Operand] = []
    if len(parts) > 1:
        operands = [_parse_operand(op) for op in _split_args(parts[1])]
    return Instruction(text=text, mnemonic=parts[0].upper(), operands=operands)


def is_address_listing(text: str) -> bool:
    return any(ADDRESS_LINE_RE.match(_strip_comment(line).strip()) for line in text.splitlines())


def parse_listing(text: str) -> Listing:
    """Read a disassembly listing, one ``ADDR: MACHINECODE   instruction`` per line.

    Lines without the address and machine-code columns are placed in the next 4-byte slot;
    ``name:`` lines label the following slot.
    """
    listing = Listing(code_start=None)
    for idx, raw_line in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw_line).strip()
        if not line:
            continue
        match = ADDRESS_LINE_RE.match(line)
        if match:
            address = int(match.group(1), 16)
            if listing.code_start is None and not listing.lines:
                listing.code_start = address
            expected = None
            if listing.code_start is not None:
                expected = listing.code_start + len(listing.lines) * INSTRUCTION_SIZE
            if expected is not None and address != expected:
                raise ParseError(
                    f"Non-contiguous address 0x{address:x} (expected 0x{expected:x})",
                    idx,
                    raw_line,
                )
            listing.lines.append(" ".join(match.group(2).split()))
            continue
        label_match = LABEL_RE.match(line)
        if label_match:
            name = label_match.group(1).lower()
            if name in listing.labels:
                raise ParseError(f"Duplicate label: {name}", idx, raw_line)
            listing.labels[name] = len(listing.lines)
            line = label_match.group(2).strip()
            if not line:
                continue
        listing.lines.append(" ".join(line.split()))
    return listing


def prepare_listing(source: str, base_address: int = 0x400000) -> str:
    """Turn plain assembly into the listing format the emulator loads.

    Directives are dropped, labels resolved to addresses, ``R0``-style
    register names renamed to ``x0``, ``swi`` replaced by ``nop`` and
    ``mov rd, #imm`` rewritten as ``add rd,xzr,#imm``.
    """
    lines = [_strip_comment(line).strip() for line in BLOCK_COMMENT_RE.sub("", source).splitlines()]

    labels: Dict[str, int] = {}
    instructions: List[str] = []
    for line in lines:
        if not line or line.startswith("."):
            continue
        match = LABEL_RE.match(line)
        if match:
            labels[match.group(1).lower()] = base_address + len(instructions) * INSTRUCTION_SIZE
            line = match.group(2).strip()
            if not line:
                continue
        instructions.append(line)

    output: List[str] = []
    for offset, line in enumerate(instructions):
        normalized = re.sub(r"\s+", " ", line)
        normalized = re.sub(r",\s*", ",", normalized).lower()
        normalized = re.sub(r"\br(\d+)\b", r"x\1", normalized)
        if normalized.startswith("swi"):
            normalized = "nop"
        normalized = re.sub(r"^mov ([^\s,]+),#(-?(?:0x[0-9a-f]+|\d+))$", r"add \1,xzr,#\2", normalized)
        mnemonic, _, operands = normalized.partition(" ")
        for name, target in labels.items():
            operands = re.sub(rf"(?<![\w.$#]){re.escape(name)}(?![\w.$])", f"0x{target:x}", operands)
        normalized = f"{mnemonic} {operands}" if operands else mnemonic
        address = base_address + offset * INSTRUCTION_SIZE
        output.append(f"{address:06x}: 00000000   {normalized}")
    return "\n".join(output) + ("\n" if output else "")
