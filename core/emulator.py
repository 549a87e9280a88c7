from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from core.cpu import STACK_SIZE, CPUState
from core.instructions import EmulationError, get_instruction_executor
from core.machine import MAX_CODE_LINES
from core.model import Instruction, Listing
from core.parser import is_address_listing, parse_instruction, parse_listing, prepare_listing

logger = logging.getLogger(__name__)


class Emulator:
    """Reference interpreter for AArch64-style instruction listings.

    Implements the ``core.machine.Machine`` contract: the session reads the
    register file, stack bytes and listing directly and drives execution
    through ``parse_instruction`` and ``execute``.
    """

    def __init__(self, stack_size: int = STACK_SIZE) -> None:
        self.cpu = CPUState()
        self.listing = Listing(code_start=0)
        self.stack_size = stack_size

    @property
    def registers(self) -> List[int]:
        return self.cpu.registers

    @property
    def used(self) -> List[bool]:
        return self.cpu.used

    @property
    def stack(self) -> bytearray:
        return self.cpu.stack

    @property
    def stack_bot(self) -> int:
        return self.cpu.stack_bot

    @property
    def stack_top(self) -> int:
        return self.cpu.stack_top

    @property
    def code_start(self) -> int:
        return self.listing.code_start or 0

    @property
    def code(self) -> List[str]:
        return self.listing.lines

    def init_machine(self, sp_start: int, pc_start: int, file_path: str) -> None:
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise EmulationError(f"Cannot read listing {file_path}: {exc}", file_path) from exc
        if not is_address_listing(text):
            logger.debug("No address column in %s, preprocessing as assembly source", file_path)
            text = prepare_listing(text, base_address=pc_start)
        listing = parse_listing(text)
        if listing.code_start is None:
            listing.code_start = pc_start
        if len(listing.lines) > MAX_CODE_LINES:
            logger.warning("Listing has %d lines, keeping the first %d", len(listing.lines), MAX_CODE_LINES)
            del listing.lines[MAX_CODE_LINES:]
        self.listing = listing
        self.cpu.reset(sp_start, pc_start, self.stack_size)
        logger.debug("Loaded %d instructions from %s at 0x%x", len(listing.lines), file_path, listing.code_start)

    def parse_instruction(self, text: str) -> Instruction:
        return parse_instruction(text)

    def execute(self, instruction: Instruction) -> None:
        executor = get_instruction_executor(instruction.mnemonic)
        if executor is None:
            raise EmulationError(f"Unknown instruction: {instruction.mnemonic}", instruction.text)
        executor(self.cpu, instruction, self.listing)
