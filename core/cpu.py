from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from core.machine import PC, REGISTER_COUNT, SP, WORD_SIZE
from core.numbers import clamp_u64

STACK_SIZE = 0x100


@dataclass
class CPUState:
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    used: List[bool] = field(default_factory=lambda: [False] * REGISTER_COUNT)
    stack: bytearray = field(default_factory=bytearray)
    stack_bot: int = 0
    stack_top: int = 0

    def reset(self, sp_start: int, pc_start: int, stack_size: int = STACK_SIZE) -> None:
        self.registers = [0] * REGISTER_COUNT
        self.used = [False] * REGISTER_COUNT
        self.registers[SP] = clamp_u64(sp_start)
        self.registers[PC] = clamp_u64(pc_start)
        self.stack_top = sp_start
        self.stack_bot = max(0, sp_start - stack_size)
        self.stack = bytearray(self.stack_top - self.stack_bot)

    def get_reg(self, index: int) -> int:
        return self.registers[index]

    def set_reg(self, index: int, value: int) -> None:
        self.registers[index] = clamp_u64(value)
        self.used[index] = True

    def in_stack(self, addr: int, size: int = WORD_SIZE) -> bool:
        return self.stack_bot <= addr and addr + size <= self.stack_top

    def read_mem(self, addr: int, size: int = WORD_SIZE) -> int:
        offset = addr - self.stack_bot
        return int.from_bytes(bytes(self.stack[offset : offset + size]), "little", signed=False)

    def write_mem(self, addr: int, value: int, size: int = WORD_SIZE) -> None:
        offset = addr - self.stack_bot
        mask = (1 << (8 * size)) - 1
        self.stack[offset : offset + size] = (value & mask).to_bytes(size, "little", signed=False)
