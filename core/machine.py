from __future__ import annotations

from typing import Any, List, MutableSequence, Protocol

from core.numbers import clamp_u64

REGISTER_COUNT = 33
SP = 31
PC = 32
INSTRUCTION_SIZE = 4
WORD_SIZE = 8
MAX_CODE_LINES = 500

REGISTER_ORDER = [f"x{i}" for i in range(31)] + ["sp", "pc"]


def register_name(index: int) -> str:
    return REGISTER_ORDER[index]


class Machine(Protocol):
    """What the session needs from an instruction interpreter."""

    registers: List[int]
    used: List[bool]
    stack: bytearray
    stack_bot: int
    stack_top: int
    code_start: int
    code: List[str]

    def init_machine(self, sp_start: int, pc_start: int, file_path: str) -> None: ...

    def parse_instruction(self, text: str) -> Any: ...

    def execute(self, instruction: Any) -> None: ...


class MachineError(Exception):
    """Raised by an interpreter that cannot load or run a listing."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AddressOutOfRange(Exception):
    def __init__(self, address: int, bottom: int, top: int) -> None:
        message = f"Address 0x{address:x} outside stack [0x{bottom:x}, 0x{top:x})"
        super().__init__(message)
        self.message = message
        self.address = address


class StackRegion:
    """Word-addressed view over a machine's stack bytes."""

    def __init__(self, data: MutableSequence[int], bottom: int, top: int) -> None:
        self.data = data
        self.bottom = bottom
        self.top = top

    @classmethod
    def of(cls, machine: Machine) -> "StackRegion":
        return cls(machine.stack, machine.stack_bot, machine.stack_top)

    @property
    def word_count(self) -> int:
        return max(0, min(self.top - self.bottom, len(self.data)) // WORD_SIZE)

    def contains(self, address: int) -> bool:
        return self.bottom <= address < self.top

    def index_of(self, address: int) -> int:
        if not self.contains(address):
            raise AddressOutOfRange(address, self.bottom, self.top)
        index = (address - self.bottom) // WORD_SIZE
        if index >= self.word_count:
            raise AddressOutOfRange(address, self.bottom, self.top)
        return index

    def address_of(self, index: int) -> int:
        return self.bottom + index * WORD_SIZE

    def word(self, index: int) -> int:
        if not 0 <= index < self.word_count:
            raise IndexError(f"Stack word index out of range: {index}")
        offset = index * WORD_SIZE
        return int.from_bytes(bytes(self.data[offset : offset + WORD_SIZE]), "little", signed=False)

    def set_word(self, index: int, value: int) -> None:
        if not 0 <= index < self.word_count:
            raise IndexError(f"Stack word index out of range: {index}")
        offset = index * WORD_SIZE
        self.data[offset : offset + WORD_SIZE] = clamp_u64(value).to_bytes(WORD_SIZE, "little", signed=False)

    def word_at(self, address: int) -> int:
        return self.word(self.index_of(address))

    def write_word_at(self, address: int, value: int) -> int:
        index = self.index_of(address)
        self.set_word(index, value)
        return index
