from pathlib import Path
from typing import List

import pytest

from core.machine import PC, REGISTER_COUNT, SP, MachineError
from core.session import SessionController


class StubMachine:
    """Machine that records what it is asked to run instead of running it."""

    def __init__(self, stack_size: int = 0x100) -> None:
        self.stack_size = stack_size
        self.registers: List[int] = [0] * REGISTER_COUNT
        self.used: List[bool] = [False] * REGISTER_COUNT
        self.stack = bytearray()
        self.stack_bot = 0
        self.stack_top = 0
        self.code_start = 0
        self.code: List[str] = []
        self.executed: List[str] = []
        self.init_calls = 0

    def init_machine(self, sp_start: int, pc_start: int, file_path: str) -> None:
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise MachineError(f"Cannot read {file_path}") from exc
        self.init_calls += 1
        self.registers = [0] * REGISTER_COUNT
        self.used = [False] * REGISTER_COUNT
        self.registers[SP] = sp_start
        self.registers[PC] = pc_start
        self.stack_top = sp_start
        self.stack_bot = sp_start - self.stack_size
        self.stack = bytearray(self.stack_size)
        self.code_start = pc_start
        self.code = [line.strip() for line in text.splitlines() if line.strip()]
        self.executed = []

    def parse_instruction(self, text: str) -> str:
        return text

    def execute(self, instruction: str) -> None:
        self.executed.append(instruction)


def write_listing(path: Path, lines: List[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def stub_machine():
    return StubMachine()


@pytest.fixture
def listing_file(tmp_path):
    return write_listing(tmp_path / "prog.lst", [f"nop {i}" for i in range(10)])


@pytest.fixture
def session(stub_machine):
    return SessionController(stub_machine)


@pytest.fixture
def loaded_session(session, listing_file):
    session.load(str(listing_file), 0x4000, 0x7FFF, 0xFF00)
    return session
