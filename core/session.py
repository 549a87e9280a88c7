from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from core import snapshot
from core.config import VisualizerConfig
from core.fields import FieldId, FieldSet, FieldState
from core.machine import (
    INSTRUCTION_SIZE,
    PC,
    REGISTER_COUNT,
    AddressOutOfRange,
    Machine,
    StackRegion,
    register_name,
)
from core.numbers import clamp_u64, parse_auto_base, parse_decimal
from core.textfield import MAX_INPUT_LENGTH, EditKey
from core.view_window import CODE_LOOK_BEHIND, VIEWPORT_LINES, ViewWindow, code_window, stack_window

logger = logging.getLogger(__name__)


class SessionError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CodeIndexError(SessionError):
    def __init__(self, pc: int, index: int, length: int) -> None:
        super().__init__(f"PC 0x{pc:x} maps to code index {index} outside the listing (0..{length - 1})")
        self.pc = pc
        self.index = index


@dataclass(frozen=True)
class SessionConfig:
    file_path: str
    pc_start: int
    pc_end: int
    sp_start: int


@dataclass(frozen=True)
class StepOutcome:
    executed: bool
    halted: bool = False
    address: Optional[int] = None
    instruction: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    register: Optional[int] = None
    stack_index: Optional[int] = None

    @property
    def applied(self) -> bool:
        return self.register is not None or self.stack_index is not None


@dataclass(frozen=True)
class CodeLine:
    index: int
    address: int
    text: str
    current: bool


@dataclass(frozen=True)
class RegisterRow:
    index: int
    name: str
    value: int
    used: bool


@dataclass(frozen=True)
class StackRow:
    index: int
    address: int
    value: int


class SessionController:
    """Owns one debugging session against a machine.

    Every command is safe to call in any state: operations that need a
    loaded machine do nothing until ``load`` has succeeded, and stepping
    stops once the program counter reaches the configured end address.
    """

    def __init__(
        self,
        machine: Machine,
        code_lines: int = VIEWPORT_LINES,
        code_look_behind: int = CODE_LOOK_BEHIND,
        stack_lines: int = VIEWPORT_LINES,
        input_capacity: int = MAX_INPUT_LENGTH,
        export_name: str = "web_export.html",
    ) -> None:
        self.machine = machine
        self.code_lines = code_lines
        self.code_look_behind = code_look_behind
        self.stack_lines = stack_lines
        self.export_name = export_name
        self.fields = FieldSet(input_capacity)
        self.config: Optional[SessionConfig] = None
        self.initialized = False

    @classmethod
    def from_config(cls, machine: Machine, config: VisualizerConfig) -> "SessionController":
        return cls(
            machine,
            code_lines=config.code_lines,
            code_look_behind=config.code_look_behind,
            stack_lines=config.stack_lines,
            input_capacity=config.input_capacity,
            export_name=config.export_name,
        )

    @property
    def is_initialized(self) -> bool:
        return self.initialized

    def load(self, file_path: str, pc_start: int, pc_end: int, sp_start: int) -> None:
        config = SessionConfig(file_path=file_path, pc_start=pc_start, pc_end=pc_end, sp_start=sp_start)
        self._init_machine(config)
        self.config = config
        self.fields.clear_all()
        self.fields.release()
        logger.info("Loaded %s (pc 0x%x..0x%x, sp 0x%x)", file_path, pc_start, pc_end, sp_start)

    def reset(self) -> bool:
        if self.config is None:
            return False
        self._init_machine(self.config)
        logger.info("Reset %s", self.config.file_path)
        return True

    def _init_machine(self, config: SessionConfig) -> None:
        try:
            self.machine.init_machine(config.sp_start, config.pc_start, config.file_path)
        except Exception:
            self.initialized = False
            raise
        self.initialized = True

    @property
    def pc(self) -> int:
        return self.machine.registers[PC]

    def is_halted(self) -> bool:
        return self.initialized and self.config is not None and self.pc == self.config.pc_end

    def current_code_index(self) -> Optional[int]:
        if not self.initialized:
            return None
        return (self.pc - self.machine.code_start) // INSTRUCTION_SIZE

    def step(self) -> StepOutcome:
        if not self.initialized or self.config is None:
            return StepOutcome(executed=False)
        pc = self.pc
        if pc == self.config.pc_end:
            return StepOutcome(executed=False, halted=True, address=pc)

        offset = pc - self.machine.code_start
        index = offset // INSTRUCTION_SIZE
        if offset < 0 or index >= len(self.machine.code):
            raise CodeIndexError(pc, index, len(self.machine.code))
        text = self.machine.code[index]

        # The interpreter sees the counter already pointing at the next slot.
        self.machine.registers[PC] = clamp_u64(pc + INSTRUCTION_SIZE)
        logger.info("0x%x %s", pc, text)
        self.machine.execute(self.machine.parse_instruction(text))
        return StepOutcome(executed=True, halted=self.is_halted(), address=pc, instruction=text)

    def commit_value(self) -> CommitResult:
        register_text = self.fields.text(FieldId.REGISTER)
        memory_text = self.fields.text(FieldId.MEMORY)
        value_text = self.fields.text(FieldId.VALUE)
        register: Optional[int] = None
        stack_index: Optional[int] = None

        if self.initialized:
            if register_text:
                reg_num = parse_decimal(register_text)
                if 0 <= reg_num < REGISTER_COUNT and value_text:
                    value = parse_auto_base(value_text)
                    self.machine.registers[reg_num] = value
                    self.machine.used[reg_num] = True
                    register = reg_num
                    logger.info("Set register %s to 0x%x", register_name(reg_num), value)
                else:
                    logger.debug("Register edit skipped: register=%r value=%r", register_text, value_text)

            if memory_text and value_text:
                address = parse_auto_base(memory_text)
                value = parse_auto_base(value_text)
                try:
                    stack_index = StackRegion.of(self.machine).write_word_at(address, value)
                except AddressOutOfRange as exc:
                    logger.debug("Memory edit skipped: %s", exc.message)
                else:
                    logger.info("Set memory at 0x%x to 0x%x", address, value)

        self.fields.clear_all()
        self.fields.release()
        return CommitResult(register=register, stack_index=stack_index)

    def activate_field(self, field_id: Optional[FieldId]) -> None:
        self.fields.activate(field_id)

    def release_focus(self) -> None:
        self.fields.release()

    def handle_text(self, text: str) -> int:
        return self.fields.dispatch_text(text)

    def handle_key(self, key: EditKey) -> bool:
        """Route a key to the active field; False when no field took it."""
        if self.fields.active_field() is None:
            return False
        if key == EditKey.RETURN:
            self.commit_value()
            return True
        return self.fields.dispatch_key(key)

    def code_view_window(self) -> ViewWindow:
        index = self.current_code_index()
        if index is None:
            return ViewWindow(0, 0)
        return code_window(index, len(self.machine.code), self.code_lines, self.code_look_behind)

    def code_lines_in_view(self) -> List[CodeLine]:
        current = self.current_code_index()
        return [self._code_line(i, current) for i in self.code_view_window().indices()]

    def all_code_lines(self) -> List[CodeLine]:
        if not self.initialized:
            return []
        current = self.current_code_index()
        return [self._code_line(i, current) for i in range(len(self.machine.code))]

    def _code_line(self, index: int, current: Optional[int]) -> CodeLine:
        return CodeLine(
            index=index,
            address=self.machine.code_start + index * INSTRUCTION_SIZE,
            text=self.machine.code[index],
            current=index == current,
        )

    def register_table(self) -> List[RegisterRow]:
        if not self.initialized:
            return []
        return [
            RegisterRow(index=i, name=register_name(i), value=self.machine.registers[i], used=bool(self.machine.used[i]))
            for i in range(REGISTER_COUNT)
        ]

    def stack_view_window(self) -> ViewWindow:
        if not self.initialized:
            return ViewWindow(0, 0)
        return stack_window(StackRegion.of(self.machine).word_count, self.stack_lines)

    def stack_rows(self) -> List[StackRow]:
        if not self.initialized:
            return []
        region = StackRegion.of(self.machine)
        return [
            StackRow(index=i, address=region.address_of(i), value=region.word(i))
            for i in self.stack_view_window().indices()
        ]

    def field_states(self) -> List[FieldState]:
        return self.fields.states()

    def export_snapshot(self, path: Optional[Path | str] = None) -> Path:
        return snapshot.export_snapshot(self, path)
