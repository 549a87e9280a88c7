from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from core.cpu import CPUState
from core.machine import PC, MachineError
from core.model import Instruction, Listing, Operand
from core.numbers import clamp_u64


class EmulationError(MachineError):
    def __init__(self, message: str, text: str) -> None:
        super().__init__(message)
        self.text = text


Executor = Callable[[CPUState, Instruction, Listing], None]


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    summary: str
    syntax: str
    executor: Executor


INSTRUCTION_SET: Dict[str, InstructionDef] = {}


def register_instruction(mnemonic: str, summary: str, syntax: str, executor: Executor) -> None:
    INSTRUCTION_SET[mnemonic.upper()] = InstructionDef(mnemonic.upper(), summary, syntax, executor)


def get_instruction_executor(mnemonic: str) -> Executor | None:
    defn = INSTRUCTION_SET.get(mnemonic.upper())
    return defn.executor if defn else None


def get_instruction_defs() -> List[InstructionDef]:
    return list(INSTRUCTION_SET.values())


def _expect_operands(instr: Instruction, count: int) -> None:
    if len(instr.operands) != count:
        raise EmulationError(f"Expected {count} operands for {instr.mnemonic}", instr.text)


def _value_of(op: Operand, cpu: CPUState, instr: Instruction) -> int:
    if op.type == "reg":
        return cpu.get_reg(int(op.value))
    if op.type == "zr":
        return 0
    if op.type == "imm":
        return clamp_u64(int(op.value))
    raise EmulationError(f"Unsupported operand for {instr.mnemonic}: {op.text}", instr.text)


def _write_dest(op: Operand, cpu: CPUState, value: int, instr: Instruction) -> None:
    if op.type == "zr":
        return
    if op.type != "reg":
        raise EmulationError(f"Unsupported destination for {instr.mnemonic}: {op.text}", instr.text)
    cpu.set_reg(int(op.value), value)


def _mem_address(op: Operand, cpu: CPUState, instr: Instruction) -> int:
    if op.type != "mem":
        raise EmulationError(f"Expected memory operand for {instr.mnemonic}: {op.text}", instr.text)
    base, offset = op.value  # type: ignore[misc]
    addr = clamp_u64(cpu.get_reg(base) + offset)
    if not cpu.in_stack(addr):
        raise EmulationError(
            f"Memory access at 0x{addr:x} outside stack [0x{cpu.stack_bot:x}, 0x{cpu.stack_top:x})",
            instr.text,
        )
    return addr


def _branch_target(op: Operand, listing: Listing, instr: Instruction) -> int:
    if op.type == "imm":
        return clamp_u64(int(op.value))
    if op.type == "label":
        address = listing.get_label(str(op.value))
        if address is not None:
            return address
        raise EmulationError(f"Unknown label: {op.text}", instr.text)
    raise EmulationError(f"Unsupported branch target for {instr.mnemonic}: {op.text}", instr.text)


def _binary(operation: Callable[[int, int], int]) -> Executor:
    def executor(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
        _expect_operands(instr, 3)
        lhs = _value_of(instr.operands[1], cpu, instr)
        rhs = _value_of(instr.operands[2], cpu, instr)
        _write_dest(instr.operands[0], cpu, operation(lhs, rhs), instr)

    return executor


def exec_nop(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 0)


def exec_mov(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 2)
    _write_dest(instr.operands[0], cpu, _value_of(instr.operands[1], cpu, instr), instr)


def exec_ldr(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 2)
    addr = _mem_address(instr.operands[1], cpu, instr)
    _write_dest(instr.operands[0], cpu, cpu.read_mem(addr), instr)


def exec_str(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 2)
    addr = _mem_address(instr.operands[1], cpu, instr)
    cpu.write_mem(addr, _value_of(instr.operands[0], cpu, instr))


def exec_b(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 1)
    cpu.registers[PC] = _branch_target(instr.operands[0], listing, instr)


def exec_bl(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    _expect_operands(instr, 1)
    target = _branch_target(instr.operands[0], listing, instr)
    # pc already points past this instruction
    cpu.set_reg(30, cpu.registers[PC])
    cpu.registers[PC] = target


def exec_ret(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
    if len(instr.operands) > 1:
        raise EmulationError("Expected at most 1 operand for RET", instr.text)
    target = _value_of(instr.operands[0], cpu, instr) if instr.operands else cpu.get_reg(30)
    cpu.registers[PC] = target


def _compare_branch(branch_on_zero: bool) -> Executor:
    def executor(cpu: CPUState, instr: Instruction, listing: Listing) -> None:
        _expect_operands(instr, 2)
        is_zero = _value_of(instr.operands[0], cpu, instr) == 0
        if is_zero == branch_on_zero:
            cpu.registers[PC] = _branch_target(instr.operands[1], listing, instr)

    return executor


register_instruction("NOP", "No operation", "nop", exec_nop)
register_instruction("MOV", "Copy a register or immediate", "mov xd, xn|#imm", exec_mov)
register_instruction("ADD", "Add", "add xd, xn, xm|#imm", _binary(lambda a, b: a + b))
register_instruction("SUB", "Subtract", "sub xd, xn, xm|#imm", _binary(lambda a, b: a - b))
register_instruction("MUL", "Multiply", "mul xd, xn, xm", _binary(lambda a, b: a * b))
register_instruction("AND", "Bitwise and", "and xd, xn, xm|#imm", _binary(lambda a, b: a & b))
register_instruction("ORR", "Bitwise or", "orr xd, xn, xm|#imm", _binary(lambda a, b: a | b))
register_instruction("EOR", "Bitwise exclusive or", "eor xd, xn, xm|#imm", _binary(lambda a, b: a ^ b))
register_instruction("LSL", "Logical shift left", "lsl xd, xn, xm|#imm", _binary(lambda a, b: a << (b & 63)))
register_instruction("LSR", "Logical shift right", "lsr xd, xn, xm|#imm", _binary(lambda a, b: a >> (b & 63)))
register_instruction("LDR", "Load a 64-bit word from the stack", "ldr xt, [xn{, #off}]", exec_ldr)
register_instruction("STR", "Store a 64-bit word to the stack", "str xt, [xn{, #off}]", exec_str)
register_instruction("B", "Branch", "b label|addr", exec_b)
register_instruction("BL", "Branch with link (x30 = return address)", "bl label|addr", exec_bl)
register_instruction("RET", "Return to x30 or the given register", "ret {xn}", exec_ret)
register_instruction("CBZ", "Branch if register is zero", "cbz xt, label|addr", _compare_branch(True))
register_instruction("CBNZ", "Branch if register is not zero", "cbnz xt, label|addr", _compare_branch(False))
