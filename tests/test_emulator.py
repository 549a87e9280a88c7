import pytest

from core.cpu import CPUState
from core.emulator import Emulator
from core.instructions import INSTRUCTION_SET, EmulationError, get_instruction_defs, get_instruction_executor
from core.machine import MAX_CODE_LINES, PC, SP, MachineError, StackRegion
from core.model import Listing
from core.parser import parse_instruction, prepare_listing
from core.session import SessionController


def _run(cpu: CPUState, text: str, listing: Listing | None = None) -> None:
    instr = parse_instruction(text)
    executor = get_instruction_executor(instr.mnemonic)
    assert executor is not None
    executor(cpu, instr, listing or Listing(code_start=0x4000))


def _cpu() -> CPUState:
    cpu = CPUState()
    cpu.reset(sp_start=0xFF00, pc_start=0x4000)
    return cpu


def test_reset_allocates_stack_below_sp():
    cpu = _cpu()
    assert cpu.registers[SP] == 0xFF00
    assert cpu.registers[PC] == 0x4000
    assert (cpu.stack_bot, cpu.stack_top) == (0xFE00, 0xFF00)
    assert len(cpu.stack) == 0x100
    assert not any(cpu.used)


def test_reset_near_zero_clamps_stack_bottom():
    cpu = CPUState()
    cpu.reset(sp_start=0x40, pc_start=0)
    assert cpu.stack_bot == 0
    assert len(cpu.stack) == 0x40


@pytest.mark.parametrize(
    "text, expected",
    [
        ("add x0, x1, #5", 12),
        ("sub x0, x1, x2", 4),
        ("mul x0, x1, x2", 21),
        ("and x0, x1, #3", 3),
        ("orr x0, x1, #8", 15),
        ("eor x0, x1, x2", 4),
        ("lsl x0, x1, #2", 28),
        ("lsr x0, x1, #1", 3),
        ("mov x0, x2", 3),
        ("mov x0, #0x10", 16),
    ],
)
def test_arithmetic_and_logic(text, expected):
    cpu = _cpu()
    cpu.set_reg(1, 7)
    cpu.set_reg(2, 3)
    _run(cpu, text)
    assert cpu.get_reg(0) == expected
    assert cpu.used[0]


def test_subtraction_wraps_to_unsigned():
    cpu = _cpu()
    _run(cpu, "sub x0, xzr, #1")
    assert cpu.get_reg(0) == 0xFFFFFFFFFFFFFFFF


def test_writes_to_zero_register_are_discarded():
    cpu = _cpu()
    _run(cpu, "add xzr, xzr, #9")
    assert cpu.registers[:31] == [0] * 31


def test_store_and_load_through_stack():
    cpu = _cpu()
    cpu.set_reg(3, 0x1122334455667788)
    _run(cpu, "str x3, [sp, #-8]")
    assert cpu.stack[-8:] == (0x1122334455667788).to_bytes(8, "little")
    _run(cpu, "ldr x4, [sp, #-8]")
    assert cpu.get_reg(4) == 0x1122334455667788


def test_memory_outside_stack_raises():
    cpu = _cpu()
    with pytest.raises(EmulationError):
        _run(cpu, "ldr x0, [sp]")


def test_branches_set_pc():
    listing = Listing(code_start=0x4000, lines=["nop"] * 4, labels={"target": 3})
    cpu = _cpu()
    cpu.registers[PC] = 0x4004
    _run(cpu, "bl target", listing)
    assert cpu.registers[PC] == 0x400C
    assert cpu.get_reg(30) == 0x4004
    _run(cpu, "ret", listing)
    assert cpu.registers[PC] == 0x4004
    _run(cpu, "b 0x4000", listing)
    assert cpu.registers[PC] == 0x4000


def test_compare_and_branch():
    listing = Listing(code_start=0x4000, lines=["nop"] * 4, labels={"out": 2})
    cpu = _cpu()
    cpu.registers[PC] = 0x4004
    _run(cpu, "cbnz x0, out", listing)
    assert cpu.registers[PC] == 0x4004
    _run(cpu, "cbz x0, out", listing)
    assert cpu.registers[PC] == 0x4008


def test_unknown_label_raises():
    cpu = _cpu()
    with pytest.raises(EmulationError):
        _run(cpu, "b nowhere")


def test_wrong_operand_count_raises():
    cpu = _cpu()
    with pytest.raises(EmulationError):
        _run(cpu, "add x0, x1")


def test_registry_lists_supported_mnemonics():
    mnemonics = {defn.mnemonic for defn in get_instruction_defs()}
    assert {"ADD", "LDR", "STR", "BL", "CBNZ", "NOP"} <= mnemonics
    assert set(INSTRUCTION_SET) == mnemonics
    assert get_instruction_executor("fmadd") is None


def test_emulator_loads_prepared_listing(tmp_path):
    path = tmp_path / "prog.lst"
    path.write_text(prepare_listing("mov x0, #2\nadd x0, x0, x0\n", base_address=0x4000), encoding="utf-8")
    emulator = Emulator()
    emulator.init_machine(0xFF00, 0x4000, str(path))
    assert emulator.code_start == 0x4000
    assert emulator.code == ["add x0,xzr,#2", "add x0,x0,x0"]
    assert emulator.registers[SP] == 0xFF00
    assert len(emulator.stack) == emulator.stack_top - emulator.stack_bot


def test_emulator_uses_pc_start_for_plain_source(tmp_path):
    path = tmp_path / "prog.s"
    path.write_text("nop\nnop\n", encoding="utf-8")
    emulator = Emulator()
    emulator.init_machine(0xFF00, 0x8000, str(path))
    assert emulator.code_start == 0x8000


def test_emulator_truncates_long_listing(tmp_path, caplog):
    path = tmp_path / "long.s"
    path.write_text("nop\n" * (MAX_CODE_LINES + 3), encoding="utf-8")
    emulator = Emulator()
    emulator.init_machine(0xFF00, 0x4000, str(path))
    assert len(emulator.code) == MAX_CODE_LINES
    assert "keeping the first" in caplog.text


def test_emulator_missing_file_is_machine_error(tmp_path):
    with pytest.raises(MachineError):
        Emulator().init_machine(0xFF00, 0x4000, str(tmp_path / "gone.lst"))


def test_unknown_mnemonic_raises():
    emulator = Emulator()
    with pytest.raises(EmulationError):
        emulator.execute(emulator.parse_instruction("fmadd d0, d1, d2, d3"))


def test_session_runs_program_to_end(tmp_path):
    source = """
    mov x0, #3
    mov x1, #0
loop:
    add x1, x1, x0
    sub x0, x0, #1
    cbnz x0, loop
    str x1, [sp, #-8]
    """
    path = tmp_path / "sum.lst"
    path.write_text(prepare_listing(source, base_address=0x4000), encoding="utf-8")
    emulator = Emulator()
    session = SessionController(emulator)
    session.load(str(path), 0x4000, 0x4018, 0xFF00)
    steps = 0
    while not session.is_halted():
        assert session.step().executed
        steps += 1
    assert steps == 12
    assert emulator.registers[1] == 6
    assert session.stack_rows()[-1].value == 6


def test_plain_arm_source_is_preprocessed_on_load(tmp_path):
    source = """
    .global _start
_start:
    MOV R0, #2
    MOV R1, #0
f1: ADD R1, R1, R0
    SUB R0, R0, #1
    CBNZ R0, f1
    SWI 0
    """
    path = tmp_path / "count.s"
    path.write_text(source, encoding="utf-8")
    emulator = Emulator()
    session = SessionController(emulator)
    session.load(str(path), 0x4000, 0x4018, 0xFF00)
    assert emulator.code_start == 0x4000
    assert emulator.code[4] == "cbnz x0,0x4008"
    assert emulator.code[5] == "nop"
    steps = 0
    while not session.is_halted():
        session.step()
        steps += 1
    assert steps == 9
    assert emulator.registers[1] == 3
    assert emulator.registers[0] == 0


def test_stack_word_readable_by_address_after_store(tmp_path):
    path = tmp_path / "push.lst"
    path.write_text(prepare_listing("mov x2, #0x55\nstr x2, [sp, #-16]\n", base_address=0x4000), encoding="utf-8")
    emulator = Emulator()
    session = SessionController(emulator)
    session.load(str(path), 0x4000, 0x4008, 0xFF00)
    session.step()
    session.step()
    region = StackRegion.of(emulator)
    assert region.word_at(0xFF00 - 16) == 0x55
    assert region.word_at(0xFF00 - 8) == 0
