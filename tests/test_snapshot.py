import pytest

from conftest import StubMachine
from core.fields import FieldId
from core.session import SessionController
from core.snapshot import STATIC_NOTE, SnapshotError, export_snapshot, render_snapshot


def test_uninitialized_snapshot_shows_placeholders(session):
    page = render_snapshot(session)
    assert "No code loaded" in page
    assert "Not initialized" in page
    assert "No memory to display" in page
    assert STATIC_NOTE in page


def test_snapshot_highlights_current_line(loaded_session):
    loaded_session.step()
    page = render_snapshot(loaded_session)
    assert "<span class='highlight'>4004: nop 1</span>" in page
    assert "4000: nop 0\n" in page


def test_snapshot_lists_every_code_line(tmp_path):
    machine = StubMachine()
    session = SessionController(machine)
    listing = tmp_path / "long.lst"
    listing.write_text("\n".join(f"nop {i}" for i in range(40)), encoding="utf-8")
    session.load(str(listing), 0x4000, 0x7FFF, 0xFF00)
    page = render_snapshot(session)
    assert "4000: nop 0" in page
    assert "409C: nop 39" in page


def test_snapshot_marks_used_registers(loaded_session):
    loaded_session.activate_field(FieldId.REGISTER)
    loaded_session.handle_text("7")
    loaded_session.activate_field(FieldId.VALUE)
    loaded_session.handle_text("0x2a")
    loaded_session.commit_value()
    page = render_snapshot(loaded_session)
    assert "<div class='used'>x7: 0x2a</div>" in page
    assert "<div>x8: 0x0</div>" in page
    assert "<div>pc: 0x4000</div>" in page


def test_snapshot_shows_stack_tail(loaded_session, stub_machine):
    page = render_snapshot(loaded_session)
    assert f"<div>0x{stub_machine.stack_top - 8:x}: 0x0</div>" in page
    assert f"<div>0x{stub_machine.stack_bot:x}: 0x0</div>" not in page


def test_snapshot_escapes_instruction_text(tmp_path):
    machine = StubMachine()
    session = SessionController(machine)
    listing = tmp_path / "odd.lst"
    listing.write_text("cmp x0, <x1>\n", encoding="utf-8")
    session.load(str(listing), 0x4000, 0x7FFF, 0xFF00)
    page = render_snapshot(session)
    assert "&lt;x1&gt;" in page
    assert "<x1>" not in page


def test_snapshot_page_is_static(loaded_session):
    page = render_snapshot(loaded_session)
    assert "<script" not in page
    assert "http" not in page
    assert page.count("disabled") == 7


def test_export_writes_and_replaces(loaded_session, tmp_path):
    target = tmp_path / "snap.html"
    target.write_text("old", encoding="utf-8")
    written = export_snapshot(loaded_session, target)
    assert written == target
    assert target.read_text(encoding="utf-8") == render_snapshot(loaded_session)
    assert [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")] == []


def test_export_defaults_to_working_directory(loaded_session, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    written = loaded_session.export_snapshot()
    assert written == tmp_path / "web_export.html"
    assert written.exists()


def test_export_failure_raises_snapshot_error(loaded_session, tmp_path):
    with pytest.raises(SnapshotError) as excinfo:
        export_snapshot(loaded_session, tmp_path / "missing-dir" / "snap.html")
    assert excinfo.value.path == tmp_path / "missing-dir" / "snap.html"


def test_export_leaves_session_and_machine_untouched(loaded_session, stub_machine, tmp_path):
    loaded_session.step()
    loaded_session.activate_field(FieldId.MEMORY)
    loaded_session.handle_text("0xfe08")
    before = (
        list(stub_machine.registers),
        list(stub_machine.used),
        bytes(stub_machine.stack),
        loaded_session.field_states(),
        loaded_session.config,
        loaded_session.is_initialized,
    )
    render_snapshot(loaded_session)
    export_snapshot(loaded_session, tmp_path / "snap.html")
    after = (
        list(stub_machine.registers),
        list(stub_machine.used),
        bytes(stub_machine.stack),
        loaded_session.field_states(),
        loaded_session.config,
        loaded_session.is_initialized,
    )
    assert after == before
