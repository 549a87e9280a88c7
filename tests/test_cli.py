import pytest

pytest.importorskip("PyQt6.QtWidgets")

from core.parser import prepare_listing  # noqa: E402
from ui.main_window import build_arg_parser, main  # noqa: E402


def test_address_options_accept_hex():
    args = build_arg_parser().parse_args(["prog.lst", "--pc-start", "0x400000", "--sp-start", "65280"])
    assert args.file == "prog.lst"
    assert args.pc_start == 0x400000
    assert args.sp_start == 65280
    assert args.pc_end is None


def test_bad_address_option_exits():
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args(["--pc-end", "later"])


def test_list_instructions(capsys):
    assert main(["--list-instructions"]) == 0
    out = capsys.readouterr().out
    assert "cbnz xt, label|addr" in out


def test_headless_export(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    listing = tmp_path / "prog.lst"
    listing.write_text(prepare_listing("mov x0, #1\nnop\n", base_address=0x4000), encoding="utf-8")
    target = tmp_path / "out.html"
    assert main([str(listing), "--export", str(target)]) == 0
    assert "4000: add x0,xzr,#1" in target.read_text(encoding="utf-8")


def test_headless_export_of_missing_file_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main([str(tmp_path / "gone.lst"), "--export"]) == 1
    assert not (tmp_path / "web_export.html").exists()


def test_export_needs_a_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["--export"]) == 2


@pytest.mark.parametrize("option", ["--pc-start", "--pc-end", "--sp-start"])
def test_negative_address_option_exits(option):
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args([f"{option}=-16"])
