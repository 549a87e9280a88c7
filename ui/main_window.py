from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from PyQt6.QtCore import QRect, QSize, Qt
from PyQt6.QtGui import QColor, QFont, QFontDatabase, QPainter, QPalette
from PyQt6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QStatusBar,
    QTableWidget,
    QTableWidgetItem,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from core.config import ConfigError, VisualizerConfig, default_config_path, load_config, save_config
from core.emulator import Emulator
from core.fields import FIELD_PLACEHOLDERS, FieldId, FieldState
from core.instructions import get_instruction_defs
from core.machine import MachineError
from core.numbers import parse_address
from core.session import SessionController, SessionError
from core.snapshot import SnapshotError
from core.textfield import EditKey

logger = logging.getLogger(__name__)

KEY_MAP: Dict[int, EditKey] = {
    Qt.Key.Key_Backspace.value: EditKey.BACKSPACE,
    Qt.Key.Key_Delete.value: EditKey.DELETE,
    Qt.Key.Key_Left.value: EditKey.LEFT,
    Qt.Key.Key_Right.value: EditKey.RIGHT,
    Qt.Key.Key_Home.value: EditKey.HOME,
    Qt.Key.Key_End.value: EditKey.END,
    Qt.Key.Key_Tab.value: EditKey.TAB,
    Qt.Key.Key_Return.value: EditKey.RETURN,
    Qt.Key.Key_Enter.value: EditKey.RETURN,
}

TEXT_FG = QColor("#f8f8f2")
USED_FG = QColor("#50fa7b")
HIGHLIGHT_FG = QColor("#f1fa8c")
PANEL_BG = QColor("#1e1f29")
BASE_BG = QColor("#282a36")
BORDER = QColor("#3c3f58")


class LogPanelHandler(logging.Handler):
    def __init__(self, output: QPlainTextEdit) -> None:
        super().__init__()
        self.output = output
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.output.appendPlainText(self.format(record))


class InputFieldWidget(QWidget):
    """Paints one core text field; keystrokes go through the session, not Qt."""

    def __init__(self, window: "MainWindow", field_id: FieldId) -> None:
        super().__init__(window)
        self.window_ref = window
        self.field_id = field_id
        self.state: Optional[FieldState] = None
        self.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.setMinimumHeight(30)
        self.setToolTip(FIELD_PLACEHOLDERS[field_id])

    def sizeHint(self) -> QSize:
        return QSize(180, 30)

    def set_state(self, state: FieldState) -> None:
        self.state = state
        self.update()

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.window_ref.activate_field(self.field_id)

    def paintEvent(self, event) -> None:
        if not self.state or not self.state.visible:
            return
        painter = QPainter(self)
        rect = self.rect().adjusted(0, 0, -1, -1)
        painter.fillRect(rect, QColor("#44475a") if self.state.active else BASE_BG)
        painter.setPen(QColor("#bd93f9") if self.state.active else BORDER)
        painter.drawRect(rect)
        metrics = self.fontMetrics()
        text_rect = QRect(5, 0, rect.width() - 10, rect.height())
        if self.state.text:
            painter.setPen(TEXT_FG)
            painter.drawText(text_rect, Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, self.state.text)
        else:
            painter.setPen(QColor("#6272a4"))
            painter.drawText(
                text_rect, Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, FIELD_PLACEHOLDERS[self.field_id]
            )
        if self.state.active:
            cursor_x = 5 + metrics.horizontalAdvance(self.state.text[: self.state.cursor])
            painter.setPen(TEXT_FG)
            painter.drawLine(cursor_x, 5, cursor_x, rect.height() - 5)


class LoadDialog(QDialog):
    def __init__(self, config: VisualizerConfig, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Load Listing")
        self.config = config
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QFormLayout(self)

        path_row = QHBoxLayout()
        self.path_edit = QLineEdit(self.config.last_file or "")
        self.path_edit.setPlaceholderText("listing or assembly source")
        browse = QToolButton()
        browse.setText("...")
        browse.clicked.connect(self._browse)
        path_row.addWidget(self.path_edit)
        path_row.addWidget(browse)
        layout.addRow("File", path_row)

        self.pc_start_edit = QLineEdit(f"0x{self.config.pc_start:X}")
        self.pc_start_edit.setPlaceholderText("0x4000")
        layout.addRow("Starting PC", self.pc_start_edit)
        self.pc_end_edit = QLineEdit(f"0x{self.config.pc_end:X}")
        self.pc_end_edit.setPlaceholderText("0x7FFF")
        layout.addRow("Ending PC", self.pc_end_edit)
        self.sp_start_edit = QLineEdit(f"0x{self.config.sp_start:X}")
        self.sp_start_edit.setPlaceholderText("0xFF00")
        layout.addRow("Starting SP", self.sp_start_edit)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _browse(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open listing", "", "Listings (*.s *.lst *.txt);;All Files (*)")
        if path:
            self.path_edit.setText(path)

    def get_data(self) -> Optional[tuple[str, int, int, int]]:
        if self.exec() != QDialog.DialogCode.Accepted:
            return None
        path = self.path_edit.text().strip()
        if not path:
            QMessageBox.warning(self, "Missing File", "Choose a listing to load.")
            return None
        values = []
        for name, edit in (
            ("Starting PC", self.pc_start_edit),
            ("Ending PC", self.pc_end_edit),
            ("Starting SP", self.sp_start_edit),
        ):
            try:
                values.append(parse_address(edit.text()))
            except ValueError:
                QMessageBox.warning(self, "Invalid Address", f"{name} must be a non-negative decimal or hex number.")
                return None
        return path, values[0], values[1], values[2]


class MainWindow(QMainWindow):
    def __init__(
        self,
        session: SessionController,
        config: Optional[VisualizerConfig] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Assembly Visualizer")
        self.resize(1300, 800)

        self.session = session
        self.config = config or VisualizerConfig()
        self.config_path = config_path
        self.run_state = "Not loaded"
        self.input_widgets: Dict[FieldId, InputFieldWidget] = {}

        self._build_ui()
        self._apply_theme()
        self.log_handler = LogPanelHandler(self.log_output)
        logging.getLogger().addHandler(self.log_handler)
        self.session.fields.show_all()
        self._update_views()

    def _build_ui(self) -> None:
        font = self._default_font()
        self.setFont(font)

        central = QWidget()
        root = QVBoxLayout(central)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self._build_panel("Code:", self._build_code_view()))
        splitter.addWidget(self._build_panel("Registers:", self._build_register_table()))
        splitter.addWidget(self._build_panel("Memory (Stack):", self._build_stack_table()))
        splitter.addWidget(self._build_panel("User Input:", self._build_input_area()))
        splitter.setSizes([450, 300, 300, 200])

        vertical = QSplitter(Qt.Orientation.Vertical)
        vertical.addWidget(splitter)
        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)
        self.log_output.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        vertical.addWidget(self._build_panel("Log:", self.log_output))
        vertical.setSizes([620, 140])
        root.addWidget(vertical, 1)
        root.addLayout(self._build_controls())

        self.setCentralWidget(central)
        self.state_label = QLabel(self.run_state)
        self.pc_label = QLabel("PC: -")
        status = QStatusBar()
        status.addWidget(self.state_label)
        status.addPermanentWidget(self.pc_label)
        self.setStatusBar(status)

    def _build_panel(self, title: str, content: QWidget) -> QWidget:
        panel = QWidget()
        layout = QVBoxLayout(panel)
        layout.setContentsMargins(4, 4, 4, 4)
        label = QLabel(title)
        bold = QFont(self.font())
        bold.setBold(True)
        label.setFont(bold)
        layout.addWidget(label)
        layout.addWidget(content, 1)
        return panel

    def _build_code_view(self) -> QWidget:
        self.code_view = QListWidget()
        self.code_view.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        self.code_view.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        return self.code_view

    def _build_register_table(self) -> QWidget:
        self.register_table = QTableWidget(17, 4)
        self.register_table.setHorizontalHeaderLabels(["Reg", "Value", "Reg", "Value"])
        self._configure_table(self.register_table)
        return self.register_table

    def _build_stack_table(self) -> QWidget:
        self.stack_table = QTableWidget(0, 2)
        self.stack_table.setHorizontalHeaderLabels(["Address", "Value"])
        self._configure_table(self.stack_table)
        return self.stack_table

    def _configure_table(self, table: QTableWidget) -> None:
        table.verticalHeader().setVisible(False)
        table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        table.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        table.setFocusPolicy(Qt.FocusPolicy.NoFocus)

    def _build_input_area(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(0, 0, 0, 0)
        for state in self.session.field_states():
            layout.addWidget(QLabel(state.label))
            field_widget = InputFieldWidget(self, state.id)
            self.input_widgets[state.id] = field_widget
            layout.addWidget(field_widget)
        hint = QLabel("Enter register number (0-32)\nor memory address (hex)\nand value to set.")
        hint.setWordWrap(True)
        layout.addWidget(hint)
        self.set_value_button = QPushButton("Set Value")
        self.set_value_button.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.set_value_button.clicked.connect(self.commit_value)
        layout.addWidget(self.set_value_button)
        layout.addStretch(1)
        return widget

    def _build_controls(self) -> QHBoxLayout:
        layout = QHBoxLayout()
        layout.setAlignment(Qt.AlignmentFlag.AlignLeft)
        for text, handler, tooltip in (
            ("Step", self.step_once, "Step (Space)"),
            ("Reset", self.reset_state, "Reset (R)"),
            ("Load File", self.load_file, "Load File (L)"),
            ("Export to Web", self.export_snapshot, "Write a static HTML snapshot"),
        ):
            button = QPushButton(text)
            button.setMinimumSize(120, 40)
            button.setToolTip(tooltip)
            button.setFocusPolicy(Qt.FocusPolicy.NoFocus)
            button.clicked.connect(handler)
            layout.addWidget(button)
        layout.addStretch(1)
        return layout

    def _default_font(self) -> QFont:
        preferred = [
            "JetBrains Mono",
            "Cascadia Code",
            "Fira Code",
            "Source Code Pro",
            "DejaVu Sans Mono",
            "Consolas",
            "Menlo",
        ]
        available = set(QFontDatabase.families())
        for name in preferred:
            if name in available:
                return QFont(name, 11)
        return QFont("Monospace", 11)

    def _apply_theme(self) -> None:
        table_style = (
            "QTableWidget, QListWidget, QPlainTextEdit {"
            f" background-color: {PANEL_BG.name()};"
            f" color: {TEXT_FG.name()};"
            f" gridline-color: {BORDER.name()};"
            "}"
            "QHeaderView::section {"
            f" background-color: {BORDER.name()};"
            f" color: {TEXT_FG.name()};"
            " padding: 4px;"
            "}"
        )
        for widget in (self.code_view, self.register_table, self.stack_table, self.log_output):
            widget.setStyleSheet(table_style)
        palette = self.palette()
        palette.setColor(QPalette.ColorRole.Window, BASE_BG)
        palette.setColor(QPalette.ColorRole.WindowText, TEXT_FG)
        palette.setColor(QPalette.ColorRole.Button, PANEL_BG)
        palette.setColor(QPalette.ColorRole.ButtonText, TEXT_FG)
        self.setPalette(palette)

    def activate_field(self, field_id: FieldId) -> None:
        self.session.activate_field(field_id)
        self._update_input_fields()

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        key = KEY_MAP.get(event.key())
        if self.session.fields.active_field() is not None:
            if key is not None:
                self.session.handle_key(key)
            elif event.text() and event.text().isprintable():
                self.session.handle_text(event.text())
            self._update_views()
            return
        if event.key() == Qt.Key.Key_Space.value:
            self.step_once()
        elif event.key() == Qt.Key.Key_R.value:
            self.reset_state()
        elif event.key() == Qt.Key.Key_L.value:
            self.load_file()
        elif event.key() == Qt.Key.Key_Escape.value:
            self.close()
        else:
            super().keyPressEvent(event)

    def focusNextPrevChild(self, next: bool) -> bool:  # type: ignore[override]
        # Tab cycles the input fields instead of moving Qt focus.
        if self.session.fields.active_field() is not None:
            self.session.handle_key(EditKey.TAB)
            self._update_input_fields()
            return True
        return super().focusNextPrevChild(next)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if self.session.fields.active_field() is not None:
            self.session.release_focus()
            self._update_input_fields()
        super().mousePressEvent(event)

    def load_file(self) -> None:
        data = LoadDialog(self.config, self).get_data()
        if data is None:
            return
        self.load_path(*data)

    def load_path(self, path: str, pc_start: int, pc_end: int, sp_start: int) -> bool:
        try:
            self.session.load(path, pc_start, pc_end, sp_start)
        except MachineError as exc:
            logger.error("Load failed: %s", exc.message)
            self.set_state("Error")
            self._update_views()
            return False
        self.config = self.config.with_load(path, pc_start, pc_end, sp_start)
        self.setWindowTitle(f"Assembly Visualizer - {Path(path).name}")
        self.set_state("Ready")
        self._update_views()
        return True

    def step_once(self) -> None:
        try:
            outcome = self.session.step()
        except (MachineError, SessionError) as exc:
            logger.error("HALT due to error: %s", exc.message)
            self.set_state("Error")
            self._update_views()
            return
        if outcome.halted:
            self.set_state("Halted")
        elif outcome.executed:
            self.set_state("Paused")
        self._update_views()

    def reset_state(self) -> None:
        try:
            reset = self.session.reset()
        except MachineError as exc:
            logger.error("Reset failed: %s", exc.message)
            self.set_state("Error")
            self._update_views()
            return
        if reset:
            self.set_state("Ready")
        self._update_views()

    def commit_value(self) -> None:
        self.session.commit_value()
        self._update_views()

    def export_snapshot(self) -> None:
        try:
            self.session.export_snapshot()
        except SnapshotError as exc:
            logger.error(exc.message)
            QMessageBox.warning(self, "Export Failed", exc.message)

    def _update_views(self) -> None:
        self._update_code_view()
        self._update_register_view()
        self._update_stack_view()
        self._update_input_fields()
        self._update_status()

    def _update_code_view(self) -> None:
        self.code_view.clear()
        if not self.session.is_initialized:
            self.code_view.addItem("No code loaded")
            return
        for line in self.session.code_lines_in_view():
            item = QListWidgetItem(f"{line.address:04X}: {line.text}")
            if line.current:
                item.setForeground(HIGHLIGHT_FG)
                bold = QFont(self.font())
                bold.setBold(True)
                item.setFont(bold)
            self.code_view.addItem(item)

    def _update_register_view(self) -> None:
        self.register_table.clearContents()
        rows = self.session.register_table()
        if not rows:
            self.register_table.setItem(0, 0, QTableWidgetItem("Not initialized"))
            return
        for row in rows:
            table_row, column = divmod(row.index, 2)
            name_item = QTableWidgetItem(row.name)
            value_item = QTableWidgetItem(f"0x{row.value:x}")
            value_item.setToolTip(str(row.value))
            if row.used:
                name_item.setForeground(USED_FG)
                value_item.setForeground(USED_FG)
            self.register_table.setItem(table_row, column * 2, name_item)
            self.register_table.setItem(table_row, column * 2 + 1, value_item)

    def _update_stack_view(self) -> None:
        rows = self.session.stack_rows()
        if not rows:
            self.stack_table.setRowCount(1)
            self.stack_table.setItem(0, 0, QTableWidgetItem("No memory to display"))
            self.stack_table.setItem(0, 1, QTableWidgetItem(""))
            return
        self.stack_table.setRowCount(len(rows))
        sp = self.session.machine.registers[31]
        for i, row in enumerate(rows):
            addr_item = QTableWidgetItem(f"0x{row.address:x}")
            value_item = QTableWidgetItem(f"0x{row.value:x}")
            if row.address <= sp < row.address + 8:
                addr_item.setForeground(QColor("#ff79c6"))
                value_item.setForeground(QColor("#ff79c6"))
            self.stack_table.setItem(i, 0, addr_item)
            self.stack_table.setItem(i, 1, value_item)

    def _update_input_fields(self) -> None:
        for state in self.session.field_states():
            self.input_widgets[state.id].set_state(state)

    def _update_status(self) -> None:
        self.state_label.setText(self.run_state)
        if self.session.is_initialized:
            self.pc_label.setText(f"PC: 0x{self.session.pc:x}")
        else:
            self.pc_label.setText("PC: -")

    def set_state(self, state: str) -> None:
        self.run_state = state
        self._update_status()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        logging.getLogger().removeHandler(self.log_handler)
        if self.config_path is not None:
            try:
                save_config(self.config, self.config_path)
            except ConfigError as exc:
                logger.warning(exc.message)
        super().closeEvent(event)


def _address(text: str) -> int:
    try:
        return parse_address(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a non-negative decimal or hex address: {text!r}") from exc


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="asm-visualizer", description="Step through an instruction listing.")
    parser.add_argument("file", nargs="?", help="listing to load on startup")
    parser.add_argument("--pc-start", type=_address, help="entry point (default from config, 0x4000)")
    parser.add_argument("--pc-end", type=_address, help="address at which stepping stops (default 0x7FFF)")
    parser.add_argument("--sp-start", type=_address, help="initial stack pointer (default 0xFF00)")
    parser.add_argument("--config", type=Path, help=f"config file (default ./{default_config_path().name})")
    parser.add_argument("--export", metavar="PATH", nargs="?", const="", help="write a snapshot and exit")
    parser.add_argument("--list-instructions", action="store_true", help="print the supported instructions and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    if args.list_instructions:
        for defn in get_instruction_defs():
            print(f"{defn.syntax:<24} {defn.summary}")
        return 0
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error(exc.message)
        return 2
    config_path = args.config or default_config_path()
    session = SessionController.from_config(Emulator(), config)
    pc_start = config.pc_start if args.pc_start is None else args.pc_start
    pc_end = config.pc_end if args.pc_end is None else args.pc_end
    sp_start = config.sp_start if args.sp_start is None else args.sp_start

    if args.export is not None:
        if not args.file:
            logger.error("--export needs a listing to load")
            return 2
        try:
            session.load(args.file, pc_start, pc_end, sp_start)
            session.export_snapshot(args.export or None)
        except (MachineError, SnapshotError) as exc:
            logger.error(exc.message)
            return 1
        return 0

    app = QApplication(sys.argv[:1])
    window = MainWindow(session, config, config_path)
    if args.file:
        window.load_path(args.file, pc_start, pc_end, sp_start)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
