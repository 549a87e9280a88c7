"""Static HTML export of a session.

The exported page is self-contained (inline CSS, no scripts, no external
resources) and mirrors the four panels of the desktop window. Its controls
are placeholders: the page states that it cannot execute anything.
"""
from __future__ import annotations

import logging
import os
import tempfile
from html import escape
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from core.session import SessionController

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "web_export.html"

STYLE = """\
    body { font-family: monospace; background-color: #222; color: #ddd; }
    .container { display: flex; }
    .panel { margin: 10px; padding: 10px; background-color: #333; border: 1px solid #555; }
    .highlight { color: yellow; font-weight: bold; }
    .used { color: #6f6; }
    button { background-color: #444; color: white; border: 1px solid #666; padding: 5px 10px; }
    input { background-color: #444; color: white; border: 1px solid #666; padding: 5px; }
"""

STATIC_NOTE = "Note: This is a static HTML export. For full functionality, use the desktop application."


class SnapshotError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


def _code_panel(session: "SessionController") -> List[str]:
    lines = ["    <div class='panel' id='code-panel'>", "      <h3>Code</h3>"]
    code_lines = session.all_code_lines()
    if not session.is_initialized:
        body = "No code loaded"
    else:
        rows = []
        for line in code_lines:
            text = f"{line.address:04X}: {escape(line.text)}"
            rows.append(f"<span class='highlight'>{text}</span>" if line.current else text)
        body = "\n".join(rows)
    lines.append(f"      <pre id='code-display'>{body}</pre>")
    lines.append("    </div>")
    return lines


def _register_panel(session: "SessionController") -> List[str]:
    lines = ["    <div class='panel'>", "      <h3>Registers</h3>", "      <div id='register-display'>"]
    rows = session.register_table()
    if not rows:
        lines.append("        <div>Not initialized</div>")
    for row in rows:
        css = " class='used'" if row.used else ""
        lines.append(f"        <div{css}>{row.name}: 0x{row.value:x}</div>")
    lines.extend(["      </div>", "    </div>"])
    return lines


def _memory_panel(session: "SessionController") -> List[str]:
    lines = ["    <div class='panel'>", "      <h3>Memory (Stack)</h3>", "      <div id='memory-display'>"]
    rows = session.stack_rows()
    if not rows:
        lines.append("        <div>No memory to display</div>")
    for row in rows:
        lines.append(f"        <div>0x{row.address:x}: 0x{row.value:x}</div>")
    lines.extend(["      </div>", "    </div>"])
    return lines


def _input_panel() -> List[str]:
    return [
        "    <div class='panel'>",
        "      <h3>User Input</h3>",
        "      <div>",
        "        <label for='reg-input'>Register:</label><br>",
        "        <input type='text' id='reg-input' placeholder='0-32' disabled><br><br>",
        "        <label for='mem-input'>Memory Address:</label><br>",
        "        <input type='text' id='mem-input' placeholder='0xAddress' disabled><br><br>",
        "        <label for='val-input'>Value:</label><br>",
        "        <input type='text' id='val-input' placeholder='Value' disabled><br><br>",
        "        <button id='set-button' disabled>Set Value</button>",
        "      </div>",
        "    </div>",
    ]


def render_snapshot(session: "SessionController") -> str:
    """Render the session as an HTML document. Reads only."""
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        "  <meta charset='utf-8'>",
        "  <title>Assembly Visualizer</title>",
        "  <style>",
        STYLE.rstrip("\n"),
        "  </style>",
        "</head>",
        "<body>",
        "  <div class='container'>",
    ]
    parts.extend(_code_panel(session))
    parts.extend(_register_panel(session))
    parts.extend(_memory_panel(session))
    parts.extend(_input_panel())
    parts.append("  </div>")
    parts.extend(
        [
            "  <div>",
            "    <button id='step-button' disabled>Step</button>",
            "    <button id='reset-button' disabled>Reset</button>",
            "    <button id='load-button' disabled>Load File</button>",
            "  </div>",
            f"  <p><i>{STATIC_NOTE}</i></p>",
            "</body>",
            "</html>",
        ]
    )
    return "\n".join(parts) + "\n"


def export_snapshot(session: "SessionController", path: Optional[Path | str] = None) -> Path:
    """Write the snapshot, replacing any earlier export at the same path.

    The document is written to a temporary file next to the target and
    moved into place, so a failed export never leaves a truncated file
    under the export name.
    """
    target = Path(path) if path is not None else Path.cwd() / (session.export_name or DEFAULT_EXPORT_NAME)
    document = render_snapshot(session)
    tmp_name: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False
        ) as handle:
            tmp_name = handle.name
            handle.write(document)
        os.replace(tmp_name, target)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise SnapshotError(f"Failed to export snapshot to {target}: {exc}", target) from exc
    logger.info("Exported to %s", target)
    return target
