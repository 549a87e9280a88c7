from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from core.textfield import MAX_INPUT_LENGTH, EditKey, TextFieldEditor


class FieldId(Enum):
    REGISTER = "register"
    MEMORY = "memory"
    VALUE = "value"


class FieldRole(Enum):
    REGISTER_INDEX = "register-index"
    MEMORY_ADDRESS = "memory-address"
    RAW_VALUE = "raw-value"


FIELD_ORDER = [FieldId.REGISTER, FieldId.MEMORY, FieldId.VALUE]

FIELD_LABELS = {
    FieldId.REGISTER: "Register",
    FieldId.MEMORY: "Memory Address",
    FieldId.VALUE: "Value",
}

FIELD_ROLES = {
    FieldId.REGISTER: FieldRole.REGISTER_INDEX,
    FieldId.MEMORY: FieldRole.MEMORY_ADDRESS,
    FieldId.VALUE: FieldRole.RAW_VALUE,
}

FIELD_PLACEHOLDERS = {
    FieldId.REGISTER: "0-32",
    FieldId.MEMORY: "0xAddress",
    FieldId.VALUE: "Value",
}


@dataclass
class FieldDescriptor:
    id: FieldId
    label: str
    editor: TextFieldEditor
    role: FieldRole
    active: bool = False
    visible: bool = False


@dataclass(frozen=True)
class FieldState:
    id: FieldId
    label: str
    text: str
    cursor: int
    active: bool
    visible: bool
    role: FieldRole


class FieldSet:
    def __init__(self, capacity: int = MAX_INPUT_LENGTH) -> None:
        self._fields: Dict[FieldId, FieldDescriptor] = {
            field_id: FieldDescriptor(
                id=field_id,
                label=FIELD_LABELS[field_id],
                editor=TextFieldEditor(capacity),
                role=FIELD_ROLES[field_id],
            )
            for field_id in FIELD_ORDER
        }
        self._active: Optional[FieldId] = None

    def field(self, field_id: FieldId) -> FieldDescriptor:
        return self._fields[field_id]

    def editor(self, field_id: FieldId) -> TextFieldEditor:
        return self._fields[field_id].editor

    def text(self, field_id: FieldId) -> str:
        return self._fields[field_id].editor.text

    def active_field(self) -> Optional[FieldId]:
        return self._active

    def activate(self, field_id: Optional[FieldId]) -> None:
        if self._active is not None:
            self._fields[self._active].active = False
        self._active = field_id
        if field_id is not None:
            self._fields[field_id].active = True

    def release(self) -> None:
        self.activate(None)

    def cycle_focus(self) -> FieldId:
        if self._active is None:
            target = FIELD_ORDER[0]
        else:
            index = FIELD_ORDER.index(self._active)
            target = FIELD_ORDER[(index + 1) % len(FIELD_ORDER)]
        self.activate(target)
        return target

    def dispatch_char(self, ch: str) -> bool:
        if self._active is None:
            return False
        return self._fields[self._active].editor.insert(ch)

    def dispatch_text(self, text: str) -> int:
        if self._active is None:
            return 0
        return self._fields[self._active].editor.insert_text(text)

    def dispatch_key(self, key: EditKey) -> bool:
        if self._active is None:
            return False
        if key == EditKey.TAB:
            self.cycle_focus()
            return True
        return self._fields[self._active].editor.apply(key)

    def clear_all(self) -> None:
        for descriptor in self._fields.values():
            descriptor.editor.clear()

    def show_all(self) -> None:
        for descriptor in self._fields.values():
            descriptor.visible = True

    def states(self) -> List[FieldState]:
        return [
            FieldState(
                id=descriptor.id,
                label=descriptor.label,
                text=descriptor.editor.text,
                cursor=descriptor.editor.cursor,
                active=descriptor.active,
                visible=descriptor.visible,
                role=descriptor.role,
            )
            for descriptor in (self._fields[field_id] for field_id in FIELD_ORDER)
        ]
