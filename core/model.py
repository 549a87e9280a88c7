from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from core.machine import INSTRUCTION_SIZE


@dataclass(frozen=True)
class Operand:
    type: str  # reg, zr, imm, mem, label, unsupported
    value: Union[int, str, Tuple[int, int]]
    text: str


@dataclass(frozen=True)
class Instruction:
    text: str
    mnemonic: str
    operands: List[Operand]


@dataclass
class Listing:
    code_start: Optional[int]
    lines: List[str] = field(default_factory=list)
    # label name -> index into lines
    labels: Dict[str, int] = field(default_factory=dict)

    def get_label(self, name: str) -> Optional[int]:
        index = self.labels.get(name.lower())
        if index is None or self.code_start is None:
            return None
        return self.code_start + index * INSTRUCTION_SIZE
