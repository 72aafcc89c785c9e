"""Read-only handles describing an IR module.

The classes intentionally mirror the shape of the LLVM object model: a
:class:`Module` owns functions, a :class:`Function` owns arguments and basic
blocks, a :class:`BasicBlock` owns instructions.  Back references
(``block.function``, ``instruction.block``) are plain attributes so reporters
can walk the graph in either direction without copying anything.  Objects use
identity equality because two blocks with the same contents are still
different blocks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional

from .datalayout import DataLayout


_PLAIN_NAME = re.compile(r"^[-a-zA-Z$._][-a-zA-Z$._0-9]*$")


def format_reference(sigil: str, name: str) -> str:
    """Render ``name`` the way the assembly printer would, quoting if needed."""

    if _PLAIN_NAME.match(name):
        return f"{sigil}{name}"
    escaped = "".join(
        ch if 0x20 <= ord(ch) < 0x7F and ch not in '"\\' else f"\\{ord(ch):02X}"
        for ch in name
    )
    return f'{sigil}"{escaped}"'


class OpcodeClass(Enum):
    """Structural family an opcode belongs to."""

    BINARY = auto()
    ALLOCA = auto()
    LOAD = auto()
    STORE = auto()
    CALL = auto()
    BRANCH = auto()
    RETURN = auto()
    COMPARE = auto()
    CAST = auto()
    OPERATOR = auto()
    UNKNOWN = auto()


BINARY_OPCODES = frozenset(
    {
        "add",
        "fadd",
        "sub",
        "fsub",
        "mul",
        "fmul",
        "udiv",
        "sdiv",
        "fdiv",
        "urem",
        "srem",
        "frem",
        "shl",
        "lshr",
        "ashr",
        "and",
        "or",
        "xor",
    }
)

CAST_OPCODES = frozenset(
    {
        "trunc",
        "zext",
        "sext",
        "fptrunc",
        "fpext",
        "fptoui",
        "fptosi",
        "uitofp",
        "sitofp",
        "ptrtoint",
        "inttoptr",
        "bitcast",
        "addrspacecast",
    }
)

# Remaining members of the instruction set.  They are valid operators but have
# no dedicated report layout.
OTHER_OPCODES = frozenset(
    {
        "fneg",
        "getelementptr",
        "phi",
        "select",
        "extractvalue",
        "insertvalue",
        "extractelement",
        "insertelement",
        "shufflevector",
        "freeze",
        "va_arg",
        "landingpad",
        "atomicrmw",
        "cmpxchg",
        "fence",
        "switch",
        "indirectbr",
        "invoke",
        "callbr",
        "resume",
        "unreachable",
        "cleanupret",
        "catchret",
        "catchswitch",
        "catchpad",
        "cleanuppad",
    }
)

_OPCODE_CLASSES: Dict[str, OpcodeClass] = {
    "alloca": OpcodeClass.ALLOCA,
    "load": OpcodeClass.LOAD,
    "store": OpcodeClass.STORE,
    "call": OpcodeClass.CALL,
    "br": OpcodeClass.BRANCH,
    "ret": OpcodeClass.RETURN,
    "icmp": OpcodeClass.COMPARE,
    "fcmp": OpcodeClass.COMPARE,
}
_OPCODE_CLASSES.update({opcode: OpcodeClass.BINARY for opcode in BINARY_OPCODES})
_OPCODE_CLASSES.update({opcode: OpcodeClass.CAST for opcode in CAST_OPCODES})
_OPCODE_CLASSES.update({opcode: OpcodeClass.OPERATOR for opcode in OTHER_OPCODES})


def opcode_class(opcode: str) -> OpcodeClass:
    return _OPCODE_CLASSES.get(opcode, OpcodeClass.UNKNOWN)


# ---------------------------------------------------------------------------
# values
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Value:
    """Anything that can appear as an operand.

    ``type`` is the type's assembly spelling.  ``text`` holds LLVM's printed
    form of the value when the value came from parsed IR; hand-built values
    leave it unset and render from their type and reference instead.
    """

    type: str
    name: Optional[str] = None
    text: Optional[str] = None

    @property
    def has_name(self) -> bool:
        return bool(self.name)

    def reference(self) -> str:
        return format_reference("%", self.name) if self.name else "<badref>"

    def render(self) -> str:
        if self.text:
            return self.text
        return f"{self.type} {self.reference()}"


@dataclass(eq=False)
class Constant(Value):
    """Constant known only by its literal spelling (``null``, ``0.5``, ...)."""

    literal: str = ""

    @property
    def has_name(self) -> bool:
        return False

    def reference(self) -> str:
        return self.literal


_INTEGER_TYPE = re.compile(r"^i(\d+)$")


@dataclass(eq=False)
class ConstantInt(Constant):
    value: int = 0

    @property
    def bits(self) -> int:
        found = _INTEGER_TYPE.match(self.type)
        return int(found.group(1)) if found else 64

    @property
    def signed_value(self) -> int:
        """Value sign-extended from the type's bit width."""

        mask = (1 << self.bits) - 1
        raw = self.value & mask
        if raw >> (self.bits - 1):
            return raw - (1 << self.bits)
        return raw

    def reference(self) -> str:
        if self.bits == 1:
            return "true" if self.value & 1 else "false"
        return str(self.signed_value)


def constant_int(bits: int, value: int) -> ConstantInt:
    return ConstantInt(type=f"i{bits}", value=value)


@dataclass(eq=False)
class GlobalVariable(Value):
    """Global variable; ``text`` is its full definition line."""

    type: str = "ptr"
    value_type: Optional[str] = None

    def reference(self) -> str:
        return format_reference("@", self.name or "")


@dataclass(eq=False)
class Argument(Value):
    index: int = 0
    function: Optional["Function"] = field(default=None, repr=False)


@dataclass(eq=False)
class Instruction(Value):
    """A single instruction.

    ``operands`` follow LLVM's operand order:

    * binary / compare: ``[lhs, rhs]``
    * alloca: ``[count]``
    * load: ``[address]``; store: ``[value, address]``
    * call: ``[arg0, ..., argN, callee]``
    * br: ``[condition, false_block, true_block]`` or ``[block]``
    * ret: ``[value]`` or ``[]``; cast: ``[source]``

    ``successors`` lists branch targets in successor order, so a conditional
    branch has ``[true_block, false_block]``.
    """

    opcode: str = ""
    operands: List[Value] = field(default_factory=list)
    successors: List["BasicBlock"] = field(default_factory=list)
    align: Optional[int] = None
    predicate: Optional[str] = None
    allocated_type: Optional[str] = None
    callee: Optional[Value] = None
    block: Optional["BasicBlock"] = field(default=None, repr=False)

    @property
    def kind(self) -> OpcodeClass:
        return opcode_class(self.opcode)

    @property
    def arguments(self) -> List[Value]:
        if self.kind is OpcodeClass.CALL and self.callee is not None:
            return self.operands[:-1]
        return list(self.operands)

    def render(self) -> str:
        """Full assembly form of the instruction."""

        if self.text:
            return self.text
        head = f"{self.reference()} = " if self.name else ""
        operands = ", ".join(operand.render() for operand in self.operands)
        return f"{head}{self.opcode} {operands}".rstrip()


@dataclass(eq=False)
class BasicBlock(Value):
    """Basic block; ``text`` is its ``label %name`` operand form."""

    type: str = "label"
    instructions: List[Instruction] = field(default_factory=list)
    function: Optional["Function"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        for instruction in self.instructions:
            instruction.block = self

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def append(self, instruction: Instruction) -> Instruction:
        instruction.block = self
        self.instructions.append(instruction)
        return instruction

    @property
    def position(self) -> Optional[int]:
        """1-based index of the block inside its function."""

        if self.function is None:
            return None
        for index, block in enumerate(self.function.blocks, start=1):
            if block is self:
                return index
        return None


@dataclass(eq=False)
class Function(Value):
    """Function; ``text`` is its ``define``/``declare`` header line."""

    type: str = "ptr"
    return_type: str = "void"
    arguments: List[Argument] = field(default_factory=list)
    blocks: List[BasicBlock] = field(default_factory=list)
    vararg: bool = False
    module: Optional["Module"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        for index, argument in enumerate(self.arguments):
            argument.index = index
            argument.function = self
        for block in self.blocks:
            block.function = self

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self.blocks)

    @property
    def entry(self) -> Optional[BasicBlock]:
        return self.blocks[0] if self.blocks else None

    @property
    def back(self) -> Optional[BasicBlock]:
        return self.blocks[-1] if self.blocks else None

    def append(self, block: BasicBlock) -> BasicBlock:
        block.function = self
        self.blocks.append(block)
        return block

    def reference(self) -> str:
        return format_reference("@", self.name or "")


@dataclass(eq=False)
class Module:
    name: str
    functions: List[Function] = field(default_factory=list)
    globals: List[GlobalVariable] = field(default_factory=list)
    data_layout: DataLayout = field(default_factory=DataLayout)
    source_filename: Optional[str] = None
    target_triple: Optional[str] = None

    def __post_init__(self) -> None:
        for function in self.functions:
            function.module = self

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)

    def add_function(self, function: Function) -> Function:
        function.module = self
        self.functions.append(function)
        return function

    def get_function(self, name: str) -> Optional[Function]:
        for function in self.functions:
            if function.name == name:
                return function
        return None


__all__ = [
    "OpcodeClass",
    "BINARY_OPCODES",
    "CAST_OPCODES",
    "OTHER_OPCODES",
    "opcode_class",
    "format_reference",
    "Value",
    "Constant",
    "ConstantInt",
    "constant_int",
    "GlobalVariable",
    "Argument",
    "Instruction",
    "BasicBlock",
    "Function",
    "Module",
]
