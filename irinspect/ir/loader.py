"""Build :class:`~irinspect.ir.model.Module` objects from textual IR.

Parsing is left to LLVM through ``llvmlite.binding``.  The loader walks the
parsed module (globals, functions, arguments, blocks, instructions and their
operands) and copies what the reports need into the plain model classes, so
the reporters never hold on to native handles.

A few facts the binding does not expose are read back from LLVM's own
printed form of an instruction: comparison predicates, the ``align`` LLVM
always prints on ``alloca``/``load``/``store``, and the allocated type of an
``alloca``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .assembly import IRParseError, parse_assembly
from .datalayout import DataLayout
from .model import (
    Argument,
    BasicBlock,
    Constant,
    ConstantInt,
    Function,
    GlobalVariable,
    Instruction,
    Module,
    OpcodeClass,
    Value,
)


logger = logging.getLogger(__name__)

ICMP_PREDICATES = frozenset({"eq", "ne", "ugt", "uge", "ult", "ule", "sgt", "sge", "slt", "sle"})
FCMP_PREDICATES = frozenset(
    {
        "false",
        "oeq",
        "ogt",
        "oge",
        "olt",
        "ole",
        "one",
        "ord",
        "ueq",
        "ugt",
        "uge",
        "ult",
        "ule",
        "une",
        "uno",
        "true",
    }
)

_MODULE_ID = re.compile(r"^\s*;\s*ModuleID\s*=\s*'(.*)'\s*$", re.MULTILINE)
_DATALAYOUT = re.compile(r'^(\s*target\s+datalayout\s*=\s*)"[^"]*"', re.MULTILINE)
_TYPE_DEFINITION = re.compile(r'^%(?:"[^"]*"|[-\w$.]+) = type .*$', re.MULTILINE)
_ALIGN = re.compile(r",\s*align\s+(\d+)")
_ALLOCA = re.compile(r"=\s*alloca\s+(?:(?:inalloca|swifterror)\s+)*(.*)$")
_BLOCK_LABEL = re.compile(r'^("[^"]*"|[-\w$.]+):')


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split ``text`` on ``separator`` outside brackets and quotes."""

    pieces: List[str] = []
    depth = 0
    in_quote = False
    start = 0
    for index, ch in enumerate(text):
        if ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif ch == separator and depth == 0:
            pieces.append(text[start:index].strip())
            start = index + 1
    tail = text[start:].strip()
    if tail or pieces:
        pieces.append(tail)
    return pieces


def with_data_layout(text: str, data_layout: str) -> str:
    """Return ``text`` with its ``target datalayout`` replaced by ``data_layout``.

    A module without one gets it prepended on the first line, which keeps
    the line numbers of parse errors unchanged.
    """

    if _DATALAYOUT.search(text):
        return _DATALAYOUT.sub(lambda found: f'{found.group(1)}"{data_layout}"', text, count=1)
    return f'target datalayout = "{data_layout}" {text}'


def alignment_of(text: str) -> Optional[int]:
    found = _ALIGN.search(text)
    return int(found.group(1)) if found else None


def allocated_type_of(text: str) -> Optional[str]:
    found = _ALLOCA.search(text)
    if not found:
        return None
    pieces = split_top_level(found.group(1))
    return pieces[0] if pieces else None


def predicate_of(opcode: str, text: str) -> Optional[str]:
    names = ICMP_PREDICATES if opcode == "icmp" else FCMP_PREDICATES
    _, _, tail = text.partition(f"{opcode} ")
    for word in tail.split():
        if word in names:
            return word
    return None


def _header_line(text: str) -> Optional[str]:
    for line in text.splitlines():
        line = line.strip()
        if line.startswith(("define ", "declare ")):
            return line[:-2] if line.endswith(" {") else line
    return None


class ModuleBuilder:
    """Copy one parsed ``llvmlite`` module into the report model."""

    def __init__(self, source, name: str) -> None:
        self.source = source
        self.name = name
        self.values: Dict[object, Value] = {}

    def build(self) -> Module:
        source = self.source
        module = Module(
            name=self.name,
            data_layout=DataLayout(source.data_layout, _TYPE_DEFINITION.findall(str(source))),
            source_filename=source.source_file or None,
            target_triple=source.triple or None,
        )
        for variable in source.global_variables:
            module.globals.append(self._global(variable))
        defined: List[Tuple[object, Function]] = []
        for function_ref in source.functions:
            function = module.add_function(self._function(function_ref))
            if not function_ref.is_declaration:
                defined.append((function_ref, function))
        for function_ref, function in defined:
            self._body(function_ref, function)
            logger.debug("@%s: %d blocks", function.name, len(function))
        return module

    def _global(self, ref) -> GlobalVariable:
        variable = GlobalVariable(
            type=str(ref.type),
            name=ref.name,
            text=str(ref).strip(),
            value_type=str(ref.global_value_type),
        )
        self.values[ref] = variable
        return variable

    def _function(self, ref) -> Function:
        signature = ref.global_value_type
        return_type = next(iter(signature.elements))
        arguments = [
            Argument(type=str(argument.type), name=argument.name or None, text=str(argument).strip())
            for argument in ref.arguments
        ]
        function = Function(
            type=str(ref.type),
            name=ref.name,
            text=_header_line(str(ref)),
            return_type=str(return_type),
            arguments=arguments,
            vararg=signature.is_function_vararg,
        )
        self.values[ref] = function
        for argument_ref, argument in zip(ref.arguments, arguments):
            self.values[argument_ref] = argument
        return function

    def _body(self, ref, function: Function) -> None:
        pending: List[Tuple[object, Instruction]] = []
        for block_ref in ref.blocks:
            block = function.append(BasicBlock(name=block_ref.name or None))
            label = _BLOCK_LABEL.match(str(block_ref).lstrip())
            block.text = f"label %{label.group(1)}" if label else None
            self.values[block_ref] = block
            for instruction_ref in block_ref.instructions:
                instruction = block.append(
                    Instruction(
                        type=str(instruction_ref.type),
                        name=instruction_ref.name or None,
                        text=str(instruction_ref).strip(),
                        opcode=instruction_ref.opcode,
                    )
                )
                self.values[instruction_ref] = instruction
                pending.append((instruction_ref, instruction))
        # operands may refer to values defined further down (phi, branches)
        for instruction_ref, instruction in pending:
            self._fill(instruction_ref, instruction)

    def _fill(self, ref, instruction: Instruction) -> None:
        operands = [self._operand(operand) for operand in ref.operands]
        instruction.operands = operands
        text = instruction.text or ""
        kind = instruction.kind
        if kind is OpcodeClass.UNKNOWN:
            logger.warning("@%s: unknown opcode '%s'", instruction.block.function.name, instruction.opcode)
        if kind in (OpcodeClass.ALLOCA, OpcodeClass.LOAD, OpcodeClass.STORE):
            instruction.align = alignment_of(text)
        if kind is OpcodeClass.ALLOCA:
            instruction.allocated_type = allocated_type_of(text)
        elif kind is OpcodeClass.COMPARE:
            instruction.predicate = predicate_of(instruction.opcode, text)
        elif kind is OpcodeClass.CALL and operands:
            instruction.callee = operands[-1]
        if kind is OpcodeClass.BRANCH and len(operands) == 3:
            # br keeps its targets as [condition, false, true]
            instruction.successors = [operands[2], operands[1]]
        else:
            instruction.successors = [operand for operand in operands if isinstance(operand, BasicBlock)]

    def _operand(self, ref) -> Value:
        known = self.values.get(ref)
        if known is not None:
            return known
        type_text = str(ref.type)
        text = str(ref).strip()
        literal = text[len(type_text):].strip() if text.startswith(f"{type_text} ") else text
        if ref.value_kind.name == "constant_int":
            return ConstantInt(
                type=type_text,
                text=text,
                literal=literal,
                value=ref.get_constant_value(signed_int=True),
            )
        return Constant(type=type_text, text=text, literal=literal)


def parse_module(text: str, *, name: Optional[str] = None, data_layout: Optional[str] = None) -> Module:
    """Parse assembly ``text`` into a module.

    ``name`` defaults to the ``; ModuleID`` comment when present.  A
    ``data_layout`` string replaces the module's own ``target datalayout``.
    """

    if name is None:
        found = _MODULE_ID.search(text)
        name = found.group(1) if found else "<string>"
    if data_layout is not None:
        text = with_data_layout(text, data_layout)
    return ModuleBuilder(parse_assembly(text), name).build()


def load_module(path: Path, *, data_layout: Optional[str] = None) -> Module:
    """Read and parse an ``.ll`` file; the module is named after ``path``."""

    return parse_module(path.read_text("utf-8"), name=str(path), data_layout=data_layout)


__all__ = [
    "IRParseError",
    "ModuleBuilder",
    "alignment_of",
    "allocated_type_of",
    "load_module",
    "parse_module",
    "predicate_of",
    "split_top_level",
    "with_data_layout",
]
