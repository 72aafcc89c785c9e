"""Instruction classification.

Every instruction is matched against an ordered table of rules.  A rule looks
at the instruction's opcode class and operand shape and either returns a
:class:`Classification` or ``None`` when the shape is not what it expects.
Rules run from the most specific (binary operations, memory accesses, calls)
to the least specific, so a cast is reported as a cast and not as a generic
operator.  Two fallbacks close the table: every member of the instruction set
is at least an *Other Operator*, and anything else is an *Unknown
Instruction*.  Classification therefore always yields exactly one category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .ir.datalayout import DataLayout, DataLayoutError
from .ir.model import (
    BasicBlock,
    Constant,
    ConstantInt,
    Function,
    Instruction,
    OpcodeClass,
    Value,
)


UNNAMED = "unnamed"

ICMP_PREDICATE_NAMES = {
    "eq": "Equal (==)",
    "ne": "Not Equal (!=)",
    "sgt": "Signed Greater Than (>)",
    "sge": "Signed Greater or Equal (>=)",
    "slt": "Signed Less Than (<)",
    "sle": "Signed Less or Equal (<=)",
}


class InstructionCategory(Enum):
    """Report categories; the value is the (icon, title) pair of the headline."""

    BINARY_OPERATION = ("🔧", "Binary Operation")
    STACK_ALLOCATION = ("📦", "Stack Allocation (alloca)")
    LOAD = ("📥", "Load from Memory")
    STORE = ("📤", "Store to Memory")
    DIRECT_CALL = ("📞", "Function Call")
    INDIRECT_CALL = ("📞", "Indirect Function Call")
    CONDITIONAL_BRANCH = ("🔀", "Conditional Branch")
    UNCONDITIONAL_BRANCH = ("➡️ ", "Unconditional Branch")
    RETURN = ("🔙", "Return Statement")
    RETURN_VOID = ("🔙", "Return Statement (void)")
    COMPARISON = ("⚖️ ", "Comparison Instruction")
    CAST = ("🔄", "Cast Operation")
    OTHER_OPERATOR = ("⚙️ ", "Other Operator")
    UNKNOWN = ("❓", "Unknown Instruction Type")

    @property
    def icon(self) -> str:
        return self.value[0]

    @property
    def title(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class Fact:
    """One ``label: value`` line; a ``None`` value renders a heading."""

    label: str
    value: Optional[str] = None

    def describe(self) -> str:
        if self.value is None:
            return f"{self.label}:"
        return f"{self.label}: {self.value}"


@dataclass(frozen=True)
class Classification:
    category: InstructionCategory
    opcode: str
    detail: Optional[str] = None
    facts: Tuple[Fact, ...] = field(default_factory=tuple)
    signature: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def headline(self) -> str:
        title = f"{self.category.icon} {self.category.title}"
        if self.category is InstructionCategory.DIRECT_CALL:
            return f"{title}: {self.detail}()"
        if self.detail:
            return f"{title}: {self.detail}"
        return title

    def describe_lines(self) -> List[str]:
        """Render the classification as report lines relative to the block gutter."""

        lines = [f"      {self.headline()}"]
        lines.extend(f"         {fact.describe()}" for fact in self.facts)
        lines.extend(f"           • {name} : {type_name}" for name, type_name in self.signature)
        return lines


def display_name(value: Optional[Value]) -> str:
    if value is None or not value.has_name:
        return UNNAMED
    return value.name or UNNAMED


def predicate_name(predicate: Optional[str]) -> str:
    return ICMP_PREDICATE_NAMES.get(predicate or "", "Other")


def _bytes(amount: int) -> str:
    return f"{amount} bytes"


Rule = Callable[[Instruction, DataLayout], Optional[Classification]]


# ---------------------------------------------------------------------------
# rules
# ---------------------------------------------------------------------------


def classify_binary(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.BINARY or len(instruction.operands) != 2:
        return None
    lhs, rhs = instruction.operands
    return Classification(
        InstructionCategory.BINARY_OPERATION,
        instruction.opcode,
        detail=instruction.opcode,
        facts=(Fact("Operand 1", lhs.render()), Fact("Operand 2", rhs.render())),
    )


def allocation_size(instruction: Instruction, layout: DataLayout) -> Optional[int]:
    """Bytes reserved by an ``alloca``; None for dynamic counts or unsized types."""

    if instruction.allocated_type is None:
        return None
    count = instruction.operands[0] if instruction.operands else None
    if count is not None and not isinstance(count, ConstantInt):
        return None
    try:
        element = layout.alloc_size(instruction.allocated_type)
    except DataLayoutError:
        return None
    return element * (count.value if count is not None else 1)


def _alignment(instruction: Instruction) -> str:
    return _bytes(instruction.align) if instruction.align is not None else "unknown"


def classify_alloca(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.ALLOCA or instruction.allocated_type is None:
        return None
    size = allocation_size(instruction, layout)
    return Classification(
        InstructionCategory.STACK_ALLOCATION,
        instruction.opcode,
        facts=(
            Fact("Type", instruction.allocated_type),
            Fact("Size", _bytes(size) if size is not None else "unknown"),
            Fact("Alignment", _alignment(instruction)),
        ),
    )


def classify_load(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.LOAD or len(instruction.operands) != 1:
        return None
    address = instruction.operands[0]
    return Classification(
        InstructionCategory.LOAD,
        instruction.opcode,
        facts=(
            Fact("Source", address.render()),
            Fact("Type", instruction.type),
            Fact("Alignment", _alignment(instruction)),
        ),
    )


def classify_store(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.STORE or len(instruction.operands) != 2:
        return None
    value, address = instruction.operands
    return Classification(
        InstructionCategory.STORE,
        instruction.opcode,
        facts=(
            Fact("Value", value.render()),
            Fact("Destination", address.render()),
            Fact("Alignment", _alignment(instruction)),
        ),
    )


def classify_call(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.CALL or instruction.callee is None:
        return None
    callee = instruction.callee
    if not isinstance(callee, Function):
        return Classification(
            InstructionCategory.INDIRECT_CALL,
            instruction.opcode,
            facts=(Fact("Target", callee.render()),),
        )
    arguments = instruction.arguments
    facts = [Fact("Arguments", str(len(arguments)))]
    facts.extend(Fact(f"Arg {index}", argument.render()) for index, argument in enumerate(arguments, start=1))
    facts.append(Fact("Target Function Signature"))
    return Classification(
        InstructionCategory.DIRECT_CALL,
        instruction.opcode,
        detail=callee.name,
        facts=tuple(facts),
        signature=tuple((display_name(param), param.type) for param in callee.arguments),
    )


def classify_branch(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.BRANCH:
        return None
    successors = instruction.successors
    operands = instruction.operands
    if len(successors) == 2 and len(operands) == 3 and not isinstance(operands[0], BasicBlock):
        true_block, false_block = successors
        return Classification(
            InstructionCategory.CONDITIONAL_BRANCH,
            instruction.opcode,
            facts=(
                Fact("Condition", operands[0].render()),
                Fact("True Block", display_name(true_block)),
                Fact("False Block", display_name(false_block)),
            ),
        )
    if len(successors) == 1 and len(operands) == 1:
        return Classification(
            InstructionCategory.UNCONDITIONAL_BRANCH,
            instruction.opcode,
            facts=(Fact("Target", display_name(successors[0])),),
        )
    return None


def classify_return(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.RETURN:
        return None
    if not instruction.operands:
        return Classification(InstructionCategory.RETURN_VOID, instruction.opcode)
    value = instruction.operands[0]
    facts = [Fact("Type", value.type)]
    if value.has_name:
        facts.append(Fact("Value", value.name))
    else:
        facts.append(Fact("Value", "(unnamed temporary)"))
        if isinstance(value, Instruction):
            facts.append(Fact("Source", value.render()))
        elif isinstance(value, ConstantInt):
            facts.append(Fact("Constant", str(value.signed_value)))
        elif isinstance(value, Constant):
            facts.append(Fact("Constant", value.reference()))
        else:
            facts.append(Fact("Source", value.render()))
    return Classification(InstructionCategory.RETURN, instruction.opcode, facts=tuple(facts))


def classify_comparison(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.COMPARE or len(instruction.operands) != 2:
        return None
    facts: List[Fact] = []
    # fcmp predicates have no names
    if instruction.opcode == "icmp":
        facts.append(Fact("Type", "Integer Comparison"))
        facts.append(Fact("Predicate", predicate_name(instruction.predicate)))
    lhs, rhs = instruction.operands
    facts.append(Fact("Left Operand", lhs.render()))
    facts.append(Fact("Right Operand", rhs.render()))
    return Classification(InstructionCategory.COMPARISON, instruction.opcode, facts=tuple(facts))


def classify_cast(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is not OpcodeClass.CAST or len(instruction.operands) != 1:
        return None
    source = instruction.operands[0]
    return Classification(
        InstructionCategory.CAST,
        instruction.opcode,
        detail=instruction.opcode,
        facts=(
            Fact("From", source.type),
            Fact("To", instruction.type),
            Fact("Source", source.render()),
        ),
    )


def classify_operator(instruction: Instruction, layout: DataLayout) -> Optional[Classification]:
    if instruction.kind is OpcodeClass.UNKNOWN:
        return None
    facts = [Fact("Operands", str(len(instruction.operands)))]
    facts.extend(Fact(f"Op[{index}]", operand.render()) for index, operand in enumerate(instruction.operands))
    return Classification(
        InstructionCategory.OTHER_OPERATOR,
        instruction.opcode,
        detail=instruction.opcode,
        facts=tuple(facts),
    )


def classify_unknown(instruction: Instruction, layout: DataLayout) -> Classification:
    return Classification(
        InstructionCategory.UNKNOWN,
        instruction.opcode,
        facts=(Fact("Opcode", instruction.opcode),),
    )


DEFAULT_RULES: Tuple[Rule, ...] = (
    classify_binary,
    classify_alloca,
    classify_load,
    classify_store,
    classify_call,
    classify_branch,
    classify_return,
    classify_comparison,
    classify_cast,
    classify_operator,
)


class InstructionClassifier:
    """Apply the rule table to instructions of one module.

    Extra rules passed to the constructor run before the default table, which
    lets callers carve new categories out of the generic fallbacks.
    """

    def __init__(self, data_layout: Optional[DataLayout] = None, *, rules: Sequence[Rule] = ()) -> None:
        self.data_layout = data_layout or DataLayout()
        self.rules: Tuple[Rule, ...] = tuple(rules) + DEFAULT_RULES

    def classify(self, instruction: Instruction) -> Classification:
        for rule in self.rules:
            classification = rule(instruction, self.data_layout)
            if classification is not None:
                return classification
        return classify_unknown(instruction, self.data_layout)

    def render(self, classification: Classification) -> List[str]:
        return classification.describe_lines()


__all__ = [
    "UNNAMED",
    "ICMP_PREDICATE_NAMES",
    "InstructionCategory",
    "Fact",
    "Classification",
    "Rule",
    "DEFAULT_RULES",
    "InstructionClassifier",
    "allocation_size",
    "display_name",
    "predicate_name",
    "classify_binary",
    "classify_alloca",
    "classify_load",
    "classify_store",
    "classify_call",
    "classify_branch",
    "classify_return",
    "classify_comparison",
    "classify_cast",
    "classify_operator",
    "classify_unknown",
]
