"""Public exports for the IR model, data layout and loader."""

from .assembly import IRParseError
from .datalayout import DataLayout, DataLayoutError
from .loader import load_module, parse_module
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
    constant_int,
)

__all__ = [
    "DataLayout",
    "DataLayoutError",
    "IRParseError",
    "load_module",
    "parse_module",
    "Argument",
    "BasicBlock",
    "Constant",
    "ConstantInt",
    "Function",
    "GlobalVariable",
    "Instruction",
    "Module",
    "OpcodeClass",
    "Value",
    "constant_int",
]
