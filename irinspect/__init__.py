"""Public package exports for the IR inspector."""

from .classifier import Classification, InstructionCategory, InstructionClassifier
from .ir import DataLayout, IRParseError, Module, load_module, parse_module
from .passes import InspectorPass, PassBuilder, PreservedAnalyses, get_plugin_info
from .report import BlockReporter, FunctionReporter, ModuleReporter, render_module

__all__ = [
    "Classification",
    "InstructionCategory",
    "InstructionClassifier",
    "DataLayout",
    "IRParseError",
    "Module",
    "load_module",
    "parse_module",
    "InspectorPass",
    "PassBuilder",
    "PreservedAnalyses",
    "get_plugin_info",
    "BlockReporter",
    "FunctionReporter",
    "ModuleReporter",
    "render_module",
]
