"""Text reports describing a module's functions, blocks and instructions."""

from __future__ import annotations

import sys
from typing import Iterable, List, Optional, TextIO

from .classifier import InstructionClassifier, display_name
from .ir.model import BasicBlock, Function, Module


BANNER_WIDTH = 78
SEPARATOR = "═" * BANNER_WIDTH
FOOTER_SEPARATOR = "═" * (BANNER_WIDTH + 1)
BLOCK_RULE = "─" * 53
GUTTER = "   │"


def _banner_title(title: str) -> str:
    padding = BANNER_WIDTH - len(title) - 1
    left = padding // 2
    return "║" + " " * left + title + " " * (padding - left) + "║"


class BlockReporter:
    """Describe one basic block and each of its instructions."""

    def __init__(self, classifier: InstructionClassifier) -> None:
        self.classifier = classifier

    def report(self, block: BasicBlock, function_tail: bool) -> Iterable[str]:
        # a block outside any function is reported as the first one
        index = block.position or 1
        yield f"   ┌─ Basic Block #{index}: {display_name(block)}"
        yield f"{GUTTER}  Instructions: {len(block)}"
        yield GUTTER
        for position, instruction in enumerate(block, start=1):
            yield f"{GUTTER}  [{position}] {instruction.render()}"
            classification = self.classifier.classify(instruction)
            for line in self.classifier.render(classification):
                yield f"{GUTTER}{line}"
            yield GUTTER
        corner = "└" if function_tail else "├"
        yield f"   {corner}{BLOCK_RULE}"


class FunctionReporter:
    """Describe a declaration's signature or a definition and its blocks."""

    def __init__(self, blocks: BlockReporter) -> None:
        self.blocks = blocks

    def report(self, function: Function) -> Iterable[str]:
        if function.is_declaration:
            yield from self._report_declaration(function)
            return

        yield f"🔧 Function Definition: {function.name}()"
        yield f"   ↳ Return Type: {function.return_type}"
        yield f"   ↳ Parameters: {len(function.arguments)}"
        yield f"   ↳ Basic Blocks: {len(function)}"
        if function.arguments:
            yield "   ↳ Function Arguments:"
            yield from self._parameters(function)
        yield ""

        tail = function.back
        for block in function:
            yield from self.blocks.report(block, block is tail)

        yield ""
        yield SEPARATOR
        yield ""

    def _report_declaration(self, function: Function) -> Iterable[str]:
        yield f"📋 External Function Declaration: {function.name}()"
        yield f"   ↳ Return Type: {function.return_type}"
        yield f"   ↳ Parameters: {len(function.arguments)}"
        yield from self._parameters(function)
        yield ""

    @staticmethod
    def _parameters(function: Function) -> Iterable[str]:
        for argument in function.arguments:
            yield f"     • {display_name(argument)} : {argument.type}"


class ModuleReporter:
    """Entry point producing the complete report for a module."""

    def render(self, module: Module) -> str:
        return "\n".join(self.report(module)) + "\n"

    def report(self, module: Module) -> List[str]:
        classifier = InstructionClassifier(module.data_layout)
        functions = FunctionReporter(BlockReporter(classifier))

        lines: List[str] = []
        lines.extend(self._header(module))
        for function in module:
            lines.extend(functions.report(function))
        lines.extend(self._footer())
        return lines

    def write(self, module: Module, stream: Optional[TextIO] = None) -> None:
        target = stream if stream is not None else sys.stderr
        target.write(self.render(module))
        target.flush()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _header(module: Module) -> Iterable[str]:
        yield ""
        yield "╔" + SEPARATOR + "╗"
        yield _banner_title("🔍 LLVM MODULE ANALYSIS")
        yield "╚" + SEPARATOR + "╝"
        yield f"📁 Module: {module.name}"
        yield SEPARATOR
        yield ""

    @staticmethod
    def _footer() -> Iterable[str]:
        yield "✅ Analysis Complete!"
        yield FOOTER_SEPARATOR
        yield ""


def render_module(module: Module) -> str:
    """Render the inspection report of ``module``."""

    return ModuleReporter().render(module)


__all__ = [
    "BlockReporter",
    "FunctionReporter",
    "ModuleReporter",
    "render_module",
]
