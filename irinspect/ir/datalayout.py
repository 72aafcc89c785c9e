"""Size and alignment queries answered by LLVM's target data.

``llvmlite`` measures types through ``TargetData`` but only hands out a
``TypeRef`` for types that occur in a parsed module.  Each query therefore
parses a small module that repeats the layout string and the identified
struct definitions, declares an external global of the requested type and
allocates it once on the stack (which LLVM rejects for unsized types).  The
global's value type is then measured.  Results are cached per type spelling.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

import llvmlite.binding as llvm

from .assembly import IRParseError, parse_assembly


logger = logging.getLogger(__name__)

_SAMPLE = "layout.sample"


class DataLayoutError(ValueError):
    """Raised for layout strings or types LLVM cannot measure."""


class DataLayout:
    def __init__(self, spec: str = "", type_definitions: Sequence[str] = ()) -> None:
        self.spec = spec
        self.type_definitions: Tuple[str, ...] = tuple(type_definitions)
        self._measured: Dict[str, Tuple[int, int]] = {}
        if spec:
            self._parse(self._preamble())

    def __repr__(self) -> str:
        return f"DataLayout({self.spec!r})"

    def alloc_size(self, type_text: str) -> int:
        """Bytes between consecutive elements of ``type_text`` in memory."""

        return self._measure(type_text)[0]

    def abi_alignment(self, type_text: str) -> int:
        return self._measure(type_text)[1]

    def _preamble(self) -> List[str]:
        lines = []
        if self.spec:
            lines.append(f'target datalayout = "{self.spec}"')
        lines.extend(self.type_definitions)
        return lines

    def _measure(self, type_text: str) -> Tuple[int, int]:
        cached = self._measured.get(type_text)
        if cached is not None:
            return cached
        lines = self._preamble()
        lines.extend(
            [
                f"@{_SAMPLE} = external global {type_text}",
                "define void @layout.check() {",
                f"  %slot = alloca {type_text}",
                "  ret void",
                "}",
            ]
        )
        module = self._parse(lines)
        measured = module.get_global_variable(_SAMPLE).global_value_type
        target = llvm.create_target_data(module.data_layout)
        cached = (target.get_abi_size(measured), target.get_abi_alignment(measured))
        logger.debug("%s: size %d, align %d", type_text, *cached)
        self._measured[type_text] = cached
        return cached

    @staticmethod
    def _parse(lines: List[str]) -> llvm.ModuleRef:
        try:
            return parse_assembly("\n".join(lines) + "\n")
        except IRParseError as exc:
            raise DataLayoutError(exc.detail) from exc


__all__ = ["DataLayout", "DataLayoutError"]
