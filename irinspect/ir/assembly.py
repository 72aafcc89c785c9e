"""Thin wrapper around LLVM's assembly parser.

Every parse gets its own LLVM context.  Identified struct types are uniqued
per context, so parsing the same text twice in the global context would
rename ``%struct.pair`` to ``%struct.pair.0`` the second time round.
"""

from __future__ import annotations

import re
from typing import Optional

import llvmlite.binding as llvm


_ERROR_LOCATION = re.compile(r":(\d+):\d+: error: (.*)")


class IRParseError(ValueError):
    """Raised for text LLVM's assembly parser rejects."""

    def __init__(self, detail: str, line: Optional[int] = None) -> None:
        self.detail = detail
        self.line = line
        if line is None:
            super().__init__(detail)
        else:
            super().__init__(f"line {line}: {detail}")


def parse_error(message: str) -> IRParseError:
    """Turn llvmlite's ``RuntimeError`` text into an :class:`IRParseError`."""

    found = _ERROR_LOCATION.search(message)
    if found:
        return IRParseError(found.group(2).strip(), int(found.group(1)))
    lines = [line for line in message.splitlines() if line.strip()]
    return IRParseError(lines[-1].strip() if lines else "invalid assembly")


def parse_assembly(text: str) -> llvm.ModuleRef:
    context = llvm.create_context()
    try:
        module = llvm.parse_assembly(text, context=context)
    except RuntimeError as exc:
        raise parse_error(str(exc)) from exc
    return module


__all__ = ["IRParseError", "parse_assembly", "parse_error"]
