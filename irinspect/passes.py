"""Pass-manager adapter exposing the inspector as a pipeline plugin.

The inspector itself is a pure ``module -> report`` function.  This module
wraps it in the small amount of host plumbing needed to install it in a
pipeline: a plugin descriptor whose registration callback hooks the pass into
the pipeline-start extension point of a :class:`PassBuilder`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, FrozenSet, List, Optional, TextIO

from .ir.model import Module
from .report import ModuleReporter


logger = logging.getLogger(__name__)

PLUGIN_API_VERSION = 1
PLUGIN_NAME = "IR Inspector Pass"
PLUGIN_VERSION = "v2.0"


class OptimizationLevel(IntEnum):
    O0 = 0
    O1 = 1
    O2 = 2
    O3 = 3


@dataclass(frozen=True)
class PreservedAnalyses:
    """Set of analyses a pass leaves valid; ``all_preserved`` covers everything."""

    all_preserved: bool = False
    preserved: FrozenSet[str] = frozenset()

    @classmethod
    def all(cls) -> "PreservedAnalyses":
        return cls(all_preserved=True)

    @classmethod
    def none(cls) -> "PreservedAnalyses":
        return cls()

    def are_all_preserved(self) -> bool:
        return self.all_preserved

    def intersect(self, other: "PreservedAnalyses") -> "PreservedAnalyses":
        if self.all_preserved:
            return other
        if other.all_preserved:
            return self
        return PreservedAnalyses(preserved=self.preserved & other.preserved)


class InspectorPass:
    """Module pass writing the inspection report to a diagnostic stream."""

    name = "inspect-ir"

    def __init__(self, stream: Optional[TextIO] = None, reporter: Optional[ModuleReporter] = None) -> None:
        self.stream = stream
        self.reporter = reporter or ModuleReporter()

    def run(self, module: Module, analysis_manager: object = None) -> PreservedAnalyses:
        logger.debug("running %s on module %s", self.name, module.name)
        self.reporter.write(module, self.stream)
        return PreservedAnalyses.all()


class ModulePassManager:
    """Run module passes in insertion order."""

    def __init__(self) -> None:
        self.passes: List[object] = []

    def add_pass(self, module_pass: object) -> None:
        self.passes.append(module_pass)

    def run(self, module: Module, analysis_manager: object = None) -> PreservedAnalyses:
        result = PreservedAnalyses.all()
        for module_pass in self.passes:
            result = result.intersect(module_pass.run(module, analysis_manager))
        return result


PipelineStartCallback = Callable[[ModulePassManager, OptimizationLevel], None]


@dataclass
class PassBuilder:
    """Builds module pipelines and exposes the pipeline-start extension point."""

    pipeline_start_callbacks: List[PipelineStartCallback] = field(default_factory=list)

    def register_pipeline_start_callback(self, callback: PipelineStartCallback) -> None:
        self.pipeline_start_callbacks.append(callback)

    def build_module_pipeline(self, level: OptimizationLevel = OptimizationLevel.O0) -> ModulePassManager:
        manager = ModulePassManager()
        for callback in self.pipeline_start_callbacks:
            callback(manager, level)
        return manager


@dataclass(frozen=True)
class PassPluginInfo:
    api_version: int
    plugin_name: str
    plugin_version: str
    register_pass_builder_callbacks: Callable[[PassBuilder], None]


def get_plugin_info(stream: Optional[TextIO] = None) -> PassPluginInfo:
    """Descriptor installing :class:`InspectorPass` at the start of every pipeline."""

    def register(builder: PassBuilder) -> None:
        builder.register_pipeline_start_callback(
            lambda manager, level: manager.add_pass(InspectorPass(stream))
        )

    return PassPluginInfo(
        api_version=PLUGIN_API_VERSION,
        plugin_name=PLUGIN_NAME,
        plugin_version=PLUGIN_VERSION,
        register_pass_builder_callbacks=register,
    )


__all__ = [
    "PLUGIN_API_VERSION",
    "PLUGIN_NAME",
    "PLUGIN_VERSION",
    "OptimizationLevel",
    "PreservedAnalyses",
    "InspectorPass",
    "ModulePassManager",
    "PassBuilder",
    "PassPluginInfo",
    "get_plugin_info",
]
