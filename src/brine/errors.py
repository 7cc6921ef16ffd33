"""
Exception types for Brine builds.
"""
from __future__ import annotations

import typing as t

if t.TYPE_CHECKING:
    from .core import FileMeta


class BrineError(Exception):
    """
    Base class for errors raised or reported by Brine.
    """


class DuplicateNameError(BrineError):
    """
    Raised when registering a pipeline whose name is already taken.
    """
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'A pipeline named {name!r} is already registered!')


class RegistryFrozenError(BrineError):
    """
    Raised when registering a pipeline after a build or watch has begun.
    """


class PlanError(BrineError):
    """
    Raised for an execution plan that is malformed or would clean a
    destination after writing into it.
    """


class TransformError(BrineError):
    """
    Failure of a single Transform stage on a single file. Recoverable: the
    remaining files of the pipeline are still processed.
    """
    def __init__(self, stage: str, meta: FileMeta, cause: BaseException | None = None):
        self.stage = stage
        self.meta = meta
        self.cause = cause
        super().__init__(stage, meta, cause)

    def __str__(self):
        return f'{self.stage} failed for {self.meta.source_path}: {self.cause}'


class PipelineError(BrineError):
    """
    Failure of a whole pipeline run, such as an unreadable source tree.
    Recoverable at the Scheduler level.
    """
    def __init__(self, pipeline: str, cause: BaseException | None = None):
        self.pipeline = pipeline
        self.cause = cause
        super().__init__(pipeline, cause)

    def __str__(self):
        return f'pipeline {self.pipeline!r} failed: {self.cause}'


class FatalError(BrineError):
    """
    Unrecoverable failure, such as an undeletable output directory during a
    clean. Aborts the entire execution plan.
    """
