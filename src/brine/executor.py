"""
Running a single pipeline: resolving its sources, folding each file through
its transform chain, and writing the results.
"""
from __future__ import annotations

import os
import threading
import time
import typing as t
from functools import reduce
from pathlib import Path

from .core import Artifact, Context, FileMeta, PipelineSpec, ReloadEvent, Transform
from .errors import PipelineError, TransformError
from .pretty_utils import print_failure, print_with_style

if t.TYPE_CHECKING:
    from collections.abc import Iterable

Listener = t.Callable[[ReloadEvent], None]
_ChainState = tuple['Artifact | None', list[Artifact]]


class ExecutionResult:
    """
    Outcome of one pipeline run. A run with failed files is reported as
    completed with errors rather than aborted.
    """
    def __init__(self, name: str):
        self.name = name
        self.succeeded: list[FileMeta] = []
        self.failed: list[tuple[FileMeta, TransformError]] = []
        self.outputs: list[Path] = []
        self.error: PipelineError | None = None
        self.started_at = time.monotonic()
        self.finished_at: float | None = None

    def __repr__(self):
        return f'<ExecutionResult {self.name!r} {self.status}>'

    @property
    def ok(self):
        return not self.failed and not self.error

    @property
    def status(self):
        if self.error:
            return 'failed'
        if self.failed:
            return 'completed with errors'
        return 'succeeded'


def write_atomic(path: Path, content: bytes):
    """
    Write @content to @path through a temporary sibling file, so readers never
    observe a partially written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_name(f'.{path.name}.{os.getpid()}-{threading.get_ident()}.tmp')
    try:
        temp.write_bytes(content)
        os.replace(temp, path)
    finally:
        temp.unlink(missing_ok=True)


class Executor:
    """
    Runs PipelineSpecs against a Context and notifies listeners with a
    ReloadEvent after every run.
    """
    def __init__(self, context: Context, listeners: Iterable[Listener] = ()):
        self.context = context
        self.listeners: list[Listener] = list(listeners)

    def subscribe(self, listener: Listener):
        self.listeners.append(listener)

    def run(self, spec: PipelineSpec) -> ExecutionResult:
        """
        Process every source file of @spec. Failures are isolated per file and
        collected into the returned ExecutionResult.
        """
        result = ExecutionResult(spec.name)
        try:
            sources = self.context.find_sources(spec)
        except OSError as e:
            result.error = PipelineError(spec.name, e)
            sources = []

        for path in sources:
            meta = self.context.derive_meta(spec, path)
            try:
                artifacts = self.process_file(spec, meta)
                written = self.write_outputs(spec, artifacts)
            except TransformError as e:
                result.failed.append((meta, e))
                print_failure(f'✗ [{spec.name}] {e}')
                continue
            result.succeeded.append(meta)
            result.outputs.extend(written)
            if written:
                print_with_style(f'{path} ⇒ {", ".join(str(p) for p in written)}')
            else:
                print_with_style('Dropped', str(path), style='yellow')

        result.finished_at = time.monotonic()
        self.report(result)
        self.emit(ReloadEvent(spec.name, tuple(result.outputs), time.time()))
        return result

    def _apply(self, state: _ChainState, transform: Transform) -> _ChainState:
        artifact, outputs = state
        if artifact is None:
            return state
        try:
            artifact = transform(artifact)
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(transform.name, artifact.meta, e) from e
        if artifact is not None and transform.emits:
            outputs.append(artifact)
        return artifact, outputs

    def process_file(self, spec: PipelineSpec, meta: FileMeta) -> list[Artifact]:
        """
        Fold the transform chain of @spec over the file described by @meta and
        return the artifacts to write, at most one per destination path.
        """
        try:
            content = meta.source_path.read_bytes()
        except OSError as e:
            raise TransformError('read', meta, e) from e

        initial: _ChainState = (Artifact(content, meta), [])
        final, outputs = reduce(self._apply, spec.transforms, initial)
        if final is not None and (not outputs or outputs[-1] is not final):
            outputs.append(final)
        return list({a.meta.dest_path: a for a in outputs}.values())

    def write_outputs(self, spec: PipelineSpec, artifacts: list[Artifact]) -> list[Path]:
        conflict = self.context.ledger.claim_all([a.meta.dest_path for a in artifacts], spec.name)
        if conflict:
            path, owner = conflict
            meta = next(a.meta for a in artifacts if a.meta.dest_path == path)
            raise TransformError(
                'write',
                meta,
                FileExistsError(f'{path} is written by pipeline {owner!r}')
            )

        written: list[Path] = []
        for artifact in artifacts:
            try:
                write_atomic(artifact.meta.dest_path, artifact.content)
            except OSError as e:
                raise TransformError('write', artifact.meta, e) from e
            written.append(artifact.meta.dest_path)
        return written

    def report(self, result: ExecutionResult):
        total = len(result.succeeded) + len(result.failed)
        if result.error:
            print_failure(f'✗ {result.error}')
        elif result.failed:
            print_with_style(
                f'⚠ {result.name} completed with errors: {len(result.failed)} of {total} file(s) failed',
                style='yellow'
            )
        else:
            print_with_style(f'✓ {result.name}: {total} file(s)', style='green')

    def emit(self, event: ReloadEvent):
        for listener in list(self.listeners):
            try:
                listener(event)
            except Exception as e:  # pylint: disable=broad-except
                print_failure(f'✗ reload listener failed for {event.pipeline_name}: {e}')
