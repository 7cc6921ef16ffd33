"""
Execution plans composed of sequential and parallel steps, and the Scheduler
which runs them.
"""
from __future__ import annotations

import abc
import shutil
import time
import typing as t
from concurrent.futures import ThreadPoolExecutor

from .core import Context, Registry
from .errors import FatalError, PipelineError, PlanError
from .executor import ExecutionResult, Executor
from .pretty_utils import print_failure, print_with_style

if t.TYPE_CHECKING:
    from collections.abc import Iterator


class PlanStep(abc.ABC):
    """
    Abstract base class for the nodes of an execution plan.
    """
    @abc.abstractmethod
    def walk(self) -> Iterator[PlanStep]:
        """
        Yield this step and every step nested in it, in plan order.
        """

    def pipeline_names(self) -> list[str]:
        return [s.name for s in self.walk() if isinstance(s, Run)]

    def has_clean(self):
        return any(isinstance(s, Clean) for s in self.walk())

    def validate(self, registry: Registry):
        """
        Check that every named pipeline exists and that no pipeline could write
        into the output directory before a Clean step removes it.
        """
        for name in self.pipeline_names():
            if name not in registry:
                raise PlanError(f'Unknown pipeline {name!r}!')


class Run(PlanStep):
    """
    Run one registered pipeline.
    """
    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return f'Run({self.name!r})'

    def walk(self):
        yield self


class Clean(PlanStep):
    """
    Delete the output directory. Must finish before any pipeline writes.
    """
    def __repr__(self):
        return 'Clean()'

    def walk(self):
        yield self


def _as_step(step: PlanStep | str) -> PlanStep:
    return Run(step) if isinstance(step, str) else step


class Series(PlanStep):
    """
    Steps run one after another, each to completion.
    """
    def __init__(self, *steps: PlanStep | str):
        self.steps = [_as_step(s) for s in steps]

    def __repr__(self):
        return f'Series({", ".join(map(repr, self.steps))})'

    def walk(self):
        yield self
        for step in self.steps:
            yield from step.walk()

    def validate(self, registry: Registry):
        super().validate(registry)
        seen_pipeline = False
        for step in self.steps:
            step.validate(registry)
            if seen_pipeline and step.has_clean():
                raise PlanError(f'{step!r} would clean output written earlier in {self!r}!')
            seen_pipeline = seen_pipeline or bool(step.pipeline_names())


class Parallel(PlanStep):
    """
    Steps launched concurrently. The group completes when every member has,
    whether or not any of them failed.
    """
    def __init__(self, *steps: PlanStep | str):
        self.steps = [_as_step(s) for s in steps]

    def __repr__(self):
        return f'Parallel({", ".join(map(repr, self.steps))})'

    def walk(self):
        yield self
        for step in self.steps:
            yield from step.walk()

    def validate(self, registry: Registry):
        super().validate(registry)
        for step in self.steps:
            step.validate(registry)
        if self.has_clean() and self.pipeline_names():
            raise PlanError(f'{self!r} cannot clean and build concurrently!')


def build_plan(registry: Registry) -> Series:
    """
    The standard build: clean, then every registered pipeline in parallel.
    """
    return Series(Clean(), Parallel(*registry.names()))


class AggregateResult:
    """
    Outcome of an execution plan.
    """
    def __init__(self):
        self.results: list[ExecutionResult] = []
        self.cleaned_at: float | None = None
        self.fatal: FatalError | None = None

    def __getitem__(self, name: str) -> ExecutionResult:
        for result in reversed(self.results):
            if result.name == name:
                return result
        raise KeyError(name)

    @property
    def ok(self):
        return not self.fatal and all(r.ok for r in self.results)

    @property
    def exit_code(self):
        """
        Per-file and per-pipeline failures are warnings; only fatal errors
        fail the process.
        """
        return 1 if self.fatal else 0


class Scheduler:
    """
    Executes plans against a Context using an Executor.
    """
    def __init__(self, context: Context, executor: Executor | None = None):
        self.context = context
        self.executor = executor or Executor(context)

    def execute(self, plan: PlanStep | str) -> AggregateResult:
        plan = _as_step(plan)
        plan.validate(self.context.registry)
        self.context.registry.freeze()

        aggregate = AggregateResult()
        try:
            self._execute(plan, aggregate)
        except FatalError as e:
            aggregate.fatal = e
            print_failure(f'✗ {e}; build aborted')
        return aggregate

    def _execute(self, step: PlanStep, aggregate: AggregateResult):
        if isinstance(step, Run):
            aggregate.results.append(self.run_pipeline(step.name))
        elif isinstance(step, Clean):
            self.clean()
            aggregate.cleaned_at = time.monotonic()
        elif isinstance(step, Series):
            for child in step.steps:
                self._execute(child, aggregate)
        elif isinstance(step, Parallel):
            if not step.steps:
                return
            with ThreadPoolExecutor(max_workers=len(step.steps)) as pool:
                futures = [pool.submit(self._execute, child, aggregate) for child in step.steps]
            # Leaving the pool waits for every member; re-raise in plan order.
            for future in futures:
                future.result()
        else:
            raise PlanError(f'Unknown plan step {step!r}!')

    def run_pipeline(self, name: str) -> ExecutionResult:
        """
        Run one pipeline, converting unexpected crashes into a PipelineError
        result so sibling pipelines keep running.
        """
        try:
            return self.executor.run(self.context.registry.get(name))
        except Exception as e:  # pylint: disable=broad-except
            result = ExecutionResult(name)
            result.error = PipelineError(name, e)
            print_failure(f'✗ {result.error}')
            return result

    def clean(self):
        """
        Delete the output directory, raising FatalError if it cannot be
        removed.
        """
        output_dir = self.context['output_dir']
        try:
            if output_dir.exists():
                shutil.rmtree(output_dir)
        except OSError as e:
            raise FatalError(f'could not clean {output_dir}: {e}') from e
        self.context.ledger.clear()
        print_with_style(f'Cleaned {output_dir}', style='yellow')
