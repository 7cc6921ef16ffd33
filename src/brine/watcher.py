"""
Incremental rebuilds: watch the input directory and rerun only the pipelines
that own the changed paths.
"""
from __future__ import annotations

import threading
import typing as t
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .core import Context, PipelineSpec
from .executor import Executor
from .pretty_utils import print_failure, print_with_style

if t.TYPE_CHECKING:
    from collections.abc import Iterable
    from watchfiles import Change


class _PipelineSlot:
    """
    Allows at most one run of a pipeline at a time. Triggers arriving while a
    run is in flight collapse into a single follow-up run.
    """
    def __init__(self, spec: PipelineSpec, session: WatchSession):
        self.spec = spec
        self.session = session
        self.runs = 0
        self._lock = threading.Lock()
        self._running = False
        self._pending = False
        self.idle = threading.Event()
        self.idle.set()

    def trigger(self, pool: ThreadPoolExecutor):
        with self._lock:
            if self._running:
                self._pending = True
                return
            self._running = True
            self.idle.clear()
        pool.submit(self._loop)

    def _loop(self):
        while True:
            self.runs += 1
            try:
                self.session.executor.run(self.spec)
            except Exception as e:  # pylint: disable=broad-except
                print_failure(f'✗ rebuild of {self.spec.name} crashed: {e}')
            with self._lock:
                if not self._pending or self.session.stopping:
                    self._pending = False
                    self._running = False
                    self.idle.set()
                    return
                self._pending = False


class WatchSession:
    """
    A live subscription of a set of pipelines to filesystem changes.
    """
    def __init__(self, context: Context, executor: Executor, specs: Iterable[PipelineSpec]):
        self.context = context
        self.executor = executor
        self.subscriptions: dict[str, PipelineSpec] = {s.name: s for s in specs}
        self.slots = {name: _PipelineSlot(spec, self) for name, spec in self.subscriptions.items()}
        self.stopping = False
        self._stop_event = threading.Event()
        self._pool = ThreadPoolExecutor(
            max_workers=max(len(self.slots), 1),
            thread_name_prefix='brine-watch'
        )
        self._thread: threading.Thread | None = None
        self._root = context['input_dir'].resolve()

    def _normalize(self, path: Path | str):
        path = Path(path)
        if path.is_absolute() and path.is_relative_to(self._root):
            return self.context['input_dir'] / path.relative_to(self._root)
        return path

    def owners(self, path: Path | str) -> list[PipelineSpec]:
        """
        Return the subscribed specs whose watch matcher accepts @path.
        """
        path = self._normalize(path)
        return [s for s in self.subscriptions.values() if s.watch(self.context, path)]

    def _watch_filter(self, _change: Change, path: str):
        return bool(self.owners(path))

    def dispatch(self, paths: Iterable[Path | str]) -> list[str]:
        """
        Trigger each pipeline owning at least one of @paths exactly once.
        Returns the names of the triggered pipelines.
        """
        if self.stopping:
            return []
        names: dict[str, None] = {}
        for path in paths:
            for spec in self.owners(path):
                names.setdefault(spec.name)
        for name in names:
            print_with_style(f'Change detected, rebuilding {name}', style='cyan')
            self.slots[name].trigger(self._pool)
        return list(names)

    def _watch_loop(self):
        from watchfiles import watch

        for changes in watch(
            self._root,
            watch_filter=self._watch_filter,
            debounce=self.context['debounce_ms'],
            step=min(50, self.context['debounce_ms']),
            stop_event=self._stop_event,
        ):
            self.dispatch(path for _change, path in changes)

    def start(self):
        if not self._root.is_dir():
            raise FileNotFoundError(f'Cannot watch missing directory {self._root}')
        self._thread = threading.Thread(target=self._watch_loop, name='brine-watcher', daemon=True)
        self._thread.start()
        print_with_style(
            f'Watching {self.context["input_dir"]} for {", ".join(self.subscriptions)}',
            style='cyan'
        )

    @property
    def active(self):
        return bool(self._thread and self._thread.is_alive())

    def join(self, timeout: float | None = None):
        """
        Block until the watch loop ends.
        """
        if self._thread:
            self._thread.join(timeout)

    def wait_idle(self, timeout: float | None = None):
        """
        Block until no pipeline run is in flight. Returns False on timeout.
        """
        return all(slot.idle.wait(timeout) for slot in self.slots.values())

    def stop(self):
        """
        Unsubscribe from changes. Runs in flight finish; queued reruns are
        dropped.
        """
        self.stopping = True
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._pool.shutdown(wait=True)


class Watcher:
    """
    Creates WatchSessions for a Context.
    """
    def __init__(self, context: Context, executor: Executor | None = None):
        self.context = context
        self.executor = executor or Executor(context)

    def start(self, specs: Iterable[PipelineSpec] | None = None) -> WatchSession:
        self.context.registry.freeze()
        session = WatchSession(
            self.context,
            self.executor,
            self.context.registry.list_all() if specs is None else specs
        )
        session.start()
        return session

    def stop(self, session: WatchSession):
        session.stop()
