"""
This is the toolkit for Brine's own CLI, but offers an accessible API for
building project-specific CLIs.
"""
from __future__ import annotations

import argparse
import importlib
import runpy
import sys
import threading
import typing as t
from pathlib import Path

from .core import (
    DEFAULT_DEBOUNCE_MS, DEFAULT_HOST, DEFAULT_PORT,
    BuildSettings, Context, InputBuildSettings, PipelineSpec, Transform,
    TransformUnavailableException, build_settings,
)
from .executor import Executor
from .pretty_utils import print_failure, print_with_style
from .scheduler import Clean, Run, Scheduler, build_plan
from .server import ServerHandle, serve
from .watcher import Watcher, WatchSession


BUILTIN_TASKS = {
    'build': 'clean, then run every pipeline in parallel',
    'watch': 'build, then rebuild on changes and serve with live reload',
    'clean': 'delete the output directory',
}
DEFAULT_TASK = 'watch'
DEFAULT_CONFIG = Path('brinefile.py')


class BuildNamespace:
    """
    Internal used to preserve typing between InputBuildSettings, argparse, and
    BuildSettings.
    """
    input_dir: Path
    output_dir: Path
    host: str
    port: int
    debounce_ms: int

    def __init__(self, settings: InputBuildSettings | None = None):
        if settings:
            self.__dict__.update(settings)

    def to_build_settings(self) -> BuildSettings:
        return build_settings(
            self.input_dir,
            self.output_dir,
            host=self.host,
            port=self.port,
            debounce_ms=self.debounce_ms,
        )


def parse_settings_args(settings: InputBuildSettings | None = None, argv: list[str] | None = None, **kw):
    """
    Combine an instance of InputBuildSettings with CLI arguments to produce a
    BuildNamespace. Values from @settings replace the argparse defaults, and
    explicit arguments replace both.
    """
    namespace = BuildNamespace(settings)

    parser = argparse.ArgumentParser(**kw)
    parser.add_argument('-i', '--input',
                        help='input directory with source files',
                        type=Path,
                        dest='input_dir',
                        default=Path('src'))
    parser.add_argument('-o', '--output',
                        help='output directory for built files',
                        type=Path,
                        dest='output_dir',
                        default=Path('dist'))
    parser.add_argument('--host',
                        help='interface for the development server',
                        default=DEFAULT_HOST)
    parser.add_argument('-p', '--port',
                        help='port for the development server',
                        type=int,
                        default=DEFAULT_PORT)
    parser.add_argument('--debounce',
                        help='milliseconds to collect file changes before rebuilding',
                        type=int,
                        dest='debounce_ms',
                        default=DEFAULT_DEBOUNCE_MS)

    return parser.parse_args(argv, namespace=namespace)


def context_from_pipelines(settings: InputBuildSettings | None,
                           pipelines: list[PipelineSpec],
                           context_cls: t.Type[Context] = Context,
                           **kw):
    """
    Build a new Context from Settings, PipelineSpecs, and command line
    arguments.
    """
    final_settings = parse_settings_args(settings, **kw)
    return context_cls(final_settings.to_build_settings(), pipelines)


def watch(context: Context,
          executor: Executor | None = None,
          stop_event: threading.Event | None = None) -> int:
    """
    Build once, then serve the output directory and rebuild pipelines as
    their sources change, until interrupted or until @stop_event is set.
    """
    executor = executor or Executor(context)
    result = Scheduler(context, executor).execute(build_plan(context.registry))
    if result.fatal:
        return result.exit_code
    if not context['input_dir'].is_dir():
        print_failure(f'Cannot watch missing input directory {context["input_dir"]}!')
        return 1

    stop_event = stop_event or threading.Event()
    handle: ServerHandle | None = None
    session: WatchSession | None = None
    try:
        handle = serve(context['output_dir'], context['port'], context['host'])
        executor.subscribe(handle.notify)
        session = Watcher(context, executor).start()
        while session.active and not stop_event.wait(0.25):
            pass
    except KeyboardInterrupt:
        print_with_style('Stopping...', style='yellow')
    except OSError as e:
        print_failure(f'✗ Could not start watching: {e}')
        return 1
    finally:
        if session:
            session.stop()
        if handle:
            handle.close()
    return 0


def run_task(context: Context, task: str) -> int:
    """
    Run a builtin task or a single pipeline by name, returning an exit code.
    """
    if task == 'watch':
        return watch(context)
    scheduler = Scheduler(context)
    if task == 'build':
        plan = build_plan(context.registry)
    elif task == 'clean':
        plan = Clean()
    else:
        plan = Run(task)
    return scheduler.execute(plan).exit_code


def pprint_transform(transform: t.Type[Transform]):
    """
    Prettily display dependency information for the given Transform class.
    """
    missing = [str(d) for d in transform.get_dependencies() if not d.satisfied]
    if missing:
        text = ', '.join(missing)
        print_with_style(f'✗ {transform.__name__} (missing: {text})', style='red')
    else:
        print_with_style(f'✓ {transform.__name__}', style='green')


def pprint_missing_deps(transform: Transform):
    """
    Prettily display an error for the given Transform with missing
    dependencies.
    """
    print_failure(f'{transform.name} is unavailable due to missing dependencies!')
    for dep in transform.get_dependencies():
        if dep.satisfied:
            print_with_style(f'✓ {dep}', style='green')
        else:
            print_with_style(f'✗ {dep}: {dep.install_hint}', style='red')


def audit_transforms(pipelines: list[PipelineSpec]):
    all_transforms = set(Transform.get_all_transforms())
    available = set(Transform.get_available_transforms())
    used = {tr.__class__ for spec in pipelines for tr in spec.transforms}

    groups = {
        'Available transforms': available,
        'Unavailable transforms': all_transforms - available,
        'Used transforms': used,
    }
    for group_label, group in groups.items():
        print(f'{group_label} ({len(group)})')
        for transform in sorted(group, key=lambda c: c.__name__):
            pprint_transform(transform)


def list_tasks(pipelines: list[PipelineSpec]):
    for name, description in BUILTIN_TASKS.items():
        print_with_style(f'{name:<12} {description}')
    for spec in pipelines:
        print_with_style(f'{spec.name:<12} pipeline → {spec.dest}', style='cyan')


def main(arguments: list[str] | None = None):
    """
    Brine main function. Finds or creates a Context using a Brine config file
    and command line arguments, then runs the requested task with it.
    """
    parser = argparse.ArgumentParser(description='Build a brine project.')
    parser.add_argument('task',
                        nargs='?',
                        help=f'build, watch, clean, or a pipeline name (default: {DEFAULT_TASK})',
                        default=DEFAULT_TASK)
    group = parser.add_mutually_exclusive_group()
    group.add_argument('-m',
                       help='import path of a config file to build',
                       type=importlib.import_module,
                       dest='module',
                       default=None)
    group.add_argument('-f', '--file',
                       help=f'file path to a config file to build (default: {DEFAULT_CONFIG})',
                       type=Path,
                       dest='config_file',
                       default=None)
    parser.add_argument('--tasks',
                        help='list builtin tasks and pipelines instead of running one',
                        action='store_true')
    parser.add_argument('--audit-transforms',
                        help=('show information about available, unavailable, '
                              'and used transforms, instead of building the project'),
                        action='store_true')

    args, remaining = parser.parse_known_args(arguments)

    if args.module:
        label = f'-m {args.module.__name__}'
        namespace = vars(args.module)
    else:
        config_file: Path = args.config_file or DEFAULT_CONFIG
        if not config_file.is_file():
            print_failure(f'No brine config file found at {config_file}!')
            sys.exit(1)
        label = str(config_file)
        namespace = runpy.run_path(label)

    settings: InputBuildSettings | None = namespace.get('SETTINGS')
    pipelines: list[PipelineSpec] | None = namespace.get('PIPELINES')
    context: Context | None = namespace.get('CONTEXT')

    if not (context or pipelines):
        print_failure('Brine config files must have a PIPELINES or CONTEXT attribute!')
        sys.exit(1)

    specs = context.registry.list_all() if context else pipelines or []
    if args.audit_transforms:
        audit_transforms(specs)
        return
    if args.tasks:
        list_tasks(specs)
        return

    if args.task not in BUILTIN_TASKS and args.task not in {s.name for s in specs}:
        parser.error(f'unknown task {args.task!r}; choose from build, watch, clean, '
                     f'or one of: {", ".join(s.name for s in specs)}')

    try:
        if not context:
            context = context_from_pipelines(
                settings, specs, argv=remaining, prog=f'brine {label} {args.task}'
            )
    except TransformUnavailableException as e:
        pprint_missing_deps(e.transform)
        sys.exit(1)

    exit_code = run_task(context, args.task)
    if exit_code:
        sys.exit(exit_code)
