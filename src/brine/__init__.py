"""
Brine is a declarative file-pipeline build engine for front-end assets, with
incremental watch mode and a live-reloading development server.
"""
from .core import (
    Artifact, BuildSettings, Context, FileMeta, InputBuildSettings, Matcher,
    PipelineSpec, Registry, ReloadEvent, Transform, build_settings, pipeline,
)
from .css import CSSMinifyTransform, CSSPrefixTransform, SassTransform
from .errors import (
    BrineError, DuplicateNameError, FatalError, PipelineError, PlanError,
    RegistryFrozenError, TransformError,
)
from .executor import ExecutionResult, Executor
from .images import ImageOptimizeTransform
from .include import IncludeTransform
from .jinja import JinjaRenderTransform
from .minify import AssetMinifyTransform, JSMinifyTransform
from .paths import GlobMatcher, REMatcher
from .presets import frontend_pipelines
from .scheduler import AggregateResult, Clean, Parallel, Run, Scheduler, Series, build_plan
from .server import ServerHandle, serve
from .simple import Emit, FunctionTransform, Passthrough, Rename, SuffixFilter, TextTransform
from .watcher import Watcher, WatchSession
