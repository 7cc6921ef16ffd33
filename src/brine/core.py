"""
Core classes and types for Brine pipelines.
"""
from __future__ import annotations

import abc
import threading
import typing as t
from pathlib import Path

from .dependencies import Dependency
from .errors import DuplicateNameError, RegistryFrozenError

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence, Set


T = t.TypeVar('T')
T2 = t.TypeVar('T2')
ContextDir = t.Literal['input_dir', 'output_dir']
CONTEXT_DIR_KEYS: set[ContextDir] = {'input_dir', 'output_dir'}

DEFAULT_HOST = 'localhost'
DEFAULT_PORT = 8080
DEFAULT_DEBOUNCE_MS = 100


class InputBuildSettings(t.TypedDict, total=False):
    """
    TypedDict for defining build settings in a Brine config file.
    """
    input_dir: Path
    output_dir: Path
    host: str
    port: int
    debounce_ms: int


class BuildSettings(t.TypedDict):
    """
    TypedDict for processed build settings ready for passing to Context.
    """
    input_dir: Path
    output_dir: Path
    host: str
    port: int
    debounce_ms: int


def build_settings(input_dir: Path, output_dir: Path, **kw: t.Any) -> BuildSettings:
    """
    Create a complete BuildSettings, filling in defaults for the server and
    watcher options.
    """
    return BuildSettings(
        input_dir=Path(input_dir),
        output_dir=Path(output_dir),
        host=kw.get('host') or DEFAULT_HOST,
        port=DEFAULT_PORT if kw.get('port') is None else kw['port'],
        debounce_ms=DEFAULT_DEBOUNCE_MS if kw.get('debounce_ms') is None else kw['debounce_ms'],
    )


class FileMeta(t.NamedTuple):
    """
    Path information for one file moving through a pipeline. Only renaming
    Transforms should produce altered copies.
    """
    relative_path: Path
    source_path: Path
    dest_path: Path

    def with_name(self, name: str):
        return self._replace(
            relative_path=self.relative_path.with_name(name),
            dest_path=self.dest_path.with_name(name),
        )

    def with_suffix(self, suffix: str):
        return self._replace(
            relative_path=self.relative_path.with_suffix(suffix),
            dest_path=self.dest_path.with_suffix(suffix),
        )


class Artifact(t.NamedTuple):
    """
    The content of a file at some point in a transform chain.
    """
    content: bytes
    meta: FileMeta

    def text(self, encoding: str = 'utf-8'):
        return self.content.decode(encoding)


class ReloadEvent(t.NamedTuple):
    """
    Notification that a pipeline finished and wrote @affected_paths.
    """
    pipeline_name: str
    affected_paths: tuple[Path, ...]
    timestamp: float


class Matcher(t.Generic[T], abc.ABC):
    """
    Abstract base class for Path Matchers. Provides pre-baked ability to
    combine Matchers with | and &.
    """
    @abc.abstractmethod
    def __call__(self, context: Context, path: Path) -> T:
        ...

    def __or__(self, other: Matcher[T2]):
        return _OrMatcher(self, other)

    def __and__(self, other: Matcher[T2]):
        return _AndMatcher(self, other)


class _OrMatcher(Matcher[T | T2]):
    def __init__(self, left: Matcher[T], right: Matcher[T2]):
        self.left = left
        self.right = right

    def __call__(self, context: Context, path: Path):
        return self.left(context, path) or self.right(context, path)


class _AndMatcher(Matcher[T | T2]):
    def __init__(self, left: Matcher[T], right: Matcher[T2]):
        self.left = left
        self.right = right

    def __call__(self, context: Context, path: Path):
        return self.left(context, path) and self.right(context, path)


class Transform(abc.ABC):
    """
    Abstract base class for Transforms, the stateless stages chained together
    by a pipeline. A Transform receives an Artifact and returns a new one, or
    None to drop the file from the pipeline.
    """
    context: Context
    # Whether the executor should write out the result of this stage in
    # addition to the final result of the chain.
    emits = False
    _transform_registry: list[t.Type[Transform]] = []

    def __init_subclass__(cls, **kw):
        super().__init_subclass__(**kw)
        cls._transform_registry.append(cls)

    @classmethod
    def get_all_transforms(cls):
        """
        Return a list of all currently known Transforms.
        """
        return list(cls._transform_registry)

    @classmethod
    def get_available_transforms(cls):
        """
        Return a list of all currently known Transforms whose requirements are
        met.
        """
        return [s for s in cls._transform_registry if s.is_available()]

    @classmethod
    def is_available(cls) -> bool:
        """
        Return whether this Transform's requirements are installed, making it
        available for use.
        """
        return all(d.satisfied for d in cls.get_dependencies())

    @classmethod
    def get_dependencies(cls) -> Set[Dependency]:
        """
        Return the requirements for this Transform.
        """
        return set()

    @property
    def name(self) -> str:
        """
        The stage name used when reporting failures.
        """
        return self.__class__.__name__

    def bind(self, context: Context):
        """
        Bind this Transform to a Context.
        """
        self.context = context

    @abc.abstractmethod
    def __call__(self, artifact: Artifact) -> Artifact | None:
        ...


class PipelineSpec(t.NamedTuple):
    """
    A named source-to-destination transform chain. @dest is relative to the
    output directory and @base, the part of source paths stripped before
    mirroring them under @dest, is relative to the input directory.
    """
    name: str
    source: Matcher
    watch: Matcher
    dest: Path
    base: Path
    transforms: tuple[Transform, ...]


def pipeline(name: str,
             source: Matcher | str,
             dest: Path | str,
             transforms: Iterable[Transform] = (),
             *,
             base: Path | str = '.',
             watch: Matcher | str | None = None) -> PipelineSpec:
    """
    Convenience factory for PipelineSpecs, accepting glob strings in place of
    Matchers. @watch defaults to @source.
    """
    from .paths import GlobMatcher

    if isinstance(source, str):
        source = GlobMatcher(source)
    if watch is None:
        watch = source
    elif isinstance(watch, str):
        watch = GlobMatcher(watch)
    return PipelineSpec(name, source, watch, Path(dest), Path(base), tuple(transforms))


class Registry:
    """
    Ordered table of PipelineSpecs. Read-only once frozen.
    """
    def __init__(self, specs: Iterable[PipelineSpec] = ()):
        self._specs: dict[str, PipelineSpec] = {}
        self.frozen = False
        for spec in specs:
            self.register(spec)

    def register(self, spec: PipelineSpec):
        if self.frozen:
            raise RegistryFrozenError(f'Cannot register {spec.name!r} after a build has started!')
        if spec.name in self._specs:
            raise DuplicateNameError(spec.name)
        self._specs[spec.name] = spec

    def freeze(self):
        self.frozen = True

    def get(self, name: str) -> PipelineSpec:
        return self._specs[name]

    def list_all(self) -> list[PipelineSpec]:
        """
        Return all specs in registration order.
        """
        return list(self._specs.values())

    def names(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, name: object):
        return name in self._specs

    def __iter__(self) -> Iterator[PipelineSpec]:
        return iter(self.list_all())

    def __len__(self):
        return len(self._specs)


class DestinationLedger:
    """
    Thread-safe record of which pipeline owns each written output path, so
    that two pipelines never write the same file.
    """
    def __init__(self):
        self._owners: dict[Path, str] = {}
        self._lock = threading.Lock()

    def claim_all(self, paths: Sequence[Path], owner: str) -> tuple[Path, str] | None:
        """
        Claim every one of @paths for @owner, or none of them. Returns the
        first path owned by a different pipeline along with that pipeline's
        name, or None if the claim succeeded.
        """
        with self._lock:
            for path in paths:
                current = self._owners.get(path, owner)
                if current != owner:
                    return path, current
            for path in paths:
                self._owners[path] = owner
        return None

    def claim(self, path: Path, owner: str) -> str | None:
        """
        Claim @path for @owner. Returns the name of a different pipeline that
        already owns @path, or None if the claim succeeded.
        """
        conflict = self.claim_all([path], owner)
        return conflict[1] if conflict else None

    def clear(self):
        with self._lock:
            self._owners.clear()


class Context:
    """
    A context and configuration class for building Brine projects.
    """
    def __init__(self,
                 settings: BuildSettings,
                 pipelines: Iterable[PipelineSpec] = ()):
        self.settings = settings
        self.registry = Registry()
        self.ledger = DestinationLedger()
        for spec in pipelines:
            self.register(spec)

    @t.overload
    def __getitem__(self, key: ContextDir) -> Path: ...
    @t.overload
    def __getitem__(self, key: t.Literal['host']) -> str: ...
    @t.overload
    def __getitem__(self, key: t.Literal['port', 'debounce_ms']) -> int: ...
    def __getitem__(self, key):
        return self.settings[key]

    def register(self, spec: PipelineSpec):
        """
        Register a PipelineSpec and bind its Transforms.
        """
        self.registry.register(spec)
        for transform in spec.transforms:
            self.bind(transform)

    def bind(self, transform: Transform | None):
        """
        Bind a Transform to this Context, checking to ensure its availability.
        """
        if transform:
            if not transform.is_available():
                raise TransformUnavailableException(transform)
            transform.bind(self)

    def find_inputs(self, path: Path):
        """
        Overridable function to get paths to process based on a given @path.
        Default behavior is to recursively search for files but exclude the
        directories themselves.
        """
        for candidate in path.iterdir():
            if candidate.is_dir():
                yield from self.find_inputs(candidate)
            else:
                yield candidate

    def find_sources(self, spec: PipelineSpec) -> list[Path]:
        """
        Resolve the source matcher of @spec against the input directory.
        """
        input_dir = self['input_dir']
        if not input_dir.is_dir():
            return []
        return [p for p in sorted(self.find_inputs(input_dir)) if spec.source(self, p)]

    def dest_root(self, spec: PipelineSpec) -> Path:
        return self['output_dir'] / spec.dest

    def derive_meta(self, spec: PipelineSpec, path: Path) -> FileMeta:
        """
        Create the initial FileMeta for a source @path of @spec, mirroring its
        location below the pipeline's base directory under its destination.
        """
        base_dir = self['input_dir'] / spec.base
        if not path.is_relative_to(base_dir):
            base_dir = self['input_dir']
        rel = path.relative_to(base_dir)
        return FileMeta(rel, path, self.dest_root(spec) / rel)


class TransformUnavailableException(Exception):
    """
    Exception raised when a Transform to be used is unavailable due to missing
    dependencies.
    """
    def __init__(self, transform: Transform, *args: t.Any):
        self.transform = transform
        super().__init__(*args)
