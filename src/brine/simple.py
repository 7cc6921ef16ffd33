"""
Simple Transforms and a base class for Transforms working on text.
"""
from __future__ import annotations

import abc
import typing as t

from .core import Artifact, Context, FileMeta, Transform

if t.TYPE_CHECKING:
    from collections.abc import Iterable


class Passthrough(Transform):
    """
    A Transform which leaves files untouched, for pipelines that only copy.
    """
    def __call__(self, artifact: Artifact):
        return artifact


class Emit(Passthrough):
    """
    Write the artifact as it stands at this point of the chain, in addition to
    the final result. Used to keep an unminified copy next to a minified one.
    """
    emits = True


class Rename(Transform):
    """
    Rename the destination of a file. @suffix is inserted before the final
    extension (`style.css` becomes `style.min.css`), @ext replaces the
    extension, and @stem replaces the name before the extension.
    """
    def __init__(self,
                 suffix: str = '',
                 ext: str | None = None,
                 stem: str | None = None):
        self.suffix = suffix
        self.ext = ext
        self.stem = stem

    def rename(self, meta: FileMeta):
        path = meta.dest_path
        ext = path.suffix if self.ext is None else self.ext
        stem = path.stem if self.stem is None else self.stem
        return meta.with_name(f'{stem}{self.suffix}{ext}')

    def __call__(self, artifact: Artifact):
        return artifact._replace(meta=self.rename(artifact.meta))


class FunctionTransform(Transform):
    """
    Wrap a plain function of an Artifact as a Transform.
    """
    def __init__(self,
                 func: t.Callable[[Artifact], Artifact | None],
                 name: str | None = None):
        self.func = func
        self._name = name or getattr(func, '__name__', None) or repr(func)

    @property
    def name(self):
        return self._name

    def __call__(self, artifact: Artifact):
        return self.func(artifact)


class SuffixFilter(Transform):
    """
    Apply @transform only to files whose destination has one of @suffixes,
    passing every other file through unchanged.
    """
    def __init__(self, transform: Transform, suffixes: Iterable[str]):
        self.transform = transform
        self.suffixes = {s.lower() for s in suffixes}

    @property
    def name(self):
        return self.transform.name

    def bind(self, context: Context):
        super().bind(context)
        context.bind(self.transform)

    def __call__(self, artifact: Artifact):
        if artifact.meta.dest_path.suffix.lower() not in self.suffixes:
            return artifact
        return self.transform(artifact)


class TextTransform(Transform):
    """
    A base class for Transforms which rewrite text content.
    """
    encoding = 'utf-8'

    @abc.abstractmethod
    def transform_text(self, text: str, meta: FileMeta) -> str | tuple[str, FileMeta] | None:
        """
        Return the new text, the new text with new metadata, or None to drop
        the file.
        """

    def __call__(self, artifact: Artifact):
        result = self.transform_text(artifact.text(self.encoding), artifact.meta)
        if result is None:
            return None
        if isinstance(result, tuple):
            text, meta = result
        else:
            text, meta = result, artifact.meta
        return Artifact(text.encode(self.encoding), meta)
