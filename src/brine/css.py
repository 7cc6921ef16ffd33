"""
Transforms for compiling Sass and post-processing CSS.
"""
from __future__ import annotations

import typing as t

from .core import FileMeta
from .dependencies import PipDependency
from .simple import TextTransform

if t.TYPE_CHECKING:
    from collections.abc import Sequence


class SassTransform(TextTransform):
    """
    Compile SCSS/Sass into CSS using libsass. Partials (files whose names start
    with an underscore) are dropped, since they are only meant to be imported.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('libsass', check_name='sass', extra='css'),
        }

    def __init__(self,
                 include_paths: Sequence[str] = (),
                 output_style: t.Literal['nested', 'expanded', 'compact', 'compressed'] = 'expanded'):
        """
        @include_paths are resolved relative to the input directory and
        searched for imports after the directory of the compiled file.
        """
        self.include_paths = list(include_paths)
        self.output_style = output_style

    def transform_text(self, text: str, meta: FileMeta):
        import sass

        if meta.source_path.name.startswith('_'):
            return None
        include_paths = [str(meta.source_path.parent)]
        include_paths.extend(str(self.context['input_dir'] / p) for p in self.include_paths)
        compiled = sass.compile(
            string=text,
            include_paths=include_paths,
            output_style=self.output_style,
            indented=meta.source_path.suffix == '.sass',
        )
        return compiled, meta.with_suffix('.css')


class _LightningCSSTransform(TextTransform):
    minify = False

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('lightningcss', extra='css')
        }

    def __init__(self,
                 browsers_list: Sequence[str] | None = ('defaults',),
                 error_recovery: bool = False,
                 parser_flags: dict[str, bool] | None = None,
                 unused_symbols: set[str] | None = None):
        """
        @browsers_list is a browserslist query deciding which vendor prefixes
        and syntax lowering are applied.
        """
        self.browsers_list = list(browsers_list) if browsers_list else None
        self.error_recovery = error_recovery
        self.parser_flags = parser_flags or {}
        self.unused_symbols = unused_symbols

    def transform_text(self, text: str, meta: FileMeta):
        import lightningcss
        return lightningcss.process_stylesheet(
            text,
            filename=str(meta.source_path),
            error_recovery=self.error_recovery,
            parser_flags=lightningcss.calc_parser_flags(**self.parser_flags),
            unused_symbols=self.unused_symbols,
            browsers_list=self.browsers_list,
            minify=self.minify
        )


class CSSPrefixTransform(_LightningCSSTransform):
    """
    Add the vendor prefixes needed by the targeted browsers, keeping the
    stylesheet expanded and readable.
    """


class CSSMinifyTransform(_LightningCSSTransform):
    """
    Minify a stylesheet with lightningcss, dropping comments and whitespace
    and prefixing for the targeted browsers.
    """
    minify = True
