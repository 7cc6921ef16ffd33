"""
Ready-made pipelines for a typical front-end project: templated HTML pages,
Sass stylesheets, concatenated scripts, images and fonts.

Expected input layout::

    *.html                  pages
    tpl/layouts/, tpl/partials/
    assets/scss/*.scss      stylesheets (partials start with `_`)
    assets/js/*.js          scripts (`//= file.js` includes)
    assets/img/**           images
    assets/fonts/**         fonts
"""
from __future__ import annotations

from .core import PipelineSpec, pipeline
from .css import CSSMinifyTransform, CSSPrefixTransform, SassTransform
from .images import ImageOptimizeTransform
from .include import IncludeTransform
from .jinja import JinjaRenderTransform
from .minify import AssetMinifyTransform, JSMinifyTransform
from .simple import Emit, Passthrough, Rename, SuffixFilter


IMAGE_EXTENSIONS = ('jpeg', 'jpg', 'png', 'ico', 'svg', 'webp')
FONT_EXTENSIONS = ('woff', 'woff2')
MIN_SUFFIX = '.min'


def html_pipeline(layouts: str = 'tpl/layouts',
                  partials: str = 'tpl/partials',
                  default_layout: str | None = 'default') -> PipelineSpec:
    """
    Render top-level pages, wrapping each in @default_layout unless its front
    matter names another layout or says `layout: none`.
    """
    return pipeline(
        'html',
        '*.html',
        '.',
        [JinjaRenderTransform(search_paths=(layouts, partials, '.'), default_layout=default_layout)],
        # Layouts and partials live below the input root, so any HTML change
        # rebuilds the pages.
        watch='**/*.html',
    )


def css_pipeline(browsers_list: tuple[str, ...] = ('defaults',)) -> PipelineSpec:
    return pipeline(
        'css',
        'assets/scss/*.scss',
        'css',
        [
            SassTransform(),
            CSSPrefixTransform(browsers_list),
            Emit(),
            CSSMinifyTransform(browsers_list),
            Rename(suffix=MIN_SUFFIX),
        ],
        base='assets/scss',
        watch='assets/scss/**/*.scss',
    )


def js_pipeline() -> PipelineSpec:
    return pipeline(
        'js',
        'assets/js/*.js',
        'js',
        [
            IncludeTransform(),
            Emit(),
            JSMinifyTransform(),
            Rename(suffix=MIN_SUFFIX),
        ],
        base='assets/js',
        watch='assets/js/**/*.js',
    )


def img_pipeline(jpeg_quality: int = 80) -> PipelineSpec:
    return pipeline(
        'img',
        f'assets/img/**/*.{{{",".join(IMAGE_EXTENSIONS)}}}',
        'img',
        [
            SuffixFilter(ImageOptimizeTransform(jpeg_quality=jpeg_quality), ('.jpeg', '.jpg', '.png', '.gif')),
            SuffixFilter(AssetMinifyTransform('image/svg+xml'), ('.svg',)),
        ],
        base='assets/img',
    )


def fonts_pipeline() -> PipelineSpec:
    return pipeline(
        'fonts',
        f'assets/fonts/**/*.{{{",".join(FONT_EXTENSIONS)}}}',
        'fonts',
        [Passthrough()],
        base='assets/fonts',
    )


def frontend_pipelines() -> list[PipelineSpec]:
    """
    Return fresh `html`, `css`, `js`, `img` and `fonts` pipelines.
    """
    return [
        html_pipeline(),
        css_pipeline(),
        js_pipeline(),
        img_pipeline(),
        fonts_pipeline(),
    ]
