"""
Transforms for rendering pages with Jinja templates, layouts and partials.
"""
from __future__ import annotations

import typing as t
from pathlib import Path

from .core import FileMeta
from .dependencies import PipDependency
from .simple import TextTransform

if t.TYPE_CHECKING:
    from collections.abc import Sequence
    from jinja2 import Environment


FRONTMATTER_FENCE = '---'


def parse_simple_frontmatter(content: str) -> dict[str, str]:
    """
    Read metadata in a very simple YAML-like `key: value` format, without
    value parsing. Blank lines and `#` comments are ignored.
    """
    meta = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if ':' not in line:
            raise ValueError(f'Malformed front matter line: {line!r}')
        key, value = line.split(':', 1)
        meta[key.strip()] = value.strip()
    return meta


def split_frontmatter(text: str) -> tuple[dict[str, str], str]:
    """
    Separate a leading `---` fenced front matter block from the rest of
    @text. Text without front matter is returned as-is with empty metadata.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONTMATTER_FENCE:
        return {}, text
    for i, line in enumerate(lines[1:], 1):
        if line.strip() == FRONTMATTER_FENCE:
            return parse_simple_frontmatter(''.join(lines[1:i])), ''.join(lines[i + 1:])
    return {}, text


class JinjaRenderTransform(TextTransform):
    """
    Render each file as a Jinja template. Templates can `{% include %}`
    partials and `{% extends %}` layouts found in @search_paths. A `layout`
    key in front matter wraps the rendered page in that layout, which receives
    the page as `body`.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('jinja2', extra='html'),
            PipDependency('markupsafe', extra='html'),
        }

    def __init__(self,
                 search_paths: Sequence[str] = ('.',),
                 env: Environment | None = None,
                 extra_globals: dict[str, t.Any] | None = None,
                 default_layout: str | None = None):
        """
        @search_paths are directories relative to the input directory. A
        custom Jinja @env replaces the default one built from them.
        """
        if env and extra_globals:
            env.globals.update(extra_globals)
        self.search_paths = list(search_paths)
        self.default_layout = default_layout
        self._env = env
        self._extra_globals = extra_globals

    @property
    def env(self):
        """
        Returns the Jinja `Environment` for this Transform, creating and
        caching it if necessary.
        """
        if self._env:
            return self._env

        from jinja2 import Environment, FileSystemLoader, select_autoescape
        self._env = Environment(
            loader=FileSystemLoader([self.context['input_dir'] / p for p in self.search_paths]),
            autoescape=select_autoescape(),
            keep_trailing_newline=True,
        )
        if self._extra_globals:
            self._env.globals.update(self._extra_globals)
        return self._env

    def layout_name(self, meta: dict[str, str]):
        layout = meta.get('layout', self.default_layout)
        if not layout or layout == 'none':
            return None
        return layout if Path(layout).suffix else f'{layout}.html'

    def transform_text(self, text: str, meta: FileMeta):
        from markupsafe import Markup

        front, body = split_frontmatter(text)
        params: dict[str, t.Any] = dict(front)
        params['page'] = {**front, 'path': meta.relative_path.as_posix()}

        rendered = self.env.from_string(body).render(**params)
        if layout := self.layout_name(front):
            rendered = self.env.get_template(layout).render({**params, 'body': Markup(rendered)})
        return rendered
