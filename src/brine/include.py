"""
Transforms to splice other files into a file at build time.
"""
from __future__ import annotations

import re
from pathlib import Path

from .core import FileMeta
from .simple import TextTransform


class IncludeTransform(TextTransform):
    """
    Replace directive lines such as `//= vendor/lib.js` (or
    `//= include vendor/lib.js`) with the contents of the named file, resolved
    relative to the file containing the directive. Included files may contain
    directives of their own; include cycles are an error.
    """
    directive = re.compile(r'^[ \t]*//=[ \t]*(?:include[ \t]+)?(?P<target>\S+)[ \t]*$', re.MULTILINE)

    def expand(self, text: str, path: Path, stack: tuple[Path, ...]) -> str:
        def replace(match: re.Match[str]):
            target = (path.parent / match['target']).resolve()
            if target in stack:
                chain = ' -> '.join(str(p) for p in (*stack, target))
                raise ValueError(f'Include cycle: {chain}')
            included = target.read_text(self.encoding)
            return self.expand(included, target, (*stack, target)).rstrip('\n')

        return self.directive.sub(replace, text)

    def transform_text(self, text: str, meta: FileMeta):
        source = meta.source_path.resolve()
        return self.expand(text, source, (source,))
