"""
Practical implementations of Matchers.
"""
from __future__ import annotations

import re
from pathlib import Path

from .core import Context, ContextDir, Matcher


def _find_closing_brace(pattern: str, start: int):
    depth = 0
    for i in range(start, len(pattern)):
        if pattern[i] == '{':
            depth += 1
        elif pattern[i] == '}':
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_alternatives(body: str):
    parts: list[str] = []
    depth = 0
    current = ''
    for char in body:
        if char == ',' and not depth:
            parts.append(current)
            current = ''
            continue
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
        current += char
    parts.append(current)
    return parts


def _translate(pattern: str) -> str:
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if pattern.startswith('**/', i):
            out.append('(?:[^/]*/)*')
            i += 3
            continue
        if pattern.startswith('**', i):
            out.append('.*')
            i += 2
            continue
        if char == '*':
            out.append('[^/]*')
        elif char == '?':
            out.append('[^/]')
        elif char == '{' and (end := _find_closing_brace(pattern, i)) != -1:
            alternatives = _split_alternatives(pattern[i + 1:end])
            out.append('(?:' + '|'.join(_translate(a) for a in alternatives) + ')')
            i = end + 1
            continue
        elif char == '[' and (end := pattern.find(']', i + 2)) != -1:
            body = pattern[i + 1:end]
            if body.startswith('!'):
                body = '^' + body[1:]
            out.append(f'[{body}]')
            i = end + 1
            continue
        else:
            out.append(re.escape(char))
        i += 1
    return ''.join(out)


def glob_to_regex(pattern: str) -> str:
    """
    Translate a glob into an anchored regular expression string. Supports `*`
    and `?` within a path segment, `**` across segments, `[...]` classes and
    `{a,b}` alternation.
    """
    return f'(?s:{_translate(pattern)})\\Z'


class REMatcher(Matcher[re.Match | None]):
    """
    Path Matcher using regular expressions. @re_flags will be passed to
    `re.compile()`. @parent_dir, if specified, should be a key to a configured
    directory, not a Path, and will be used to handle matching the beginning of
    Paths; this can be used to avoid pitfalls with unexpected characters in
    the input or output directories.
    """
    def __init__(self, re_string: str, re_flags: int = 0, parent_dir: ContextDir | None = None):
        self.regex = re.compile(re_string, re_flags)
        self.parent_dir: ContextDir | None = parent_dir

    def __call__(self, context: Context, path: Path):
        if self.parent_dir:
            # Handle this part of matching outside the regex.
            if not path.is_relative_to(context[self.parent_dir]):
                return None
            path = path.relative_to(context[self.parent_dir])
        return self.regex.match(path.as_posix())


class GlobMatcher(REMatcher):
    """
    Path Matcher using a glob such as `assets/img/**/*.{png,jpg}`, evaluated
    relative to @parent_dir (the input directory by default).
    """
    def __init__(self, pattern: str, parent_dir: ContextDir | None = 'input_dir'):
        super().__init__(glob_to_regex(pattern), parent_dir=parent_dir)
        self.pattern = pattern

    def __repr__(self):
        return f'GlobMatcher({self.pattern!r})'
