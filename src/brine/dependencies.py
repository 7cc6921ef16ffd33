"""
Composable descriptions of the third-party libraries Transforms rely on.
"""
from __future__ import annotations

import abc
import importlib.util


class Dependency(abc.ABC):
    """
    A base class for trackable, evaluable, composable dependencies.
    """
    @property
    @abc.abstractmethod
    def satisfied(self) -> bool:
        """
        A bool indicating whether this dependency is met.
        """

    @property
    @abc.abstractmethod
    def install_hint(self) -> str:
        """
        A string giving help on how to install this dependency.
        """

    def __repr__(self):
        return f'{self.__class__.__name__}({self}, satisfied={self.satisfied})'

    def __or__(self, other: Dependency):
        return _OrDependency(self, other)

    def __and__(self, other: Dependency):
        return _AndDependency(self, other)


class _OrDependency(Dependency):
    def __init__(self, left: Dependency, right: Dependency):
        self.left = left
        self.right = right

    def __str__(self):
        return f'({self.left} | {self.right})'

    @property
    def satisfied(self):
        return self.left.satisfied or self.right.satisfied

    @property
    def install_hint(self):
        # Either option will do, so suggest the first.
        return self.left.install_hint


class _AndDependency(Dependency):
    def __init__(self, left: Dependency, right: Dependency):
        self.left = left
        self.right = right

    def __str__(self):
        return f'({self.left} & {self.right})'

    @property
    def satisfied(self):
        return self.left.satisfied and self.right.satisfied

    @property
    def install_hint(self):
        return '; '.join(
            d.install_hint for d in (self.left, self.right) if not d.satisfied
        )


class PipDependency(Dependency):
    """
    A Dependency on a pip-installable package. @check_name is the importable
    module name when it differs from the distribution @name, and @extra names
    the Brine extra that pulls the package in.
    """
    def __init__(self,
                 name: str,
                 check_name: str | None = None,
                 extra: str | None = None):
        self.name = name
        self.check_name = check_name or name
        self.extra = extra

    def __str__(self):
        return self.name

    def __eq__(self, other: object):
        return isinstance(other, PipDependency) and other.name == self.name

    def __hash__(self):
        return hash((PipDependency, self.name))

    @property
    def satisfied(self):
        return importlib.util.find_spec(self.check_name) is not None

    @property
    def install_hint(self):
        if self.extra:
            return f'pip install brine[{self.extra}]'
        return f'pip install {self.name}'
