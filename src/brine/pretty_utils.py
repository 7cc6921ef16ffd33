"""
Internal utilities for styled console output.
"""
import rich.console


# Without an explicit file, rich looks up sys.stdout/sys.stderr on each write.
_consoles = {
    'stdout': rich.console.Console(highlight=False),
    'stderr': rich.console.Console(stderr=True, highlight=False),
}


def print_with_style(*args, sep=' ', end='\n', file: str = 'stdout', style=None):
    """
    Enhanced print() function using rich console styles. Safe to call from
    several threads at once.
    """
    _consoles[file].print(*args, sep=sep, end=end, style=style, markup=False)


def print_failure(*args, sep=' '):
    """
    Print an error line to stderr.
    """
    print_with_style(*args, sep=sep, file='stderr', style='red')
