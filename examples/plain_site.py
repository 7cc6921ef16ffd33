from pathlib import Path

from brine import (
    Emit,
    IncludeTransform,
    InputBuildSettings,
    Passthrough,
    Rename,
    pipeline,
)


# Optional, and can be overridden with CLI arguments.
SETTINGS = InputBuildSettings(
    input_dir=Path(__file__).parent / 'plain_site',
    output_dir=Path('output/plain_site'),
)
PIPELINES = [
    # Copy pages and stylesheets through untouched.
    pipeline('pages', '*.html', '.', [Passthrough()]),
    pipeline('styles', '**/*.css', '.', [Passthrough()]),
    # Splice includes into top-level scripts, keeping a bundled copy as well.
    pipeline(
        'scripts',
        'scripts/*.js',
        'scripts',
        [IncludeTransform(), Emit(), Rename(suffix='.bundle')],
        base='scripts',
        watch='scripts/**/*.js',
    ),
]
