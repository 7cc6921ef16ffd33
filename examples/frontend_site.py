from pathlib import Path

from brine import InputBuildSettings, frontend_pipelines


# Optional, and can be overridden with CLI arguments.
SETTINGS = InputBuildSettings(
    input_dir=Path(__file__).parent / 'frontend_site',
    output_dir=Path('output/frontend_site'),
)
# Pages, stylesheets, scripts, images and fonts, each minified or optimized
# where it makes sense.
PIPELINES = frontend_pipelines()
