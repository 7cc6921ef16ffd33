"""
Transforms for reducing the load cost of webpages by minifying resources.
"""
import mimetypes

from .core import FileMeta
from .dependencies import PipDependency
from .simple import TextTransform


class AssetMinifyTransform(TextTransform):
    """
    A fast and powerful web minifier supporting CSS, HTML, JS, JSON, SVG, and
    XML. Uses MIME type detection on the destination path to decide which
    minifier to use.

    NOTE: Not supported on macOS.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('tdewolff-minify', check_name='minify', extra='minify')
        }

    def __init__(self, mimetype: str | None = None):
        """
        @mimetype is an optional MIME type string to override MIME type
        detection.
        """
        self.mimetype = mimetype

    def detect_mime(self, meta: FileMeta):
        return mimetypes.guess_type(meta.dest_path.name)[0]

    def transform_text(self, text: str, meta: FileMeta):
        import minify

        if not (mime := self.mimetype or self.detect_mime(meta)):
            raise ValueError(f'Could not detect MIME type for {meta.dest_path}!')
        return minify.string(mime, text)


class JSMinifyTransform(AssetMinifyTransform):
    """
    Minify JavaScript regardless of file extension.
    """
    def __init__(self):
        super().__init__('application/javascript')
