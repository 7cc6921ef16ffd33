"""
Transforms for optimizing raster images.
"""
from __future__ import annotations

import io

from .core import Artifact, Transform
from .dependencies import PipDependency


class ImageOptimizeTransform(Transform):
    """
    Re-encode JPEG, PNG and GIF images with Pillow to reduce their size. The
    original bytes are kept when re-encoding does not help, and other formats
    pass through unchanged.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('Pillow', check_name='PIL', extra='images'),
        }

    def __init__(self,
                 jpeg_quality: int = 80,
                 progressive: bool = True,
                 png_compress_level: int = 9):
        self.jpeg_quality = jpeg_quality
        self.progressive = progressive
        self.png_compress_level = png_compress_level

    def save_options(self, image_format: str | None):
        if image_format == 'JPEG':
            return {
                'quality': self.jpeg_quality,
                'progressive': self.progressive,
                'optimize': True,
            }
        if image_format == 'PNG':
            return {'optimize': True, 'compress_level': self.png_compress_level}
        if image_format == 'GIF':
            return {'optimize': True, 'save_all': True, 'interlace': True}
        return None

    def __call__(self, artifact: Artifact):
        from PIL import Image

        with Image.open(io.BytesIO(artifact.content)) as img:
            options = self.save_options(img.format)
            if options is None:
                return artifact
            buffer = io.BytesIO()
            img.save(buffer, format=img.format, **options)

        optimized = buffer.getvalue()
        if len(optimized) >= len(artifact.content):
            return artifact
        return artifact._replace(content=optimized)
