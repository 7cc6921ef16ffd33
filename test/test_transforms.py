import io
from pathlib import Path

import pytest

from brine.core import Artifact, Context, FileMeta, build_settings, pipeline
from brine.css import CSSMinifyTransform, CSSPrefixTransform, SassTransform
from brine.images import ImageOptimizeTransform
from brine.include import IncludeTransform
from brine.jinja import JinjaRenderTransform, parse_simple_frontmatter, split_frontmatter
from brine.minify import AssetMinifyTransform, JSMinifyTransform
from brine.simple import FunctionTransform, Passthrough, Rename, SuffixFilter, TextTransform


@pytest.fixture
def context(tmp_path: Path):
    (tmp_path / 'src').mkdir()
    return Context(build_settings(tmp_path / 'src', tmp_path / 'dist'))


def make_artifact(context: Context, relative: str, content: str | bytes):
    source = context['input_dir'] / relative
    source.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode() if isinstance(content, str) else content
    source.write_bytes(data)
    return Artifact(data, FileMeta(Path(relative), source, context['output_dir'] / relative))


def bound(context: Context, transform):
    context.bind(transform)
    return transform


def skip_unless_available(transform_cls):
    return pytest.mark.skipif(
        not transform_cls.is_available(),
        reason=f'{transform_cls.__name__} dependencies are not installed'
    )


@pytest.mark.parametrize('kw,expected', [
    ({'suffix': '.min'}, 'css/style.min.css'),
    ({'ext': '.scss'}, 'css/style.scss'),
    ({'stem': 'main'}, 'css/main.css'),
    ({'stem': 'main', 'suffix': '-v2', 'ext': '.txt'}, 'css/main-v2.txt'),
])
def test_rename(context: Context, kw: dict, expected: str):
    artifact = make_artifact(context, 'css/style.css', 'x')
    renamed = Rename(**kw)(artifact)
    assert renamed.meta.relative_path == Path(expected)
    assert renamed.meta.dest_path == context['output_dir'] / expected
    assert renamed.meta.source_path == artifact.meta.source_path
    assert renamed.content == b'x'


def test_suffix_filter(context: Context):
    upper = FunctionTransform(lambda a: a._replace(content=a.content.upper()), 'upper')
    only_txt = SuffixFilter(upper, ['.TXT'])
    assert only_txt.name == 'upper'
    assert only_txt(make_artifact(context, 'a.txt', 'abc')).content == b'ABC'
    assert only_txt(make_artifact(context, 'a.md', 'abc')).content == b'abc'


def test_suffix_filter_binds_inner_transform(context: Context):
    inner = Passthrough()
    bound(context, SuffixFilter(inner, ['.txt']))
    assert inner.context is context


class Reverse(TextTransform):
    def transform_text(self, text: str, meta: FileMeta):
        if not text:
            return None
        return text[::-1], meta.with_suffix('.rev')


def test_text_transform_results(context: Context):
    result = Reverse()(make_artifact(context, 'a.txt', 'héllo'))
    assert result.text() == 'olléh'
    assert result.meta.dest_path.name == 'a.rev'
    assert Reverse()(make_artifact(context, 'empty.txt', '')) is None


def test_include_nested(context: Context):
    make_artifact(context, 'js/lib/b.js', 'var b = 2;\n')
    make_artifact(context, 'js/lib/a.js', '//= b.js\nvar a = 1;\n')
    artifact = make_artifact(context, 'js/main.js', '  //= include lib/a.js\nrun(a, b);\n')
    result = IncludeTransform()(artifact)
    assert result.text() == 'var b = 2;\nvar a = 1;\nrun(a, b);\n'


def test_include_leaves_other_comments(context: Context):
    text = '// plain comment\n//=\nx = 1; //= not.js\n'
    assert IncludeTransform()(make_artifact(context, 'main.js', text)).text() == text


def test_include_cycle(context: Context):
    make_artifact(context, 'b.js', '//= a.js\n')
    artifact = make_artifact(context, 'a.js', '//= b.js\n')
    with pytest.raises(ValueError, match='Include cycle'):
        IncludeTransform()(artifact)


def test_include_missing_file(context: Context):
    with pytest.raises(FileNotFoundError):
        IncludeTransform()(make_artifact(context, 'a.js', '//= gone.js\n'))


def test_frontmatter():
    meta, body = split_frontmatter('---\ntitle: A: B\n# note\n\nlayout: post\n---\n<p>x</p>\n')
    assert meta == {'title': 'A: B', 'layout': 'post'}
    assert body == '<p>x</p>\n'


@pytest.mark.parametrize('text', [
    '<p>no front matter</p>',
    '---\nnever closed\n',
    '',
])
def test_frontmatter_absent(text: str):
    assert split_frontmatter(text) == ({}, text)


def test_frontmatter_malformed():
    with pytest.raises(ValueError):
        parse_simple_frontmatter('title Home')


@skip_unless_available(JinjaRenderTransform)
def test_jinja_layout(context: Context):
    make_artifact(context, 'tpl/base.html', '<main>{{ body }}</main><title>{{ title }}</title>')
    make_artifact(context, 'tpl/nav.html', '<nav>{{ page.path }}</nav>')
    artifact = make_artifact(
        context,
        'docs/page.html',
        '---\nlayout: base\ntitle: <Docs>\n---\n{% include "nav.html" %}<b>{{ greeting }}</b>',
    )
    transform = bound(context, JinjaRenderTransform(['tpl'], extra_globals={'greeting': 'hi'}))
    result = transform(artifact)
    assert result.text() == (
        '<main><nav>docs/page.html</nav><b>hi</b></main><title>&lt;Docs&gt;</title>'
    )


@skip_unless_available(JinjaRenderTransform)
def test_jinja_without_layout(context: Context):
    artifact = make_artifact(context, 'page.html', '---\nlayout: none\ntitle: T\n---\n<h1>{{ title }}</h1>\n')
    transform = bound(context, JinjaRenderTransform(default_layout='missing'))
    assert transform(artifact).text() == '<h1>T</h1>\n'


@skip_unless_available(JinjaRenderTransform)
def test_jinja_missing_layout(context: Context):
    from jinja2 import TemplateNotFound

    artifact = make_artifact(context, 'page.html', '---\nlayout: nowhere\n---\nx')
    transform = bound(context, JinjaRenderTransform())
    with pytest.raises(TemplateNotFound):
        transform(artifact)


@skip_unless_available(SassTransform)
def test_sass_compiles_with_imports(context: Context):
    make_artifact(context, 'scss/_colors.scss', '$fg: #123456;')
    artifact = make_artifact(context, 'scss/site.scss', "@import 'colors';\na { b { color: $fg; } }")
    result = bound(context, SassTransform())(artifact)
    assert result.meta.dest_path.name == 'site.css'
    assert 'a b {' in result.text()
    assert '#123456' in result.text()


@skip_unless_available(SassTransform)
def test_sass_include_paths(context: Context):
    make_artifact(context, 'vendor/_grid.scss', '.grid { display: grid; }')
    artifact = make_artifact(context, 'scss/site.scss', "@import 'grid';")
    result = bound(context, SassTransform(include_paths=['vendor']))(artifact)
    assert 'display: grid' in result.text()


@skip_unless_available(SassTransform)
def test_sass_indented_syntax(context: Context):
    artifact = make_artifact(context, 'site.sass', 'a\n  color: red\n')
    result = bound(context, SassTransform(output_style='compressed'))(artifact)
    assert result.text().strip() == 'a{color:red}'


@skip_unless_available(SassTransform)
def test_sass_drops_partials(context: Context):
    artifact = make_artifact(context, 'scss/_colors.scss', '$fg: red;')
    assert bound(context, SassTransform())(artifact) is None


@skip_unless_available(SassTransform)
def test_sass_syntax_error(context: Context):
    import sass

    artifact = make_artifact(context, 'site.scss', 'a { color: ')
    with pytest.raises(sass.CompileError):
        bound(context, SassTransform())(artifact)


@skip_unless_available(CSSMinifyTransform)
def test_css_minify(context: Context):
    artifact = make_artifact(context, 'style.css', '/* comment */\nbody {\n    color: #ff0000;\n}\n')
    result = bound(context, CSSMinifyTransform())(artifact)
    assert result.text().strip() == 'body{color:red}'


@skip_unless_available(CSSPrefixTransform)
def test_css_prefix_keeps_layout(context: Context):
    artifact = make_artifact(context, 'style.css', '.a {\n  user-select: none;\n}\n')
    result = bound(context, CSSPrefixTransform(['safari 13']))(artifact)
    assert '-webkit-user-select: none' in result.text()
    assert '\n' in result.text()


@skip_unless_available(JSMinifyTransform)
def test_js_minify(context: Context):
    artifact = make_artifact(context, 'main.js', 'function add(first, second) {\n    // sum\n    return first + second;\n}\n')
    result = bound(context, JSMinifyTransform())(artifact)
    assert len(result.content) < len(artifact.content)
    assert '// sum' not in result.text()
    assert result.meta == artifact.meta


@skip_unless_available(AssetMinifyTransform)
def test_asset_minify_detects_svg(context: Context):
    svg = '<svg xmlns="http://www.w3.org/2000/svg">\n  <!-- c -->\n  <rect width="1" height="1" />\n</svg>\n'
    result = bound(context, AssetMinifyTransform())(make_artifact(context, 'icon.svg', svg))
    assert '<!--' not in result.text()
    assert len(result.content) < len(svg)


@skip_unless_available(AssetMinifyTransform)
def test_asset_minify_unknown_type(context: Context):
    transform = bound(context, AssetMinifyTransform())
    with pytest.raises(ValueError, match='MIME type'):
        transform(make_artifact(context, 'data.unknownext', 'x'))


def make_image(image_format: str, **save_kw):
    from PIL import Image

    img = Image.new('RGB', (64, 64))
    for x in range(64):
        for y in range(64):
            img.putpixel((x, y), ((x * 4) % 256, (y * 4) % 256, 128))
    buffer = io.BytesIO()
    img.save(buffer, format=image_format, **save_kw)
    return buffer.getvalue()


@skip_unless_available(ImageOptimizeTransform)
def test_png_optimized(context: Context):
    data = make_image('PNG', compress_level=0)
    result = bound(context, ImageOptimizeTransform())(make_artifact(context, 'a.png', data))
    assert len(result.content) < len(data)
    assert result.content.startswith(b'\x89PNG')


@skip_unless_available(ImageOptimizeTransform)
def test_jpeg_optimized(context: Context):
    from PIL import Image

    data = make_image('JPEG', quality=100)
    result = bound(context, ImageOptimizeTransform(jpeg_quality=50))(make_artifact(context, 'a.jpg', data))
    assert len(result.content) < len(data)
    with Image.open(io.BytesIO(result.content)) as img:
        assert img.format == 'JPEG'
        assert img.size == (64, 64)


@skip_unless_available(ImageOptimizeTransform)
def test_image_not_shrunk_is_kept(context: Context):
    data = make_image('PNG', optimize=True, compress_level=9)
    artifact = make_artifact(context, 'a.png', data)
    assert bound(context, ImageOptimizeTransform(png_compress_level=0))(artifact) is artifact


@skip_unless_available(ImageOptimizeTransform)
def test_other_image_formats_pass_through(context: Context):
    data = make_image('BMP')
    artifact = make_artifact(context, 'a.bmp', data)
    assert bound(context, ImageOptimizeTransform())(artifact) is artifact


def test_transforms_in_pipeline_are_bound(context: Context):
    transforms = [Passthrough(), SuffixFilter(Rename(suffix='.min'), ['.js'])]
    context.register(pipeline('js', '*.js', '.', transforms))
    assert all(tr.context is context for tr in transforms)
    assert transforms[1].transform.context is context
