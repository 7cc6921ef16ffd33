from pathlib import Path

import pytest

from brine.core import (
    Artifact, Context, DestinationLedger, FileMeta, Registry, Transform,
    TransformUnavailableException, build_settings, pipeline,
)
from brine.dependencies import PipDependency
from brine.errors import DuplicateNameError, RegistryFrozenError
from brine.paths import GlobMatcher
from brine.simple import Passthrough, SuffixFilter


class MissingDepTransform(Transform):
    @classmethod
    def get_dependencies(cls):
        return {PipDependency('definitely-not-installed', check_name='definitely_not_installed_pkg')}

    def __call__(self, artifact: Artifact):
        return artifact


@pytest.fixture
def settings(tmp_path):
    return build_settings(tmp_path / 'src', tmp_path / 'dist')


def test_registry_keeps_registration_order():
    registry = Registry()
    for name in ['js', 'css', 'html']:
        registry.register(pipeline(name, '*', '.'))
    assert [s.name for s in registry.list_all()] == ['js', 'css', 'html']
    assert registry.names() == ['js', 'css', 'html']
    assert 'css' in registry
    assert len(registry) == 3


def test_registry_rejects_duplicate_names():
    registry = Registry([pipeline('css', '*.scss', 'css')])
    with pytest.raises(DuplicateNameError):
        registry.register(pipeline('css', '*.css', 'css'))
    assert len(registry) == 1


def test_registry_frozen():
    registry = Registry()
    registry.freeze()
    with pytest.raises(RegistryFrozenError):
        registry.register(pipeline('css', '*.scss', 'css'))


def test_pipeline_factory_defaults():
    spec = pipeline('css', 'assets/scss/*.scss', 'css', base='assets/scss')
    assert isinstance(spec.source, GlobMatcher)
    assert spec.watch is spec.source
    assert spec.dest == Path('css')
    assert spec.base == Path('assets/scss')
    assert spec.transforms == ()

    watched = pipeline('css', 'a/*.scss', 'css', watch='a/**/*.scss')
    assert watched.watch is not watched.source
    assert watched.watch.pattern == 'a/**/*.scss'


def test_context_binds_transforms(settings):
    transform = Passthrough()
    context = Context(settings, [pipeline('copy', '*', '.', [transform])])
    assert transform.context is context


def test_context_rejects_unavailable_transform(settings):
    assert not MissingDepTransform.is_available()
    with pytest.raises(TransformUnavailableException) as info:
        Context(settings, [pipeline('broken', '*', '.', [MissingDepTransform()])])
    assert isinstance(info.value.transform, MissingDepTransform)


def test_context_rejects_wrapped_unavailable_transform(settings):
    wrapped = SuffixFilter(MissingDepTransform(), ['.png'])
    with pytest.raises(TransformUnavailableException):
        Context(settings, [pipeline('broken', '*', '.', [wrapped])])


def test_derive_meta_strips_base(settings):
    context = Context(settings)
    spec = pipeline('css', 'assets/scss/**/*.scss', 'css', base='assets/scss')
    source = settings['input_dir'] / 'assets' / 'scss' / 'themes' / 'dark.scss'
    meta = context.derive_meta(spec, source)
    assert meta == FileMeta(
        Path('themes/dark.scss'),
        source,
        settings['output_dir'] / 'css' / 'themes' / 'dark.scss',
    )


def test_derive_meta_outside_base(settings):
    context = Context(settings)
    spec = pipeline('css', '**/*.scss', 'css', base='assets/scss')
    source = settings['input_dir'] / 'other' / 'x.scss'
    assert context.derive_meta(spec, source).dest_path == settings['output_dir'] / 'css' / 'other' / 'x.scss'


def test_find_sources_sorted_and_filtered(settings):
    input_dir = settings['input_dir']
    for rel in ['b.html', 'a.html', 'tpl/layout.html', 'style.css']:
        (input_dir / rel).parent.mkdir(parents=True, exist_ok=True)
        (input_dir / rel).write_text('x')
    context = Context(settings)
    spec = pipeline('html', '*.html', '.')
    assert context.find_sources(spec) == [input_dir / 'a.html', input_dir / 'b.html']


def test_find_sources_missing_input_dir(settings):
    context = Context(settings)
    assert context.find_sources(pipeline('html', '*.html', '.')) == []


def test_file_meta_renames():
    meta = FileMeta(Path('a/style.css'), Path('src/a/style.css'), Path('dist/a/style.css'))
    renamed = meta.with_name('style.min.css')
    assert renamed.relative_path == Path('a/style.min.css')
    assert renamed.dest_path == Path('dist/a/style.min.css')
    assert renamed.source_path == meta.source_path
    assert meta.with_suffix('.map').dest_path == Path('dist/a/style.map')


def test_destination_ledger():
    ledger = DestinationLedger()
    path = Path('dist/index.html')
    assert ledger.claim(path, 'html') is None
    assert ledger.claim(path, 'html') is None
    assert ledger.claim(path, 'pages') == 'html'
    ledger.clear()
    assert ledger.claim(path, 'pages') is None


def test_destination_ledger_claims_all_or_nothing():
    ledger = DestinationLedger()
    page, style = Path('dist/index.html'), Path('dist/style.css')
    assert ledger.claim(style, 'css') is None
    assert ledger.claim_all([page, style], 'html') == (style, 'css')
    # The conflicting claim left no partial ownership behind.
    assert ledger.claim(page, 'pages') is None
    assert ledger.claim_all([page], 'pages') is None


def test_dependency_composition():
    present = PipDependency('pytest')
    missing = PipDependency('not-here', check_name='not_here_at_all', extra='css')
    assert present.satisfied
    assert not missing.satisfied
    assert (present | missing).satisfied
    assert not (present & missing).satisfied
    assert (present & missing).install_hint == 'pip install brine[css]'
