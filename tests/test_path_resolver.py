"""Tests for virtual path resolution and folder materialization."""

import threading
import time
from unittest.mock import Mock

import pytest

from uploader.exceptions import (
    ConflictError,
    InconsistentStateError,
    NetworkError,
    PathNotFoundError,
    ValidationError,
)
from uploader.path_resolver import PathResolver, VirtualPath
from uploader.schemas import FileRecord
from uploader.storage_client import StorageClient


@pytest.fixture
def resolver(storage):
    return PathResolver(storage)


class TestVirtualPath:
    @pytest.mark.parametrize('value', [None, '', '   ', '.'])
    def test_base_folder(self, value):
        assert VirtualPath.parse(value) == VirtualPath(segments=())

    @pytest.mark.parametrize('value', ['/', 'root', 'ROOT', ' Root '])
    def test_root(self, value):
        assert VirtualPath.parse(value) == VirtualPath(segments=(), from_root=True)

    def test_empty_segments_ignored(self):
        assert VirtualPath.parse('a//b/').segments == ('a', 'b')

    def test_leading_slash_anchors_at_root(self):
        path = VirtualPath.parse('/a/b')
        assert path.from_root
        assert path.base(42) == 0
        assert str(path) == '/a/b'

    def test_backslashes_normalized(self):
        assert VirtualPath.parse('a\\b\\c').segments == ('a', 'b', 'c')


class TestResolve:
    def test_empty_path_returns_base(self, resolver, fake_store):
        assert resolver.resolve('', base_id=5) == 5
        assert resolver.resolve('.', base_id=5) == 5
        assert fake_store.calls == []

    def test_root_ignores_base(self, resolver, fake_store):
        assert resolver.resolve('/', base_id=5) == 0
        assert resolver.resolve('root', base_id=5) == 0
        assert fake_store.calls == []

    def test_leading_slash_resolves_from_root(self, resolver, fake_store):
        docs = fake_store.add_folder('docs')
        assert resolver.resolve('/docs', base_id=999) == docs['id']
        assert fake_store.payloads('list')[0]['parent_id'] == 0

    def test_relative_path_resolves_from_base(self, resolver, fake_store):
        base = fake_store.add_folder('home')
        inner = fake_store.add_folder('docs', parent_id=base['id'])
        fake_store.add_folder('docs')
        assert resolver.resolve('docs', base_id=base['id']) == inner['id']

    def test_missing_segment_raises(self, resolver, fake_store):
        docs = fake_store.add_folder('docs')
        with pytest.raises(PathNotFoundError) as exc_info:
            resolver.resolve('docs/missing')
        assert exc_info.value.segment == 'missing'
        assert exc_info.value.parent_id == docs['id']
        assert fake_store.count('folder') == 0

    def test_files_are_not_folders(self, resolver, fake_store):
        fake_store.add_record('report', is_dir=False, size=3)
        with pytest.raises(PathNotFoundError):
            resolver.resolve('report')

    def test_second_resolve_uses_cache(self, resolver, fake_store):
        """Test that repeated resolution lists each parent at most once."""
        a = fake_store.add_folder('a')
        b = fake_store.add_folder('b', parent_id=a['id'])

        assert resolver.resolve('a/b') == b['id']
        assert fake_store.count('list') == 2

        assert resolver.resolve('a/b') == b['id']
        assert fake_store.count('list') == 2

    def test_invalidate_forces_relisting(self, resolver, fake_store):
        fake_store.add_folder('a')
        resolver.resolve('a')
        resolver.invalidate(0)
        resolver.resolve('a')
        assert fake_store.count('list') == 2

    def test_cache_is_per_resolver(self, storage, fake_store):
        fake_store.add_folder('a')
        PathResolver(storage).resolve('a')
        PathResolver(storage).resolve('a')
        assert fake_store.count('list') == 2


class TestCreation:
    def test_nested_creation_order(self, resolver, fake_store):
        """Test 'a/b/c' under an empty root creates a, then b under a, then c under b."""
        folder_id = resolver.resolve('a/b/c', create_missing=True)

        a = fake_store.find_child(0, 'a')
        b = fake_store.find_child(a['id'], 'b')
        c = fake_store.find_child(b['id'], 'c')
        assert folder_id == c['id']
        assert fake_store.payloads('folder') == [
            {'parent_id': 0, 'name': 'a'},
            {'parent_id': a['id'], 'name': 'b'},
            {'parent_id': b['id'], 'name': 'c'},
        ]

    def test_second_resolution_makes_no_calls(self, resolver, fake_store):
        first = resolver.resolve('a/b/c', create_missing=True)
        fake_store.calls.clear()

        assert resolver.resolve('a/b/c', create_missing=True) == first
        assert resolver.resolve('a/b/c') == first
        assert fake_store.calls == []

    def test_ensure_folder_path_idempotent(self, resolver, fake_store):
        first = resolver.ensure_folder_path(0, ['x', 'y'])
        second = resolver.ensure_folder_path(0, ['x', 'y'])
        assert first == second
        assert fake_store.count('folder') == 2

    def test_shared_prefix_created_once(self, resolver, fake_store):
        resolver.ensure_folder_path(0, ['photos', '2023'])
        resolver.ensure_folder_path(0, ['photos', '2024'])
        resolver.ensure_folder_path(0, ['photos'])
        assert [p['name'] for p in fake_store.payloads('folder')] == ['photos', '2023', '2024']

    def test_existing_folders_reused(self, resolver, fake_store):
        a = fake_store.add_folder('a')
        folder_id = resolver.resolve('a/new', create_missing=True)
        assert fake_store.payloads('folder') == [{'parent_id': a['id'], 'name': 'new'}]
        assert fake_store.find_child(a['id'], 'new')['id'] == folder_id

    @pytest.mark.parametrize('name', ['', '   ', 'a/b'])
    def test_invalid_folder_name(self, resolver, name):
        with pytest.raises(ValidationError):
            resolver.ensure_folder(0, name)

    @pytest.mark.parametrize('conflict_style', ['status', 'legacy'])
    def test_conflict_from_another_writer(self, storage, fake_store, conflict_style):
        """Two writers race on the same folder; both end up with the same id."""
        fake_store.conflict_style = conflict_style
        first = PathResolver(storage)
        second = PathResolver(storage)

        assert first.resolve_folder_id(0, 'x') is None
        created = second.ensure_folder(0, 'x')
        recovered = first.ensure_folder(0, 'x')

        assert recovered == created
        assert fake_store.count('folder') == 2
        assert len([r for r in fake_store.children(0) if r['name'] == 'x']) == 1

    def test_inconsistent_state(self, resolver, fake_store):
        fake_store.phantom_creates = True
        with pytest.raises(InconsistentStateError) as exc_info:
            resolver.ensure_folder(0, 'ghost')
        assert exc_info.value.name == 'ghost'
        assert exc_info.value.parent_id == 0
        assert fake_store.count('folder') == 1

    def test_other_creation_errors_propagate(self):
        client = Mock(spec=StorageClient)
        client.list_children.return_value = []
        client.create_folder.side_effect = NetworkError('permission denied', status_code=403)

        with pytest.raises(NetworkError) as exc_info:
            PathResolver(client).ensure_folder(0, 'x')
        assert exc_info.value.status_code == 403
        assert client.list_children.call_count == 1


class SlowFolderService:
    """Thread-safe stand-in for the folder endpoints with a slow create call."""

    def __init__(self):
        self.folders = {}
        self.creates = 0
        self._lock = threading.Lock()

    def list_children(self, parent_id):
        with self._lock:
            return [FileRecord(id=i, name=n, parent_id=parent_id, is_dir=True)
                    for (p, n), i in self.folders.items() if p == parent_id]

    def create_folder(self, parent_id, name):
        time.sleep(0.01)
        with self._lock:
            self.creates += 1
            if (parent_id, name) in self.folders:
                raise ConflictError('folder already exists', status_code=409)
            self.folders[(parent_id, name)] = 100 + len(self.folders)


def test_concurrent_ensure_folder_creates_once():
    service = SlowFolderService()
    resolver = PathResolver(service)
    results = []

    def worker():
        results.append(resolver.ensure_folder_path(0, ['shared', 'child']))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(results)) == 1
    assert service.creates == 2
