"""Tests for the filename-keyed attachment index."""

from wikisync.models import EntryKind, TreeEntry
from wikisync.sync.attachment_index import AttachmentIndexer


def test_indexes_image_files_by_filename():
    tree = [
        TreeEntry('assets/nested/diagram.png', 'sha-1'),
        TreeEntry('wiki/Home.md', 'sha-2'),
        TreeEntry('assets/Photo.JPG', 'sha-3'),
        TreeEntry('assets', 'sha-4', EntryKind.OTHER),
        TreeEntry('assets/fake.png', 'sha-5', EntryKind.OTHER),
    ]

    index, collisions = AttachmentIndexer().build(tree)

    assert sorted(index) == ['Photo.JPG', 'diagram.png']
    assert index['diagram.png'].repository_path == 'assets/nested/diagram.png'
    assert index['diagram.png'].content_hash == 'sha-1'
    assert collisions == {}


def test_duplicate_names_keep_alphabetically_first_path():
    tree = [
        TreeEntry('team/logo.png', 'sha-team'),
        TreeEntry('brand/logo.png', 'sha-brand'),
    ]

    index, collisions = AttachmentIndexer().build(tree)

    assert len(index) == 1
    assert index['logo.png'].repository_path == 'brand/logo.png'
    assert index['logo.png'].content_hash == 'sha-brand'
    assert collisions == {'logo.png': ['brand/logo.png', 'team/logo.png']}


def test_duplicate_resolution_ignores_listing_order():
    entries = [TreeEntry('z/icon.svg', 'z'), TreeEntry('a/icon.svg', 'a'), TreeEntry('m/icon.svg', 'm')]

    forward, _ = AttachmentIndexer().build(entries)
    backward, collisions = AttachmentIndexer().build(list(reversed(entries)))

    assert forward == backward
    assert collisions['icon.svg'] == ['a/icon.svg', 'm/icon.svg', 'z/icon.svg']
