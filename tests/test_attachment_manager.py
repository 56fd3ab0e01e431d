"""Tests for image reference extraction and attachment resolution."""

import os
import tempfile
import unittest
from pathlib import Path

from fakes import FakeRemoteClient

from wikisync.models import AttachmentCacheEntry, CacheDocument
from wikisync.sync.attachment_index import AttachmentIndexer
from wikisync.sync.attachment_manager import AttachmentResolver, extract_image_references


class TestExtractImageReferences(unittest.TestCase):
    def test_both_syntaxes(self):
        text = (
            "![[diagram.png]]\n"
            "![[photo.jpg|300]]\n"
            "![Chart](assets/nested/chart.svg \"Quarterly\")\n"
            "![Spaced](<my image.png>)\n"
            "![Raw](img/pic.png?raw=true)\n"
        )
        self.assertEqual(
            extract_image_references(text),
            {'diagram.png', 'photo.jpg', 'chart.svg', 'my image.png', 'pic.png'}
        )

    def test_remote_urls_are_never_collected(self):
        text = "![a](https://example.com/a.png) ![b](http://example.com/b.png) ![[https://x.test/c.png]]"
        self.assertEqual(extract_image_references(text), set())

    def test_non_image_targets_are_ignored(self):
        text = "![[Other Note]] ![pdf](files/spec.pdf) [[link.png]] [not an image](logo.png)"
        self.assertEqual(extract_image_references(text), set())

    def test_duplicates_collapse_to_filename(self):
        text = "![[assets/logo.png]] ![Logo](../brand/logo.png) ![[logo.png#frag]]"
        self.assertEqual(extract_image_references(text), {'logo.png'})


class TestAttachmentResolver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.attachments_dir = os.path.join(self.temp_dir.name, 'public', 'attachments')
        self.client = FakeRemoteClient({
            'assets/nested/diagram.png': b'diagram-bytes',
            'assets/logo.png': b'logo-bytes',
        })
        self.index, _ = AttachmentIndexer().build(self.client.tree('main'))
        self.cache = CacheDocument()

    def tearDown(self):
        self.temp_dir.cleanup()

    def resolve(self, references):
        resolver = AttachmentResolver(self.client, show_progress=False)
        resolver.resolve(references, self.index, self.cache, self.attachments_dir, 'main')
        return resolver

    def test_downloads_flattened_attachment(self):
        resolver = self.resolve({'diagram.png': {'wiki/Home.md'}})

        local_path = Path(self.attachments_dir) / 'diagram.png'
        self.assertEqual(local_path.read_bytes(), b'diagram-bytes')

        entry = self.cache.attachments['diagram.png']
        self.assertEqual(entry.content_hash, self.client.sha_of('assets/nested/diagram.png'))
        self.assertEqual(entry.source_path, 'assets/nested/diagram.png')
        self.assertEqual(entry.local_path, str(local_path))
        self.assertEqual(entry.referenced_by, ['wiki/Home.md'])
        self.assertEqual(resolver.get_stats()['downloaded'], 1)

    def test_unchanged_attachment_is_not_fetched_again(self):
        self.resolve({'diagram.png': {'wiki/Home.md'}})
        fetches = self.client.calls['file_at']

        resolver = self.resolve({'diagram.png': {'wiki/Home.md', 'wiki/Other.md'}})

        self.assertEqual(self.client.calls['file_at'], fetches)
        self.assertEqual(resolver.get_stats()['skipped'], 1)
        self.assertEqual(self.cache.attachments['diagram.png'].referenced_by, ['wiki/Home.md', 'wiki/Other.md'])

    def test_changed_attachment_is_fetched_again(self):
        self.resolve({'logo.png': {'wiki/Home.md'}})
        self.client.set_file('assets/logo.png', b'new-logo')
        self.index, _ = AttachmentIndexer().build(self.client.tree('main'))

        self.resolve({'logo.png': {'wiki/Home.md'}})

        self.assertEqual((Path(self.attachments_dir) / 'logo.png').read_bytes(), b'new-logo')
        self.assertEqual(self.cache.attachments['logo.png'].content_hash, self.client.sha_of('assets/logo.png'))

    def test_missing_reference_is_logged_and_skipped(self):
        with self.assertLogs('wikisync.sync.attachments', level='WARNING') as logs:
            resolver = self.resolve({'ghost.png': {'wiki/Home.md'}})

        self.assertIn('ghost.png', '\n'.join(logs.output))
        self.assertEqual(resolver.get_stats()['missing'], 1)
        self.assertNotIn('ghost.png', self.cache.attachments)

    def test_download_failure_is_recoverable(self):
        self.client.failing_paths.add('assets/logo.png')

        resolver = self.resolve({'logo.png': {'wiki/Home.md'}, 'diagram.png': {'wiki/Home.md'}})

        self.assertEqual(resolver.get_stats()['failed'], 1)
        self.assertNotIn('logo.png', self.cache.attachments)
        self.assertIn('diagram.png', self.cache.attachments)

    def test_moved_attachments_dir_refetches(self):
        self.resolve({'diagram.png': {'wiki/Home.md'}})
        self.attachments_dir = os.path.join(self.temp_dir.name, 'static', 'img')

        resolver = self.resolve({'diagram.png': {'wiki/Home.md'}})

        moved = Path(self.attachments_dir) / 'diagram.png'
        self.assertEqual(moved.read_bytes(), b'diagram-bytes')
        self.assertEqual(self.cache.attachments['diagram.png'].local_path, str(moved))
        self.assertEqual(resolver.get_stats()['downloaded'], 1)

    def test_unreferenced_attachments_are_deleted(self):
        os.makedirs(self.attachments_dir)
        stale_path = os.path.join(self.attachments_dir, 'old.png')
        with open(stale_path, 'wb') as f:
            f.write(b'old')
        self.cache.attachments['old.png'] = AttachmentCacheEntry(
            'sha-old', 'assets/old.png', stale_path, '2024-01-01T00:00:00+00:00', ['wiki/Gone.md']
        )
        self.cache.attachments['vanished.png'] = AttachmentCacheEntry(
            'sha-gone', 'assets/vanished.png', os.path.join(self.attachments_dir, 'vanished.png'),
            '2024-01-01T00:00:00+00:00'
        )

        resolver = self.resolve({'diagram.png': {'wiki/Home.md'}})

        self.assertFalse(os.path.exists(stale_path))
        self.assertEqual(sorted(self.cache.attachments), ['diagram.png'])
        self.assertEqual(resolver.get_stats()['deleted'], 2)


if __name__ == '__main__':
    unittest.main()
