"""Tests for the wikisync command-line interface."""

import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from wikisync import cli


class TestCli(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.addCleanup(logging.getLogger('wikisync').handlers.clear)

    def test_render_to_output_file(self):
        source = self.root / 'page.md'
        source.write_text('# Page\n\n![[diagram.png]]\n', encoding='utf-8')
        output = self.root / 'out.md'

        self.assertEqual(cli.main(['render', str(source), '--output', str(output)]), 0)

        self.assertIn('![diagram.png](/attachments/diagram.png)', output.read_text(encoding='utf-8'))

    def test_render_missing_file(self):
        self.assertEqual(cli.main(['render', str(self.root / 'absent.md')]), 1)

    def test_sync_skip_makes_no_requests(self):
        config = self.root / 'wikisync.yaml'
        config.write_text(
            "github:\n  owner: acme\n  repo: handbook\n"
            f"sync:\n  cache_path: {self.root / 'cache.json'}\n",
            encoding='utf-8'
        )

        with mock.patch('wikisync.orchestrator.sync_orchestrator.GitHubClient') as client_class:
            code = cli.main(['sync', '--skip', '--config', str(config)])

        self.assertEqual(code, 0)
        client_class.assert_not_called()
        self.assertFalse((self.root / 'cache.json').exists())

    def test_sync_missing_config(self):
        self.assertEqual(cli.main(['sync', '--config', str(self.root / 'absent.yaml')]), 1)

    def test_sync_invalid_config(self):
        config = self.root / 'wikisync.yaml'
        config.write_text("sync:\n  mappings: []\n", encoding='utf-8')
        self.assertEqual(cli.main(['sync', '--skip', '--config', str(config)]), 1)

    def test_sync_without_token_fails(self):
        config = self.root / 'wikisync.yaml'
        config.write_text("github:\n  token: ''\n", encoding='utf-8')

        with mock.patch.dict(os.environ, {'GITHUB_TOKEN': ''}):
            os.environ.pop('WIKISYNC_SKIP', None)
            code = cli.main(['sync', '--config', str(config), '--no-progress'])

        self.assertEqual(code, 1)

    def test_subcommand_required(self):
        with self.assertRaises(SystemExit):
            cli.main([])


if __name__ == '__main__':
    unittest.main()
