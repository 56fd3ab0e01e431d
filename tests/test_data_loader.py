"""Tests for loading structured data entries from a repository directory."""

import unittest

import pytest
from fakes import FakeRemoteClient

from wikisync.exceptions import RemoteError, ValidationError
from wikisync.loaders import GitHubDataLoader, parse_json_file, parse_markdown_file, parse_yaml_file


class TestParsers:
    def test_json_defaults_id_to_stem(self):
        assert parse_json_file('{"name": "Alice"}', 'data/people/alice.json') == {'name': 'Alice', 'id': 'alice'}

    def test_json_keeps_explicit_id(self):
        assert parse_json_file('{"id": "a-1"}', 'data/a.json')['id'] == 'a-1'

    def test_json_array_rejected(self):
        with pytest.raises(ValidationError, match='array'):
            parse_json_file('[1, 2]', 'data/list.json')

    def test_invalid_json(self):
        with pytest.raises(ValidationError) as excinfo:
            parse_json_file('{broken', 'data/broken.json')
        assert excinfo.value.path == 'data/broken.json'

    def test_yaml_mapping(self):
        assert parse_yaml_file('title: Roadmap\ntags: [a]\n', 'data/roadmap.yml') == {
            'title': 'Roadmap', 'tags': ['a'], 'id': 'roadmap'
        }

    def test_yaml_scalar_rejected(self):
        with pytest.raises(ValidationError):
            parse_yaml_file('just a string', 'data/x.yaml')

    def test_markdown_frontmatter_and_body(self):
        entry = parse_markdown_file('---\nrole: Steward\n---\n\n# Bob\n', 'people/bob.md')
        assert entry['role'] == 'Steward'
        assert entry['id'] == 'bob'
        assert entry['content'].strip() == '# Bob'

    def test_markdown_without_frontmatter(self):
        entry = parse_markdown_file('Plain body', 'people/carol.md')
        assert entry == {'id': 'carol', 'content': 'Plain body'}


class TestGitHubDataLoader(unittest.TestCase):
    def setUp(self):
        self.client = FakeRemoteClient({
            'data/people/bob.json': b'{"name": "Bob"}',
            'data/people/alice.json': b'{"name": "Alice"}',
            'data/people/notes.txt': b'ignored',
            'data/people/broken.json': b'{oops',
            'data/projects/p.json': b'{"name": "P"}',
        })

    def test_loads_matching_files_in_path_order(self):
        loader = GitHubDataLoader(self.client, 'data/people', parse_json_file, pattern='*.json')

        with self.assertLogs('wikisync.loaders.data', level='WARNING'):
            entries = loader.load()

        self.assertEqual([entry['id'] for entry in entries], ['alice', 'bob'])
        self.assertEqual(loader.get_stats(), {'files_found': 3, 'entries_loaded': 2, 'files_failed': 1})
        self.assertEqual(self.client.calls['default_ref'], 1)

    def test_explicit_ref_skips_default_branch_lookup(self):
        loader = GitHubDataLoader(self.client, '/data/projects/', parse_json_file, ref='v1')
        self.assertEqual(loader.load(), [{'name': 'P', 'id': 'p'}])
        self.assertEqual(self.client.calls['default_ref'], 0)

    def test_fetch_failure_skips_file(self):
        self.client.failing_paths.add('data/projects/p.json')
        loader = GitHubDataLoader(self.client, 'data/projects', parse_json_file)

        with self.assertLogs('wikisync.loaders.data', level='WARNING'):
            self.assertEqual(loader.load(), [])
        self.assertEqual(loader.get_stats()['files_failed'], 1)

    def test_tree_failure_propagates(self):
        self.client.tree_error = RemoteError('no tree')
        with self.assertRaises(RemoteError):
            GitHubDataLoader(self.client, 'data', parse_json_file, ref='main').load()


if __name__ == '__main__':
    unittest.main()
