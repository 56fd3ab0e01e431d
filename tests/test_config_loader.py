"""Tests for configuration loading, validation and CLI/env merging."""

import argparse
import os
import tempfile
import unittest
from unittest import mock

from wikisync.config_loader import ConfigLoader, DEFAULT_CONFIG, build_settings, should_skip
from wikisync.exceptions import ConfigurationError
from wikisync.logger import sanitize_config
from wikisync.models import SyncMapping


def write_config(directory, text):
    path = os.path.join(directory, 'wikisync.yaml')
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    return path


def cli_args(**overrides):
    values = {
        'ref': None, 'skip': False, 'cache_path': None, 'attachments_dir': None,
        'continue_on_error': False, 'no_progress': False, 'log_file': None, 'verbose': 0
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestLoad(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            ConfigLoader.load(os.path.join(self.temp_dir.name, 'absent.yaml'))

    def test_non_mapping_file(self):
        path = write_config(self.temp_dir.name, "- just\n- a list\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader.load(path)

    def test_defaults_fill_missing_values(self):
        path = write_config(self.temp_dir.name, "github:\n  repo: team-wiki\n")
        config = ConfigLoader.load(path)

        self.assertEqual(config['github']['owner'], 'BreadchainCoop')
        self.assertEqual(config['github']['repo'], 'team-wiki')
        self.assertEqual(config['sync']['mappings'], DEFAULT_CONFIG['sync']['mappings'])

    def test_env_substitution(self):
        path = write_config(
            self.temp_dir.name,
            "github:\n  owner: ${WIKI_OWNER}\n  token: ${WIKI_TOKEN}\n"
        )
        with mock.patch.dict(os.environ, {'WIKI_OWNER': 'acme', 'WIKI_TOKEN': 't0k3n'}):
            config = ConfigLoader.load(path)

        self.assertEqual(config['github']['owner'], 'acme')
        self.assertEqual(config['github']['token'], 't0k3n')

    def test_unset_variable_is_left_in_place(self):
        path = write_config(self.temp_dir.name, "github:\n  token: ${WIKISYNC_TEST_UNSET_VAR}\n")
        with mock.patch.dict(os.environ, {}, clear=True):
            config = ConfigLoader.load(path)
        self.assertEqual(config['github']['token'], '${WIKISYNC_TEST_UNSET_VAR}')

    def test_default_does_not_share_state(self):
        config = ConfigLoader.default()
        config['sync']['mappings'].append({'source': 'x', 'target': 'y'})
        self.assertEqual(len(DEFAULT_CONFIG['sync']['mappings']), 1)


class TestValidate(unittest.TestCase):
    def valid_config(self):
        with mock.patch.dict(os.environ, {'GITHUB_TOKEN': 'abc'}):
            return ConfigLoader.default()

    def test_default_config_is_valid(self):
        ConfigLoader.validate(self.valid_config())

    def test_missing_owner(self):
        config = self.valid_config()
        config['github']['owner'] = ''
        with self.assertRaisesRegex(ConfigurationError, 'github.owner'):
            ConfigLoader.validate(config)

    def test_unsubstituted_token(self):
        config = self.valid_config()
        config['github']['token'] = '${GITHUB_TOKEN}'
        with self.assertRaisesRegex(ConfigurationError, 'GITHUB_TOKEN'):
            ConfigLoader.validate(config)
        ConfigLoader.validate(config, require_token=False)

    def test_bad_api_url(self):
        config = self.valid_config()
        config['github']['api_url'] = 'ftp://example.com'
        with self.assertRaises(ConfigurationError):
            ConfigLoader.validate(config)

    def test_bad_timeout(self):
        config = self.valid_config()
        config['github']['timeout'] = 0
        with self.assertRaises(ConfigurationError):
            ConfigLoader.validate(config)

    def test_empty_mappings(self):
        config = self.valid_config()
        config['sync']['mappings'] = []
        with self.assertRaisesRegex(ConfigurationError, 'mappings'):
            ConfigLoader.validate(config)

    def test_mapping_without_target(self):
        config = self.valid_config()
        config['sync']['mappings'] = [{'source': 'wiki'}]
        with self.assertRaisesRegex(ConfigurationError, r'mappings\[0\]\.target'):
            ConfigLoader.validate(config)

    def test_non_boolean_flag(self):
        config = self.valid_config()
        config['sync']['skip'] = 'yes'
        with self.assertRaisesRegex(ConfigurationError, 'sync.skip'):
            ConfigLoader.validate(config)

    def test_collections_must_be_strings(self):
        config = self.valid_config()
        config['sync']['mappings'][0]['collections'] = [1, 2]
        with self.assertRaises(ConfigurationError):
            ConfigLoader.validate(config)


class TestOverrides(unittest.TestCase):
    def test_env_overrides(self):
        config = ConfigLoader.apply_env_overrides(
            {'github': {'owner': 'a', 'repo': 'b', 'token': '${GITHUB_TOKEN}'},
             'sync': {'mappings': [{'source': 'wiki', 'target': 'docs'}]}},
            environ={
                'GITHUB_REPO_OWNER': 'acme',
                'GITHUB_REPO_NAME': 'handbook',
                'GITHUB_WIKI_PATH': 'notes',
                'GITHUB_TOKEN': 'env-token',
                'WIKISYNC_SKIP': 'true'
            }
        )

        self.assertEqual(config['github']['owner'], 'acme')
        self.assertEqual(config['github']['repo'], 'handbook')
        self.assertEqual(config['github']['token'], 'env-token')
        self.assertEqual(config['sync']['mappings'][0]['source'], 'notes')
        self.assertTrue(config['sync']['skip'])

    def test_explicit_token_wins_over_env(self):
        config = ConfigLoader.apply_env_overrides(
            {'github': {'token': 'file-token'}},
            environ={'GITHUB_TOKEN': 'env-token'}
        )
        self.assertEqual(config['github']['token'], 'file-token')

    def test_merge_with_args(self):
        config = ConfigLoader.merge_with_args(ConfigLoader.default(), cli_args(
            ref='v2', skip=True, cache_path='cache.json', attachments_dir='static/img',
            continue_on_error=True, no_progress=True, log_file='sync.log', verbose=2
        ))

        self.assertEqual(config['github']['ref'], 'v2')
        self.assertTrue(config['sync']['skip'])
        self.assertEqual(config['sync']['cache_path'], 'cache.json')
        self.assertEqual(config['sync']['attachments_dir'], 'static/img')
        self.assertTrue(config['sync']['continue_on_error'])
        self.assertFalse(config['sync']['show_progress'])
        self.assertEqual(config['logging'], {'level': 'DEBUG', 'file': 'sync.log'})

    def test_merge_without_args_keeps_config(self):
        base = ConfigLoader.default()
        self.assertEqual(ConfigLoader.merge_with_args(base, cli_args()), base)

    def test_single_verbose_flag(self):
        config = ConfigLoader.merge_with_args(ConfigLoader.default(), cli_args(verbose=1))
        self.assertEqual(config['logging']['level'], 'INFO')


class TestSettings(unittest.TestCase):
    def test_build_settings(self):
        config = ConfigLoader.default()
        config['github'].update({'token': 'abc', 'ref': 'main'})
        config['sync']['mappings'] = [
            {'source': '/wiki/', 'target': 'docs', 'collections': ['people'], 'exclude_readme': False}
        ]

        settings = build_settings(config)

        self.assertEqual(settings.repository.full_name, 'BreadchainCoop/shared-obsidian')
        self.assertEqual(settings.repository.ref, 'main')
        self.assertEqual(settings.token, 'abc')
        self.assertEqual(settings.mappings, (
            SyncMapping('wiki', 'docs', exclude_filenames=(), collections=('people',)),
        ))
        self.assertTrue(settings.only_on_build)

    def test_unsubstituted_token_is_empty(self):
        config = ConfigLoader.default()
        config['github']['token'] = '${GITHUB_TOKEN}'
        self.assertEqual(build_settings(config).token, '')

    def test_should_skip(self):
        settings = build_settings(ConfigLoader.default())

        self.assertFalse(should_skip(settings, 'build', environ={}))
        self.assertTrue(should_skip(settings, 'dev', environ={}))
        self.assertTrue(should_skip(settings, 'build', environ={'WIKISYNC_SKIP': '1'}))
        self.assertFalse(should_skip(settings, 'build', environ={'WIKISYNC_SKIP': 'no'}))

    def test_should_skip_in_every_mode_when_configured(self):
        config = ConfigLoader.default()
        config['sync'].update({'skip': True, 'only_on_build': False})
        settings = build_settings(config)
        self.assertTrue(should_skip(settings, 'build', environ={}))

        config['sync']['skip'] = False
        self.assertFalse(should_skip(build_settings(config), 'dev', environ={}))


def test_sanitize_config_masks_token():
    config = {'github': {'token': 'secret', 'owner': 'acme'}, 'sync': {'mappings': []}}

    sanitized = sanitize_config(config)

    assert sanitized['github']['token'] == '***REDACTED***'
    assert sanitized['github']['owner'] == 'acme'
    assert config['github']['token'] == 'secret'


if __name__ == '__main__':
    unittest.main()
