"""Tests for conf -- config persistence and BridgeSettings."""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from itgio.conf import (
    BridgeSettings,
    load_config,
    load_settings,
    save_config,
    save_settings,
)


class _ConfigDirTest(unittest.TestCase):
    """Points CONFIG_DIR / CONFIG_PATH at a temporary directory."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.addCleanup(self._cleanup)
        self.config_dir = os.path.join(self.tmp, 'itgio')
        self.config_path = os.path.join(self.config_dir, 'config.json')
        for name, value in (('CONFIG_DIR', self.config_dir),
                            ('CONFIG_PATH', self.config_path)):
            patcher = patch(f'itgio.conf.{name}', value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def _cleanup(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _write_raw(self, text):
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_path, 'w') as f:
            f.write(text)


class TestLoadSaveConfig(_ConfigDirTest):

    def test_missing_file(self):
        self.assertEqual(load_config(), {})

    def test_corrupt_file(self):
        self._write_raw('{not json')
        self.assertEqual(load_config(), {})

    def test_non_object_file(self):
        self._write_raw('[1, 2, 3]')
        self.assertEqual(load_config(), {})

    def test_round_trip_creates_dir(self):
        save_config({'bridge': {'base_path': '/tmp/pad'}, 'other': 1})
        self.assertTrue(os.path.isdir(self.config_dir))
        self.assertEqual(load_config(), {'bridge': {'base_path': '/tmp/pad'}, 'other': 1})


class TestBridgeSettings(unittest.TestCase):

    def test_defaults(self):
        s = BridgeSettings()
        self.assertEqual(s.base_path, '/opt/itgio')
        self.assertEqual(s.poll_interval_ms, 20)
        self.assertEqual(s.control_timeout_ms, 50)
        self.assertAlmostEqual(s.poll_interval, 0.02)

    def test_stream_base_path(self):
        s = BridgeSettings(base_path='/tmp/pad')
        self.assertEqual(s.stream_base_path(0), '/tmp/pad_0')
        self.assertEqual(s.stream_base_path(3), '/tmp/pad_3')

    def test_from_dict(self):
        s = BridgeSettings.from_dict({
            'base_path': '/srv/itg', 'poll_interval_ms': 8, 'control_timeout_ms': '75',
        })
        self.assertEqual(s.base_path, '/srv/itg')
        self.assertEqual(s.poll_interval_ms, 8)
        self.assertEqual(s.control_timeout_ms, 75)

    def test_from_dict_ignores_invalid(self):
        with self.assertLogs('itgio.conf', level='WARNING') as logs:
            s = BridgeSettings.from_dict({
                'base_path': '', 'poll_interval_ms': 'fast', 'control_timeout_ms': 0,
            })
        self.assertEqual(s, BridgeSettings())
        self.assertEqual(len(logs.output), 2)

    def test_from_dict_ignores_unknown_keys(self):
        self.assertEqual(BridgeSettings.from_dict({'colour': 'red'}), BridgeSettings())

    def test_to_dict(self):
        self.assertEqual(BridgeSettings(base_path='/tmp/pad').to_dict(), {
            'base_path': '/tmp/pad', 'poll_interval_ms': 20, 'control_timeout_ms': 50,
        })


class TestLoadSaveSettings(_ConfigDirTest):

    def test_missing_file_gives_defaults(self):
        self.assertEqual(load_settings(), BridgeSettings())

    def test_round_trip(self):
        save_settings(BridgeSettings(base_path='/tmp/pad', poll_interval_ms=10))
        loaded = load_settings()
        self.assertEqual(loaded.base_path, '/tmp/pad')
        self.assertEqual(loaded.poll_interval_ms, 10)

    def test_save_keeps_other_sections(self):
        save_config({'ui': {'theme': 'dark'}})
        save_settings(BridgeSettings())
        with open(self.config_path) as f:
            data = json.load(f)
        self.assertEqual(data['ui'], {'theme': 'dark'})
        self.assertIn('bridge', data)

    def test_malformed_section(self):
        save_config({'bridge': 'oops'})
        with self.assertLogs('itgio.conf', level='WARNING'):
            self.assertEqual(load_settings(), BridgeSettings())


if __name__ == '__main__':
    unittest.main()
