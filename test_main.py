#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for the command line front end and text persistence
"""

import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from rich.console import Console

from main import build_parser, decode_bytes, main, read_input_text
from manuscript import layout
from storage import STORAGE_KEY, FileTextStore, MemoryTextStore, default_state_path


def make_console():
    return Console(file=io.StringIO(), width=200)


class TestStorage(unittest.TestCase):
    """Stored text survives between runs"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / 'state' / 'state.json'

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_memory_store(self):
        store = MemoryTextStore()
        self.assertEqual(store.load(), '')
        store.save('原稿')
        self.assertEqual(store.load(), '原稿')
        store.clear()
        self.assertEqual(store.load(), '')

    def test_file_store_round_trip(self):
        store = FileTextStore(self.path)
        self.assertEqual(store.load(), '')
        store.save('吾輩は猫である')
        self.assertEqual(FileTextStore(self.path).load(), '吾輩は猫である')
        with open(self.path, encoding='utf-8') as f:
            self.assertEqual(json.load(f), {STORAGE_KEY: '吾輩は猫である'})

    def test_file_store_clear_keeps_other_keys(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({STORAGE_KEY: 'x', 'other': 1}), encoding='utf-8')
        store = FileTextStore(self.path)
        store.clear()
        self.assertEqual(store.load(), '')
        self.assertEqual(json.loads(self.path.read_text(encoding='utf-8')), {'other': 1})

    def test_corrupt_file_loads_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text('{not json', encoding='utf-8')
        with self.assertLogs(level='WARNING'):
            self.assertEqual(FileTextStore(self.path).load(), '')

    def test_non_utf8_file_loads_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_bytes(b'\xff\xfe\x00garbage')
        store = FileTextStore(self.path)
        with self.assertLogs(level='WARNING'):
            self.assertEqual(store.load(), '')
        with self.assertLogs(level='WARNING'):
            store.save('新しい')
        self.assertEqual(store.load(), '新しい')

    def test_default_path_uses_xdg_state_home(self):
        with patch.dict(os.environ, {'XDG_STATE_HOME': self.temp_dir.name}):
            self.assertEqual(default_state_path(), Path(self.temp_dir.name) / 'genkou' / 'state.json')


class TestInput(unittest.TestCase):
    """Input decoding and source selection"""

    def test_decode_utf8(self):
        text = '吾輩は猫である。名前はまだ無い。'
        self.assertEqual(decode_bytes(text.encode('utf-8')), text)

    def test_decode_shift_jis(self):
        text = '吾輩は猫である。名前はまだ無い。どこで生れたかとんと見当がつかぬ。' * 5
        self.assertEqual(decode_bytes(text.encode('shift_jis')), text)

    def test_crlf_file_takes_no_extra_cells(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / 'crlf.txt'
            path.write_bytes('あい\r\nうえ\r\n'.encode('utf-8'))
            text = read_input_text(str(path), make_console(), MemoryTextStore())
        self.assertEqual(text, 'あい\nうえ\n')
        self.assertEqual(layout(text, '400')[0].characters, 'あいうえ')

    def test_decode_old_mac_line_endings(self):
        self.assertEqual(decode_bytes(b'one\rtwo\r\nthree'), 'one\ntwo\nthree')

    def test_crlf_stdin(self):
        stdin = io.StringIO('line one\r\nline two')
        self.assertEqual(read_input_text('-', make_console(), MemoryTextStore(), stdin=stdin),
                         'line one\nline two')

    def test_stdin_dash(self):
        stdin = io.StringIO('piped text')
        self.assertEqual(read_input_text('-', make_console(), MemoryTextStore(), stdin=stdin), 'piped text')

    def test_piped_stdin(self):
        stdin = io.StringIO('piped text')
        self.assertEqual(read_input_text(None, make_console(), MemoryTextStore(), stdin=stdin), 'piped text')

    def test_stored_text_on_terminal(self):
        stdin = Mock()
        stdin.isatty.return_value = True
        store = MemoryTextStore('saved')
        self.assertEqual(read_input_text(None, make_console(), store, stdin=stdin), 'saved')
        stdin.read.assert_not_called()

    def test_missing_file_exits(self):
        console = make_console()
        with self.assertRaises(SystemExit) as cm:
            read_input_text('/nonexistent/input.txt', console, MemoryTextStore())
        self.assertEqual(cm.exception.code, 1)
        self.assertIn('not found', console.file.getvalue())


class TestCommands(unittest.TestCase):
    """End-to-end runs of each subcommand"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dir = Path(self.temp_dir.name)
        self.console = make_console()
        self.store = MemoryTextStore()

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_input(self, text, name='input.txt'):
        path = self.dir / name
        path.write_text(text, encoding='utf-8')
        return str(path)

    def run_main(self, *argv):
        main(list(argv), console=self.console, store=self.store)
        return self.console.file.getvalue()

    def test_count_json(self):
        output = self.run_main('count', '--json', self.write_input('Hello world. This is a test.'))
        payload = json.loads(output)
        self.assertEqual(payload['stats']['words'], 6)
        self.assertEqual(payload['stats']['sentences'], 2)
        self.assertEqual(len(payload['sns']), 8)
        self.assertEqual(payload['sns'][0]['platform'], 'Twitter / X')
        self.assertEqual(self.store.load(), 'Hello world. This is a test.')

    def test_count_tables(self):
        output = self.run_main('count', '--lang', 'en', self.write_input('東京 東京 東京 大阪'))
        self.assertIn('Counts', output)
        self.assertIn('Twitter / X', output)
        self.assertIn('東京', output)
        self.assertIn('75.0', output)

    def test_count_no_save(self):
        self.run_main('count', '--no-save', '--json', self.write_input('temporary'))
        self.assertEqual(self.store.load(), '')

    def test_count_clear(self):
        self.store.save('old')
        output = self.run_main('count', '--clear')
        self.assertEqual(self.store.load(), '')
        self.assertIn('cleared', output)

    def test_manuscript_png_pages(self):
        source = self.write_input('あ' * 250)
        out_dir = self.dir / 'out'
        self.run_main('manuscript', source, '--size', '200', '--scale', '1', '-o', str(out_dir))
        self.assertTrue((out_dir / 'manuscript_200_2pages_1.png').exists())
        self.assertTrue((out_dir / 'manuscript_200_2pages_2.png').exists())
        self.assertEqual(self.store.load(), 'あ' * 250)

    def test_manuscript_svg_single_page(self):
        source = self.write_input('原稿用紙')
        out_dir = self.dir / 'svg'
        self.run_main('manuscript', source, '--size', '400', '--format', 'svg', '-o', str(out_dir))
        self.assertTrue((out_dir / 'manuscript_400_1pages.svg').exists())

    def test_manuscript_docx_with_metadata(self):
        source = self.write_input('原稿用紙' * 100)
        metadata_path = self.dir / 'pages.json'
        self.run_main('manuscript', source, '--size', '200', '--format', 'docx',
                      '-o', str(self.dir), '--json', str(metadata_path), '--variant', 'plain')
        self.assertTrue((self.dir / 'manuscript_200_2pages.docx').exists())
        with open(metadata_path, encoding='utf-8') as f:
            self.assertEqual(len(json.load(f)), 2)

    def test_manuscript_uses_stored_text(self):
        self.store.save('保存済み')
        out_dir = self.dir / 'stored'
        with patch('sys.stdin') as stdin:
            stdin.isatty.return_value = True
            self.run_main('manuscript', '--size', '200', '--format', 'svg', '-o', str(out_dir))
        self.assertTrue((out_dir / 'manuscript_200_1pages.svg').exists())

    def test_manuscript_empty_input_exits(self):
        with self.assertRaises(SystemExit) as cm:
            self.run_main('manuscript', self.write_input('\n\n'), '--size', '200', '-o', str(self.dir))
        self.assertEqual(cm.exception.code, 1)
        self.assertIn('empty', self.console.file.getvalue())

    def test_manuscript_capacity_exits(self):
        source = self.write_input('あ' * 250)
        with self.assertRaises(SystemExit) as cm:
            self.run_main('manuscript', source, '--size', '200', '--max-pages', '1', '-o', str(self.dir))
        self.assertEqual(cm.exception.code, 1)
        self.assertEqual(list(self.dir.glob('*.png')), [])

    def test_sizes(self):
        output = self.run_main('sizes')
        for name in ('200字詰め', '400字詰め', '800字詰め'):
            self.assertIn(name, output)

    def test_unknown_size_is_rejected(self):
        with self.assertRaises(SystemExit) as cm:
            build_parser().parse_args(['manuscript', '--size', '300'])
        self.assertEqual(cm.exception.code, 2)

    def test_unexpected_errors_propagate(self):
        with patch('main.analyze_text', side_effect=RuntimeError('boom')):
            with self.assertLogs(level='CRITICAL'):
                with self.assertRaises(RuntimeError):
                    self.run_main('count', '--json', self.write_input('x'))


if __name__ == '__main__':
    unittest.main(verbosity=2, buffer=True)
