#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for drawing surfaces and DOCX export
"""

import io
import json
import math
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path

from docx import Document
from PIL import Image

from genkou_helpers import ManuscriptDocxExporter
from manuscript import layout
from surfaces import SURFACES, RasterSurface, RecordingSurface, SvgSurface, render_page

SVG = '{http://www.w3.org/2000/svg}'


class TestRecordingSurface(unittest.TestCase):
    """Instruction replay onto a headless surface"""

    def test_records_every_instruction(self):
        page = layout('テスト', '200')[0]
        surface = render_page(page, RecordingSurface())
        self.assertEqual(surface.size, (page.geometry.width, page.geometry.height))
        self.assertEqual(len(surface.calls), len(page.instructions))
        self.assertEqual(surface.calls[0][0], 'rect')
        self.assertEqual([g.text for g in surface.glyphs()], ['テ', 'ス', 'ト'])

    def test_export_is_json(self):
        page = layout('あ', '200')[0]
        payload = json.loads(render_page(page, RecordingSurface()).export())
        self.assertEqual(payload['calls'][-1]['kind'], 'glyph')
        self.assertEqual(payload['calls'][-1]['text'], 'あ')

    def test_begin_page_resets(self):
        surface = RecordingSurface()
        render_page(layout('あいう', '200')[0], surface)
        render_page(layout('あ', '200')[0], surface)
        self.assertEqual(len(surface.glyphs()), 1)


class TestRasterSurface(unittest.TestCase):
    """PNG output through Pillow"""

    def render(self, text='テスト', size='200', scale=1):
        page = layout(text, size)[0]
        return page, render_page(page, RasterSurface(scale=scale))

    def test_png_bytes(self):
        page, surface = self.render()
        data = surface.export()
        self.assertTrue(data.startswith(b'\x89PNG'))
        image = Image.open(io.BytesIO(data))
        self.assertEqual(image.size, (math.ceil(page.geometry.width), math.ceil(page.geometry.height)))

    def test_scale(self):
        page, surface = self.render(scale=2)
        self.assertEqual(surface.image.size,
                         (math.ceil(page.geometry.width * 2), math.ceil(page.geometry.height * 2)))

    def test_pixels(self):
        _, surface = self.render()
        self.assertEqual(surface.image.getpixel((0, 0)), (255, 255, 255))
        # Left edge of the outer border
        self.assertEqual(surface.image.getpixel((70, 200)), (192, 112, 112))

    def test_rotated_glyph(self):
        _, surface = self.render('ーー')
        self.assertEqual(surface.image.mode, 'RGB')

    def test_missing_font(self):
        page = layout('あ', '200')[0]
        with self.assertRaises(FileNotFoundError):
            render_page(page, RasterSurface(font_path='/nonexistent/font.ttf'))

    def test_save(self):
        _, surface = self.render()
        with tempfile.TemporaryDirectory() as temp_dir:
            path = surface.save(Path(temp_dir) / 'page.png')
            self.assertTrue(path.exists())
            self.assertGreater(path.stat().st_size, 0)


class TestSvgSurface(unittest.TestCase):
    """SVG markup output"""

    def test_document(self):
        page = layout('あー', '200')[0]
        data = render_page(page, SvgSurface()).export()
        self.assertTrue(data.startswith(b'<?xml'))
        root = ET.fromstring(data)
        self.assertEqual(root.tag, f'{SVG}svg')
        self.assertEqual(root.get('width'), '1164')

        texts = root.findall(f'{SVG}text')
        self.assertEqual([t.text for t in texts], ['あ', '｜'])
        self.assertIsNone(texts[0].get('transform'))
        self.assertTrue(texts[1].get('transform').startswith('rotate(90 '))

    def test_spine_arch_is_path(self):
        page = layout('', '400')[0]
        root = ET.fromstring(render_page(page, SvgSurface()).export())
        paths = root.findall(f'{SVG}path')
        self.assertEqual(len(paths), 1)
        self.assertIn(' Q ', paths[0].get('d'))
        self.assertEqual(paths[0].get('stroke-linecap'), 'round')
        self.assertEqual(len(root.findall(f'{SVG}line')), 64)

    def test_surface_table(self):
        self.assertIs(SURFACES['png'], RasterSurface)
        self.assertIs(SURFACES['svg'], SvgSurface)


class TestDocxExport(unittest.TestCase):
    """DOCX manuscript tables"""

    def test_table_column_mapping(self):
        exporter = ManuscriptDocxExporter()
        self.assertEqual(exporter.table_column(0, 10), 20)
        self.assertEqual(exporter.table_column(9, 10), 11)
        self.assertEqual(exporter.table_column(10, 10), 9)
        self.assertEqual(exporter.table_column(19, 10), 0)

        plain = ManuscriptDocxExporter(variant='plain')
        self.assertEqual(plain.table_column(0, 10), 19)
        self.assertEqual(plain.spine_mm, 0)

    def test_one_table_per_page(self):
        pages = layout('あ' * 250, '200')
        doc = ManuscriptDocxExporter().build(pages)
        self.assertEqual(len(doc.tables), 2)
        table = doc.tables[0]
        self.assertEqual(len(table.rows), 10)
        self.assertEqual(len(table.columns), 21)
        self.assertEqual(table.rows[0].cells[20].text, 'あ')
        self.assertEqual(table.rows[0].cells[10].text, '')

    def test_save(self):
        pages = layout('原稿用紙', '400')
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / 'manuscript.docx'
            ManuscriptDocxExporter().save(pages, path)
            self.assertTrue(path.exists())
            doc = Document(str(path))
            self.assertEqual(len(doc.tables), 1)
            self.assertEqual(doc.tables[0].rows[3].cells[20].text, '紙')


if __name__ == '__main__':
    unittest.main(verbosity=2, buffer=True)
