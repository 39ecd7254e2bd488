"""
Drawing surfaces for manuscript pages
A surface receives the page's draw instructions in order and exports the
finished page: PNG through Pillow, SVG markup, or a recorded call list
"""

import io
import json
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import asdict
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from manuscript import SANS_FONT


class DrawingSurface:
    """Immediate-mode drawing target; one page per begin_page call"""

    def begin_page(self, width, height):
        raise NotImplementedError

    def draw_rect(self, rect):
        raise NotImplementedError

    def draw_line(self, line):
        raise NotImplementedError

    def draw_curve(self, curve):
        raise NotImplementedError

    def draw_glyph(self, glyph):
        raise NotImplementedError

    def export(self) -> bytes:
        raise NotImplementedError

    def save(self, path):
        path = Path(path)
        path.write_bytes(self.export())
        logging.debug(f"Saved {path}")
        return path


def render_page(page, surface: DrawingSurface):
    """Replay every instruction of page onto surface"""
    surface.begin_page(page.geometry.width, page.geometry.height)
    for instruction in page.instructions:
        getattr(surface, f"draw_{instruction.kind}")(instruction)
    return surface


class RecordingSurface(DrawingSurface):
    """Headless surface that only records what it was asked to draw"""

    def __init__(self):
        self.size = None
        self.calls = []

    def begin_page(self, width, height):
        self.size = (width, height)
        self.calls = []

    def _record(self, instruction):
        self.calls.append((instruction.kind, instruction))

    draw_rect = draw_line = draw_curve = draw_glyph = _record

    def glyphs(self):
        return [instruction for kind, instruction in self.calls if kind == 'glyph']

    def export(self) -> bytes:
        payload = {
            'size': self.size,
            'calls': [{'kind': kind, **asdict(instruction)} for kind, instruction in self.calls],
        }
        return json.dumps(payload, ensure_ascii=False).encode('utf-8')


class RasterSurface(DrawingSurface):
    """
    Pillow-backed surface

    Coordinates arrive in CSS pixels and are multiplied by scale, like a
    high-DPI canvas. Without a font path Pillow's bundled font is used,
    which has no CJK coverage; pass a Noto Serif JP (or similar) file for
    real manuscripts.
    """

    CURVE_SEGMENTS = 24

    def __init__(self, scale=2, font_path=None, sans_font_path=None):
        self.scale = scale
        self.font_path = font_path
        self.sans_font_path = sans_font_path or font_path
        self.image = None
        self.draw = None
        self._fonts = {}

    def begin_page(self, width, height):
        size = (math.ceil(width * self.scale), math.ceil(height * self.scale))
        self.image = Image.new('RGB', size, 'white')
        self.draw = ImageDraw.Draw(self.image)

    def _px(self, value):
        return value * self.scale

    def _stroke(self, width):
        return max(1, round(width * self.scale))

    def _font(self, family, size):
        px = max(1, round(size * self.scale))
        key = (family, px)
        if key not in self._fonts:
            path = self.sans_font_path if family == SANS_FONT else self.font_path
            if path:
                if not Path(path).exists():
                    raise FileNotFoundError(f"Font not found: {path}")
                self._fonts[key] = ImageFont.truetype(str(path), px)
            else:
                if not self._fonts:
                    logging.warning("No font file given; CJK glyphs may render as boxes")
                self._fonts[key] = ImageFont.load_default(size=px)
        return self._fonts[key]

    def _round_caps(self, points, width, color):
        radius = self._stroke(width) / 2
        for x, y in (points[0], points[-1]):
            self.draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=color)

    def draw_rect(self, rect):
        box = [
            self._px(rect.x), self._px(rect.y),
            self._px(rect.x + rect.width), self._px(rect.y + rect.height),
        ]
        if rect.stroke:
            self.draw.rectangle(box, fill=rect.fill, outline=rect.stroke, width=self._stroke(rect.line_width))
        else:
            self.draw.rectangle(box, fill=rect.fill)

    def draw_line(self, line):
        points = [(self._px(line.x1), self._px(line.y1)), (self._px(line.x2), self._px(line.y2))]
        self.draw.line(points, fill=line.color, width=self._stroke(line.width))
        if line.cap == 'round':
            self._round_caps(points, line.width, line.color)

    def draw_curve(self, curve):
        points = []
        for step in range(self.CURVE_SEGMENTS + 1):
            t = step / self.CURVE_SEGMENTS
            u = 1 - t
            x = u * u * curve.x1 + 2 * u * t * curve.cx + t * t * curve.x2
            y = u * u * curve.y1 + 2 * u * t * curve.cy + t * t * curve.y2
            points.append((self._px(x), self._px(y)))
        self.draw.line(points, fill=curve.color, width=self._stroke(curve.width), joint='curve')
        if curve.cap == 'round':
            self._round_caps(points, curve.width, curve.color)

    def draw_glyph(self, glyph):
        font = self._font(glyph.font, glyph.size)
        x, y = self._px(glyph.x), self._px(glyph.y)
        if not glyph.rotation:
            self.draw.text((x, y), glyph.text, font=font, fill=glyph.color, anchor='mm')
            return

        # Draw on a transparent tile, rotate it, paste it centered
        side = math.ceil(self._px(glyph.size) * 2)
        tile = Image.new('RGBA', (side, side), (0, 0, 0, 0))
        ImageDraw.Draw(tile).text((side / 2, side / 2), glyph.text, font=font, fill=glyph.color, anchor='mm')
        rotated = tile.rotate(-glyph.rotation, expand=True)
        left = round(x - rotated.width / 2)
        top = round(y - rotated.height / 2)
        self.image.paste(rotated, (left, top), rotated)

    def export(self) -> bytes:
        buffer = io.BytesIO()
        self.image.save(buffer, format='PNG')
        return buffer.getvalue()


def _fmt(value):
    return f"{round(value, 3):g}"


class SvgSurface(DrawingSurface):
    """Builds one SVG document per page with ElementTree"""

    SVG_NS = 'http://www.w3.org/2000/svg'

    def __init__(self):
        self.root = None

    def begin_page(self, width, height):
        self.root = ET.Element('svg', {
            'xmlns': self.SVG_NS,
            'width': _fmt(width),
            'height': _fmt(height),
            'viewBox': f"0 0 {_fmt(width)} {_fmt(height)}",
        })

    def draw_rect(self, rect):
        attrs = {
            'x': _fmt(rect.x), 'y': _fmt(rect.y),
            'width': _fmt(rect.width), 'height': _fmt(rect.height),
            'fill': rect.fill or 'none',
        }
        if rect.stroke:
            attrs['stroke'] = rect.stroke
            attrs['stroke-width'] = _fmt(rect.line_width)
        ET.SubElement(self.root, 'rect', attrs)

    def draw_line(self, line):
        ET.SubElement(self.root, 'line', {
            'x1': _fmt(line.x1), 'y1': _fmt(line.y1),
            'x2': _fmt(line.x2), 'y2': _fmt(line.y2),
            'stroke': line.color,
            'stroke-width': _fmt(line.width),
            'stroke-linecap': line.cap,
        })

    def draw_curve(self, curve):
        ET.SubElement(self.root, 'path', {
            'd': f"M {_fmt(curve.x1)} {_fmt(curve.y1)} Q {_fmt(curve.cx)} {_fmt(curve.cy)} "
                 f"{_fmt(curve.x2)} {_fmt(curve.y2)}",
            'fill': 'none',
            'stroke': curve.color,
            'stroke-width': _fmt(curve.width),
            'stroke-linecap': curve.cap,
        })

    def draw_glyph(self, glyph):
        attrs = {
            'x': _fmt(glyph.x), 'y': _fmt(glyph.y),
            'font-size': _fmt(glyph.size),
            'font-family': glyph.font,
            'fill': glyph.color,
            'text-anchor': 'middle',
            'dominant-baseline': 'central',
        }
        if glyph.rotation:
            attrs['transform'] = f"rotate({_fmt(glyph.rotation)} {_fmt(glyph.x)} {_fmt(glyph.y)})"
        element = ET.SubElement(self.root, 'text', attrs)
        element.text = glyph.text

    def export(self) -> bytes:
        return ET.tostring(self.root, encoding='utf-8', xml_declaration=True)


SURFACES = {
    'png': RasterSurface,
    'svg': SvgSurface,
}
