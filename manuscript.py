"""
Manuscript layout engine for vertical genkō yōshi pages
Splits text into pages, computes the grid geometry and produces the draw
instructions a drawing surface turns into an image
"""

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from sizes import LayoutVariant, PaperSize, PaperSizeSelector


BACKGROUND_COLOR = '#ffffff'
THIN_LINE_COLOR = '#e0a0a0'
LINE_COLOR = '#c07070'
GLYPH_COLOR = '#1a1a1a'
LABEL_COLOR = '#666'

THIN_LINE_WIDTH = 0.6
SECTION_LINE_WIDTH = 1.0
BORDER_WIDTH = 4.0
SPINE_BORDER_WIDTH = 1.5
SPINE_MARK_WIDTH = 4.0

SERIF_FONT = '"Noto Serif JP", "游明朝", "YuMincho", "Hiragino Mincho ProN", "HG明朝E", serif'
SANS_FONT = 'sans-serif'
LABEL_FONT_SIZE = 16
LABEL_BOTTOM_OFFSET = 25

# Bold separators every 5 rows / 5 columns
BLOCK_SIZE = 5
# Spine marks: upward arch at row 4, flat bar at row 15
SPINE_ARCH_ROW = 4
SPINE_BAR_ROW = 15
SPINE_MARK_RATIO = 0.8
SPINE_ARCH_HEIGHT = 0.15

MAX_PAGES = 1000


class LayoutCapacityError(ValueError):
    """Text needs more pages than the engine is allowed to produce"""


@dataclass(frozen=True)
class Rect:
    kind: ClassVar[str] = 'rect'
    x: float
    y: float
    width: float
    height: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0


@dataclass(frozen=True)
class Line:
    kind: ClassVar[str] = 'line'
    x1: float
    y1: float
    x2: float
    y2: float
    width: float
    color: str
    cap: str = 'butt'


@dataclass(frozen=True)
class Curve:
    """Quadratic Bézier from (x1, y1) to (x2, y2) through control (cx, cy)"""
    kind: ClassVar[str] = 'curve'
    x1: float
    y1: float
    cx: float
    cy: float
    x2: float
    y2: float
    width: float
    color: str
    cap: str = 'butt'


@dataclass(frozen=True)
class Glyph:
    """Text centered on (x, y); rotation in degrees clockwise"""
    kind: ClassVar[str] = 'glyph'
    text: str
    x: float
    y: float
    size: float
    rotation: float = 0
    color: str = GLYPH_COLOR
    font: str = SERIF_FONT


@dataclass(frozen=True)
class GlyphPlacement:
    """Offsets from the cell center and size, all in cell units"""
    text: str
    dx: float = 0
    dy: float = 0
    scale: float = 0.70
    rotation: float = 0


class GlyphRules:
    """Vertical-writing placement rules; the first matching rule wins"""

    OPENING_BRACKETS = frozenset('「『（(【《')
    CLOSING_BRACKETS = frozenset('」』）)】》')
    SENTENCE_PUNCTUATION = frozenset('、。，．')
    SMALL_KANA = frozenset('ゃゅょぁぃぅぇぉっゎャュョァィゥェォッヮ')
    LONG_VOWEL = 'ー'
    LONG_VOWEL_VERTICAL = '｜'

    NORMAL_SCALE = 0.70
    SMALL_KANA_SCALE = 0.55
    BRACKET_SHIFT = 0.12
    PUNCTUATION_SHIFT = 0.25
    SMALL_KANA_SHIFT = 0.08

    @classmethod
    def is_opening_bracket(cls, char):
        return char in cls.OPENING_BRACKETS

    @classmethod
    def is_closing_bracket(cls, char):
        return char in cls.CLOSING_BRACKETS

    @classmethod
    def is_punctuation(cls, char):
        return char in cls.SENTENCE_PUNCTUATION

    @classmethod
    def is_small_kana(cls, char):
        return char in cls.SMALL_KANA

    @classmethod
    def placement(cls, char) -> GlyphPlacement:
        if cls.is_opening_bracket(char):
            return GlyphPlacement(char, dy=-cls.BRACKET_SHIFT)
        if cls.is_closing_bracket(char):
            return GlyphPlacement(char, dy=cls.BRACKET_SHIFT)
        if cls.is_punctuation(char):
            # Up and to the right, as in handwritten manuscripts
            return GlyphPlacement(char, dx=cls.PUNCTUATION_SHIFT, dy=-cls.PUNCTUATION_SHIFT)
        if cls.is_small_kana(char):
            return GlyphPlacement(
                char,
                dx=cls.SMALL_KANA_SHIFT,
                dy=cls.SMALL_KANA_SHIFT,
                scale=cls.SMALL_KANA_SCALE,
            )
        if char == cls.LONG_VOWEL:
            return GlyphPlacement(cls.LONG_VOWEL_VERTICAL, rotation=90)
        return GlyphPlacement(char, scale=cls.NORMAL_SCALE)


@dataclass(frozen=True)
class PageGeometry:
    """Pixel geometry of one page: right section, spine, left section"""
    rows: int
    cols: int
    section_cols: int
    cell_size: float
    gap_width: float
    spine_width: float
    padding: float
    section_width: float
    width: float
    height: float

    @classmethod
    def compute(cls, paper: PaperSize, variant: LayoutVariant):
        section_cols = variant.section_cols
        cell = variant.cell_size
        gap = variant.gap_width
        section_width = section_cols * cell + (section_cols - 1) * gap
        spine_width = variant.spine_width
        return cls(
            rows=paper.rows,
            cols=paper.cols,
            section_cols=section_cols,
            cell_size=cell,
            gap_width=gap,
            spine_width=spine_width,
            padding=variant.padding,
            section_width=section_width,
            width=section_width * 2 + spine_width + variant.padding * 2,
            height=paper.rows * cell + variant.padding * 2,
        )

    @property
    def left_section_start(self):
        return self.padding

    @property
    def spine_start(self):
        return self.padding + self.section_width

    @property
    def spine_end(self):
        return self.spine_start + self.spine_width

    @property
    def right_section_start(self):
        return self.spine_end

    @property
    def grid_bottom(self):
        return self.height - self.padding

    def column_left_x(self, column_index):
        """
        Left edge of a text column in reading order

        Columns 0..section_cols-1 run through the right section from its
        rightmost column toward the spine; the rest run through the left
        section from the spine outward.
        """
        step = self.cell_size + self.gap_width
        if column_index < self.section_cols:
            local_index = (self.section_cols - 1) - column_index
            return self.right_section_start + local_index * step
        local_index = (self.section_cols - 1) - (column_index - self.section_cols)
        return self.left_section_start + local_index * step

    def cell_center(self, column_index, row):
        x = self.column_left_x(column_index) + self.cell_size / 2
        y = self.padding + row * self.cell_size + self.cell_size / 2
        return x, y


@dataclass(frozen=True)
class CellPlacement:
    column: int
    row: int
    char: str


class ManuscriptGrid:
    """Fills cells top to bottom, then column by column in reading order"""

    def __init__(self, rows, cols=20):
        self.rows = rows
        self.cols = cols
        self.current_column = 0
        self.current_row = 0
        self.cells: List[CellPlacement] = []

    def is_full(self):
        return self.current_column >= self.cols

    def advance_square(self):
        self.current_row += 1
        if self.current_row >= self.rows:
            self.current_column += 1
            self.current_row = 0

    def place_character(self, char):
        """Place one character; returns False when the page is full"""
        if self.is_full():
            return False
        self.cells.append(CellPlacement(self.current_column, self.current_row, char))
        self.advance_square()
        return True

    def place_text_batch(self, text):
        placed = 0
        for char in text:
            if not self.place_character(char):
                break
            placed += 1
        return placed


@dataclass(frozen=True)
class ManuscriptPage:
    index: int
    total_pages: int
    paper: PaperSize
    variant: str
    characters: str
    geometry: PageGeometry
    cells: Tuple[CellPlacement, ...]
    instructions: tuple

    @property
    def page_number(self):
        return self.index + 1

    @property
    def label(self):
        return f"{self.page_number} / {self.total_pages}" if self.total_pages > 1 else None


def grid_instructions(geometry: PageGeometry, variant: LayoutVariant) -> tuple:
    """Background, grid lines, outer border and spine for one page"""
    g = geometry
    top, bottom = g.padding, g.grid_bottom
    step = g.cell_size + g.gap_width
    instructions = [Rect(0, 0, g.width, g.height, fill=BACKGROUND_COLOR)]

    # Thin lines: both edges of every cell column, leaving the ruby gaps open
    for section_start in (g.left_section_start, g.right_section_start):
        for i in range(g.section_cols):
            col_x = section_start + i * step
            for x in (col_x, col_x + g.cell_size):
                instructions.append(Line(x, top, x, bottom, THIN_LINE_WIDTH, THIN_LINE_COLOR))

    for row in range(1, g.rows):
        if row % BLOCK_SIZE == 0:
            continue
        y = g.padding + row * g.cell_size
        instructions.append(Line(g.padding, y, g.width - g.padding, y, THIN_LINE_WIDTH, THIN_LINE_COLOR))

    # Section separators after the fifth column of each section and every fifth row
    for section_start in (g.left_section_start, g.right_section_start):
        x = section_start + (BLOCK_SIZE - 1) * step + g.cell_size
        instructions.append(Line(x, top, x, bottom, SECTION_LINE_WIDTH, LINE_COLOR))

    for row in range(BLOCK_SIZE, g.rows, BLOCK_SIZE):
        y = g.padding + row * g.cell_size
        instructions.append(Line(g.padding, y, g.width - g.padding, y, SECTION_LINE_WIDTH, LINE_COLOR))

    instructions.append(Rect(
        g.padding, g.padding, g.width - g.padding * 2, g.height - g.padding * 2,
        stroke=LINE_COLOR, line_width=BORDER_WIDTH,
    ))

    if variant.spine:
        instructions.extend(spine_instructions(g))

    return tuple(instructions)


def spine_instructions(g: PageGeometry) -> List:
    """Spine side borders plus the arch and bar marks that fit in the grid"""
    top, bottom = g.padding, g.grid_bottom
    instructions = [
        Line(g.spine_start, top, g.spine_start, bottom, SPINE_BORDER_WIDTH, LINE_COLOR),
        Line(g.spine_end, top, g.spine_end, bottom, SPINE_BORDER_WIDTH, LINE_COLOR),
    ]

    center_x = g.spine_start + g.spine_width / 2
    mark_width = g.spine_width * SPINE_MARK_RATIO
    mark_left = center_x - mark_width / 2
    mark_right = center_x + mark_width / 2

    if SPINE_ARCH_ROW < g.rows:
        upper_y = g.padding + SPINE_ARCH_ROW * g.cell_size
        arch_height = g.cell_size * SPINE_ARCH_HEIGHT
        instructions.append(Curve(
            mark_left, upper_y + arch_height,
            center_x, upper_y - arch_height,
            mark_right, upper_y + arch_height,
            SPINE_MARK_WIDTH, LINE_COLOR, cap='round',
        ))

    if SPINE_BAR_ROW < g.rows:
        lower_y = g.padding + SPINE_BAR_ROW * g.cell_size
        instructions.append(Line(
            mark_left, lower_y, mark_right, lower_y,
            SPINE_MARK_WIDTH, LINE_COLOR, cap='round',
        ))

    return instructions


def glyph_instruction(geometry: PageGeometry, cell: CellPlacement) -> Glyph:
    placement = GlyphRules.placement(cell.char)
    x, y = geometry.cell_center(cell.column, cell.row)
    size = geometry.cell_size
    return Glyph(
        text=placement.text,
        x=x + placement.dx * size,
        y=y + placement.dy * size,
        size=size * placement.scale,
        rotation=placement.rotation,
    )


class ManuscriptLayoutEngine:
    """
    Lays text out on manuscript pages

    The last result is kept and returned again for an identical
    (text, paper size, variant) request.
    """

    def __init__(self, variant='gyobi', max_pages=MAX_PAGES, workers=None):
        self.variant = PaperSizeSelector.require_variant(variant)
        self.max_pages = max_pages
        self.workers = workers
        # (key, pages) of the last request, always replaced as one tuple
        self._last: Optional[Tuple[tuple, Tuple[ManuscriptPage, ...]]] = None

    @staticmethod
    def display_characters(text):
        """Newlines take no cell on manuscript paper"""
        return text.replace('\n', '')

    @staticmethod
    def count_pages(char_count, paper: PaperSize):
        return max(1, math.ceil(char_count / paper.chars_per_page))

    def layout(self, text: str, paper_size=PaperSizeSelector.DEFAULT_SIZE) -> Tuple[ManuscriptPage, ...]:
        paper = PaperSizeSelector.require_size(paper_size)
        key = (text, paper.key, self.variant.name)
        last = self._last
        if last is not None and last[0] == key:
            logging.debug(f"Layout cache hit for {paper.name}")
            return last[1]

        chars = self.display_characters(text)
        total_pages = self.count_pages(len(chars), paper)
        if total_pages > self.max_pages:
            raise LayoutCapacityError(
                f"{len(chars)} characters need {total_pages} pages of {paper.name}; "
                f"the limit is {self.max_pages}"
            )

        per_page = paper.chars_per_page
        slices = [chars[i * per_page:(i + 1) * per_page] for i in range(total_pages)]
        geometry = PageGeometry.compute(paper, self.variant)
        grid = grid_instructions(geometry, self.variant)

        def build(index):
            return self._build_page(index, total_pages, paper, geometry, grid, slices[index])

        if self.workers and total_pages > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                pages = tuple(pool.map(build, range(total_pages)))
        else:
            pages = tuple(build(i) for i in range(total_pages))

        logging.debug(f"Laid out {len(chars)} characters on {total_pages} page(s) of {paper.name}")
        self._last = (key, pages)
        return pages

    def _build_page(self, index, total_pages, paper, geometry, grid, page_chars):
        sheet = ManuscriptGrid(rows=paper.rows, cols=paper.cols)
        sheet.place_text_batch(page_chars)

        instructions = list(grid)
        instructions.extend(glyph_instruction(geometry, cell) for cell in sheet.cells)

        if total_pages > 1:
            instructions.append(Glyph(
                text=f"{index + 1} / {total_pages}",
                x=geometry.width / 2,
                y=geometry.height - LABEL_BOTTOM_OFFSET,
                size=LABEL_FONT_SIZE,
                color=LABEL_COLOR,
                font=SANS_FONT,
            ))

        return ManuscriptPage(
            index=index,
            total_pages=total_pages,
            paper=paper,
            variant=self.variant.name,
            characters=page_chars,
            geometry=geometry,
            cells=tuple(sheet.cells),
            instructions=tuple(instructions),
        )


def layout(text, paper_size=PaperSizeSelector.DEFAULT_SIZE, variant='gyobi', workers=None, max_pages=MAX_PAGES):
    """Lay text out on fresh pages of the given paper size"""
    return ManuscriptLayoutEngine(variant=variant, max_pages=max_pages, workers=workers).layout(text, paper_size)


def export_filename(paper_size, total_pages, extension='png', page=None):
    """
    manuscript_<size>_<N>pages.<ext>; a page number is appended for
    per-page files of a multi-page document
    """
    paper = PaperSizeSelector.require_size(paper_size)
    stem = f"manuscript_{paper.key}_{total_pages}pages"
    if page is not None and total_pages > 1:
        stem = f"{stem}_{page}"
    return f"{stem}.{extension}"


def page_metadata(pages) -> List[Dict]:
    """Cell contents per page with 1-based column and row numbers"""
    metadata = []
    for page in pages:
        columns: Dict[int, Dict[int, str]] = {}
        for cell in page.cells:
            columns.setdefault(cell.column + 1, {})[cell.row + 1] = cell.char
        metadata.append({
            'page_num': page.page_number,
            'paper_size': page.paper.key,
            'columns': columns,
        })
    return metadata


def export_page_metadata_json(pages, output_path=None):
    """Export cell metadata as JSON, optionally writing it to output_path"""
    json_str = json.dumps(page_metadata(pages), ensure_ascii=False, indent=2)
    if output_path:
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(json_str)
    return json_str
