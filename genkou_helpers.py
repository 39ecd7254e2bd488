"""
DOCX export of manuscript pages
Each page becomes a fixed-layout table that looks like genkō yōshi: one
square cell per character, vertical text direction, an empty spine column
between the two sections
"""

import logging

from docx import Document
from docx.enum.section import WD_ORIENTATION
from docx.enum.table import WD_ROW_HEIGHT_RULE, WD_TABLE_ALIGNMENT
from docx.enum.text import WD_PARAGRAPH_ALIGNMENT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Mm, Pt

from sizes import PaperSizeSelector


DOCX_CELL_MM = 8
DOCX_MARGIN_MM = 12
DOCX_FONT_NAME = 'Noto Serif JP'
# Grid line color matching the drawn manuscript
DOCX_BORDER_COLOR = 'C07070'


def configure_genkou_table(table, cell_width):
    """
    Configure table to look like traditional genkou yoshi manuscript paper
    """
    tbl = table._tbl
    tblPr = tbl.tblPr

    # Fixed layout keeps every cell square
    tblLayout = OxmlElement('w:tblLayout')
    tblLayout.set(qn('w:type'), 'fixed')
    tblPr.append(tblLayout)

    tblBorders = OxmlElement('w:tblBorders')
    for border_name in ['top', 'left', 'bottom', 'right', 'insideH', 'insideV']:
        border = OxmlElement(f'w:{border_name}')
        border.set(qn('w:val'), 'single')
        border.set(qn('w:sz'), '12' if border_name in ('top', 'left', 'bottom', 'right') else '4')
        border.set(qn('w:color'), DOCX_BORDER_COLOR)
        tblBorders.append(border)
    tblPr.append(tblBorders)

    for col in table.columns:
        col.width = cell_width


def configure_genkou_cell(cell, character, font_size_points, font_name):
    """
    Configure individual cell for genkou yoshi character placement
    """
    cell.text = ''

    tcPr = cell._tc.tcPr
    if tcPr is None:
        tcPr = OxmlElement('w:tcPr')
        cell._tc.insert(0, tcPr)

    vAlign = OxmlElement('w:vAlign')
    vAlign.set(qn('w:val'), 'center')
    tcPr.append(vAlign)

    textDirection = OxmlElement('w:textDirection')
    textDirection.set(qn('w:val'), 'tbRl')
    tcPr.append(textDirection)

    if character and character.strip():
        paragraph = cell.paragraphs[0]
        paragraph.alignment = WD_PARAGRAPH_ALIGNMENT.CENTER
        run = paragraph.add_run(character)
        run.font.name = font_name
        run.font.size = Pt(font_size_points)

    # 2pt margins
    tcMar = OxmlElement('w:tcMar')
    for margin in ['top', 'left', 'bottom', 'right']:
        mar = OxmlElement(f'w:{margin}')
        mar.set(qn('w:w'), '36')
        mar.set(qn('w:type'), 'dxa')
        tcMar.append(mar)
    tcPr.append(tcMar)


class ManuscriptDocxExporter:
    """Writes laid-out manuscript pages to a DOCX document"""

    def __init__(self, variant='gyobi', cell_mm=DOCX_CELL_MM, font_name=DOCX_FONT_NAME):
        self.variant = PaperSizeSelector.require_variant(variant)
        self.cell_mm = cell_mm
        self.font_name = font_name
        self.doc = Document()

    @property
    def spine_mm(self):
        return self.cell_mm * self.variant.spine_ratio if self.variant.spine else 0

    def table_column(self, column_index, section_cols):
        """
        Table column (left to right) for a text column in reading order,
        leaving room for the spine column when the variant has one
        """
        spine_cols = 1 if self.variant.spine else 0
        if column_index < section_cols:
            return section_cols + spine_cols + (section_cols - 1 - column_index)
        return section_cols - 1 - (column_index - section_cols)

    def setup_page_layout(self, paper):
        section = self.doc.sections[0]
        width = paper.cols * self.cell_mm + self.spine_mm + DOCX_MARGIN_MM * 2
        height = paper.rows * self.cell_mm + DOCX_MARGIN_MM * 2
        section.orientation = WD_ORIENTATION.PORTRAIT
        section.page_width = Mm(width)
        section.page_height = Mm(height)
        for side in ('top_margin', 'bottom_margin', 'left_margin', 'right_margin'):
            setattr(section, side, Mm(DOCX_MARGIN_MM))

    def add_page(self, page):
        geometry = page.geometry
        section_cols = geometry.section_cols
        spine_cols = 1 if self.variant.spine else 0
        total_cols = geometry.cols + spine_cols

        table = self.doc.add_table(rows=geometry.rows, cols=total_cols)
        table.alignment = WD_TABLE_ALIGNMENT.CENTER
        configure_genkou_table(table, Mm(self.cell_mm))

        font_size_points = self.cell_mm * 72 / 25.4 * 0.7
        chars = {}
        for cell in page.cells:
            chars[(cell.row, self.table_column(cell.column, section_cols))] = cell.char

        for row_idx, row in enumerate(table.rows):
            row.height = Mm(self.cell_mm)
            row.height_rule = WD_ROW_HEIGHT_RULE.EXACTLY
            for col_idx, cell in enumerate(row.cells):
                is_spine = spine_cols and col_idx == section_cols
                cell.width = Mm(self.spine_mm if is_spine else self.cell_mm)
                configure_genkou_cell(cell, chars.get((row_idx, col_idx)), font_size_points, self.font_name)

    def build(self, pages):
        """Add every page, separated by page breaks"""
        if not pages:
            return self.doc
        self.setup_page_layout(pages[0].paper)
        for index, page in enumerate(pages):
            self.add_page(page)
            if index < len(pages) - 1:
                self.doc.add_page_break()
        logging.debug(f"Built DOCX with {len(pages)} page(s)")
        return self.doc

    def save(self, pages, path):
        self.build(pages).save(str(path))
        return path
