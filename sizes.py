"""
Paper sizes and layout variants for genkō yōshi manuscript pages
Fixed 20-column papers in 200, 400 and 800 character formats, plus an
interactive selector built on rich
"""
from dataclasses import dataclass

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table
from rich import box


@dataclass(frozen=True)
class PaperSize:
    """One manuscript paper format; every page holds rows × cols cells"""
    key: str
    name: str
    rows: int
    cols: int = 20

    @property
    def chars_per_page(self):
        return self.rows * self.cols


@dataclass(frozen=True)
class LayoutVariant:
    """
    Geometry parameters for drawing a page

    cell_size and padding are in CSS pixels; gap_ratio and spine_ratio are
    multiples of cell_size. A variant without a spine draws the two
    10-column sections side by side.
    """
    name: str
    cell_size: float = 40
    gap_ratio: float = 0.25
    spine: bool = True
    spine_ratio: float = 1.1
    padding: float = 70
    section_cols: int = 10

    @property
    def gap_width(self):
        return self.cell_size * self.gap_ratio

    @property
    def spine_width(self):
        return self.cell_size * self.spine_ratio if self.spine else 0


class PaperSizeSelector:
    """Paper size table with case-insensitive lookups and a rich prompt"""

    PAPER_SIZES = {
        '200': PaperSize(key='200', name='200字詰め', rows=10),
        '400': PaperSize(key='400', name='400字詰め', rows=20),
        '800': PaperSize(key='800', name='800字詰め', rows=40),
    }

    LAYOUT_VARIANTS = {
        'gyobi': LayoutVariant(name='gyobi'),
        'plain': LayoutVariant(name='plain', gap_ratio=0, spine=False),
        'compact': LayoutVariant(name='compact', cell_size=32, gap_ratio=0, padding=48),
    }

    DEFAULT_SIZE = '400'
    DEFAULT_VARIANT = 'gyobi'

    def __init__(self, console=None):
        self.console = console or Console()

    @classmethod
    def get_size(cls, size):
        """Look up a paper size by its key (200, '400', ...) or return None"""
        if isinstance(size, PaperSize):
            return size
        return cls.PAPER_SIZES.get(str(size).strip())

    @classmethod
    def require_size(cls, size) -> PaperSize:
        paper = cls.get_size(size)
        if paper is None:
            raise ValueError(
                f"Unknown paper size {size!r}; expected one of {', '.join(cls.PAPER_SIZES)}"
            )
        return paper

    @classmethod
    def require_variant(cls, variant) -> LayoutVariant:
        if isinstance(variant, LayoutVariant):
            return variant
        found = cls.LAYOUT_VARIANTS.get(str(variant).lower())
        if found is None:
            raise ValueError(
                f"Unknown layout variant {variant!r}; expected one of {', '.join(cls.LAYOUT_VARIANTS)}"
            )
        return found

    def show_sizes(self):
        table = Table(title="Genkō Yōshi Paper Sizes", box=box.ROUNDED, expand=False)
        table.add_column("#", style="cyan", width=3, justify="right")
        table.add_column("Size", style="green", width=12)
        table.add_column("Grid", style="magenta", width=14, justify="center")
        table.add_column("Characters/page", style="yellow", justify="right")

        for i, paper in enumerate(self.PAPER_SIZES.values(), 1):
            table.add_row(
                str(i),
                paper.name,
                f"{paper.cols}×{paper.rows}",
                str(paper.chars_per_page),
            )

        self.console.print(table)

    def select_paper_size(self) -> PaperSize:
        """Show the table and prompt for a size, defaulting to 400"""
        self.show_sizes()
        self.console.print("\n[bold cyan]Select a paper size:[/bold cyan]")

        papers = list(self.PAPER_SIZES.values())
        default_index = list(self.PAPER_SIZES).index(self.DEFAULT_SIZE) + 1
        choice = Prompt.ask(
            "Enter selection",
            choices=[str(i) for i in range(1, len(papers) + 1)],
            default=str(default_index),
            console=self.console,
        )

        selected = papers[int(choice) - 1]
        self.console.print(
            f"\n[bold green]✓ Selected:[/bold green] {selected.name} "
            f"({selected.cols}×{selected.rows}, {selected.chars_per_page} characters/page)"
        )
        return selected
