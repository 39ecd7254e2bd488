#!/usr/bin/env python3
# ░▄▀▄░▀█▀░█▄█▒██▀▒█▀▄░▀█▀▒▄▀▄░█▒░▒██▀░▄▀▀
# ░▀▄▀░▒█▒▒█▒█░█▄▄░█▀▄░▒█▒░█▀█▒█▄▄░█▄▄▒▄██
"""
Genkō Yōshi Counter - text statistics and manuscript paper rendering
Counts characters, words and reading time, checks SNS length limits, and
lays text out on vertical 200/400/800 character manuscript paper
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import chardet
from rich.console import Console
from rich.progress import Progress, BarColumn, TextColumn, TaskProgressColumn
from rich.table import Table
from rich import box

from analysis import analyze_text, check_sns, format_time
from genkou_helpers import ManuscriptDocxExporter
from manuscript import (
    LayoutCapacityError,
    ManuscriptLayoutEngine,
    MAX_PAGES,
    export_filename,
    export_page_metadata_json,
)
from sizes import PaperSizeSelector
from storage import FileTextStore
from surfaces import RasterSurface, SvgSurface, render_page

logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')

STATUS_STYLES = {'ok': 'green', 'warning': 'yellow', 'over': 'bold red'}


def normalize_newlines(text):
    return text.replace('\r\n', '\n').replace('\r', '\n')


def decode_bytes(raw_data):
    """Decode input bytes, trusting chardet only when it is confident"""
    encoding_result = chardet.detect(raw_data)
    detected_encoding = encoding_result['encoding'] if encoding_result['confidence'] > 0.7 else 'utf-8'
    try:
        text = raw_data.decode(detected_encoding)
    except (UnicodeDecodeError, LookupError):
        text = raw_data.decode('utf-8', errors='ignore')
    return normalize_newlines(text)


def read_input_text(source, console, store, stdin=None):
    """
    Text from a file, from stdin ('-' or piped input), or the stored text
    when nothing is given on an interactive terminal
    """
    stdin = stdin or sys.stdin
    if source == '-' or (source is None and not stdin.isatty()):
        return normalize_newlines(stdin.read())

    if source is None:
        text = store.load()
        if text:
            logging.info(f"Restored {len(text)} characters from {getattr(store, 'path', 'storage')}")
        return text

    input_path = Path(source)
    if not input_path.exists():
        console.print(f"[bold red]Error: Input file '{input_path}' not found.[/bold red]")
        sys.exit(1)

    try:
        with open(input_path, 'rb') as f:
            raw_data = f.read()
    except OSError as e:
        console.print(f"[bold red]Error reading file: {e}[/bold red]")
        sys.exit(1)
    return decode_bytes(raw_data)


def display_stats(stats, sns_checks, console, lang='ja'):
    """Print the statistics dashboard as rich tables"""
    counts = Table(title="Counts", box=box.ROUNDED)
    counts.add_column("Metric", style="cyan")
    counts.add_column("Value", style="bold", justify="right")
    for label, value in (
        ("Characters", stats.characters),
        ("Characters (no spaces)", stats.characters_no_space),
        ("Words", stats.words),
        ("Sentences", stats.sentences),
        ("Paragraphs", stats.paragraphs),
        ("Lines", stats.lines),
        ("Bytes (UTF-8)", stats.bytes_utf8),
        ("Average word length", f"{stats.average_word_length:.1f}"),
        ("Average sentence length", f"{stats.average_sentence_length:.1f}"),
    ):
        counts.add_row(label, f"{value:,}" if isinstance(value, int) else value)
    console.print(counts)

    classes = Table(title="Character classes", box=box.ROUNDED)
    for name in ("Hiragana", "Katakana", "Kanji", "Alphabet", "Numbers", "Symbols", "Spaces"):
        classes.add_column(name, justify="right")
    classes.add_row(*(str(getattr(stats, name.lower())) for name in (
        "Hiragana", "Katakana", "Kanji", "Alphabet", "Numbers", "Symbols", "Spaces")))
    console.print(classes)

    times = Table(title="Time estimates", box=box.ROUNDED)
    times.add_column("Reading", justify="right")
    times.add_column("Speaking", justify="right")
    times.add_column("Typing", justify="right")
    times.add_row(
        format_time(stats.reading_time_seconds, lang),
        format_time(stats.speaking_time_seconds, lang),
        format_time(stats.typing_time_seconds, lang),
    )
    console.print(times)

    scores = Table(title="Scores (0-100)", box=box.ROUNDED)
    scores.add_column("Readability", justify="right")
    scores.add_column("Complexity", justify="right")
    scores.add_column("Diversity", justify="right")
    scores.add_row(
        f"{stats.readability_score:.0f}",
        f"{stats.complexity_score:.0f}",
        f"{stats.diversity_score:.0f}",
    )
    console.print(scores)

    if stats.top_keywords:
        keywords = Table(title="Top keywords", box=box.ROUNDED)
        keywords.add_column("#", style="cyan", justify="right")
        keywords.add_column("Keyword", style="green")
        keywords.add_column("Count", justify="right")
        keywords.add_column("%", justify="right")
        for i, keyword in enumerate(stats.top_keywords, 1):
            keywords.add_row(str(i), keyword.word, str(keyword.count), f"{keyword.percentage:.1f}")
        console.print(keywords)

    sns = Table(title="SNS limits", box=box.ROUNDED)
    sns.add_column("Platform", style="cyan")
    sns.add_column("Limit", justify="right")
    sns.add_column("Remaining", justify="right")
    sns.add_column("Used", justify="right")
    sns.add_column("Status")
    for check in sns_checks:
        style = STATUS_STYLES[check.status]
        sns.add_row(
            check.platform,
            f"{check.limit:,}",
            f"{check.remaining:,}",
            f"{check.percentage:.1f}%",
            f"[{style}]{check.status}[/{style}]",
        )
    console.print(sns)


def command_count(args, console, store):
    if args.clear:
        store.clear()
        console.print("[bold green]✓ Stored text cleared[/bold green]")
        return

    text = read_input_text(args.input, console, store)
    stats = analyze_text(text)
    sns_checks = check_sns(text)

    if not args.no_save:
        store.save(text)

    if args.json:
        payload = {'stats': stats.to_dict(), 'sns': [check.to_dict() for check in sns_checks]}
        console.print_json(json.dumps(payload, ensure_ascii=False))
        return

    display_stats(stats, sns_checks, console, lang=args.lang)


def choose_paper_size(args, console):
    if args.size:
        return PaperSizeSelector.require_size(args.size)
    if console.is_interactive and sys.stdin.isatty():
        return PaperSizeSelector(console=console).select_paper_size()
    return PaperSizeSelector.require_size(PaperSizeSelector.DEFAULT_SIZE)


def make_surface(args):
    if args.format == 'svg':
        return SvgSurface()
    return RasterSurface(scale=args.scale, font_path=args.font, sans_font_path=args.sans_font)


def command_manuscript(args, console, store):
    text = read_input_text(args.input, console, store)
    if not ManuscriptLayoutEngine.display_characters(text):
        console.print("[bold red]Error: Nothing to render; the input is empty.[/bold red]")
        sys.exit(1)

    paper = choose_paper_size(args, console)
    engine = ManuscriptLayoutEngine(variant=args.variant, max_pages=args.max_pages, workers=args.workers)
    try:
        pages = engine.layout(text, paper)
    except LayoutCapacityError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        sys.exit(1)

    output_dir = Path(args.output or '.')
    output_dir.mkdir(parents=True, exist_ok=True)
    total_pages = len(pages)
    written = []

    if args.format == 'docx':
        output_path = output_dir / export_filename(paper, total_pages, 'docx')
        ManuscriptDocxExporter(variant=args.variant).save(pages, output_path)
        written.append(output_path)
    else:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Rendering pages...", total=total_pages)
            for page in pages:
                try:
                    surface = render_page(page, make_surface(args))
                except OSError as e:
                    console.print(f"[bold red]Error rendering page {page.page_number}: {e}[/bold red]")
                    sys.exit(1)
                output_path = output_dir / export_filename(paper, total_pages, args.format, page.page_number)
                surface.save(output_path)
                written.append(output_path)
                progress.update(task, advance=1,
                                description=f"Rendering pages... Page {page.page_number}/{total_pages}")

    logging.info(f"Rendered {total_pages} page(s) of {paper.name}")
    for path in written:
        console.print(f"[bold green]✓ Saved:[/bold green] {path}")

    if args.json:
        export_page_metadata_json(pages, args.json)
        console.print(f"[bold green]✓ Metadata JSON saved:[/bold green] {args.json}")

    if not args.no_save:
        store.save(text)


def command_sizes(args, console, store):
    PaperSizeSelector(console=console).show_sizes()


def build_parser():
    parser = argparse.ArgumentParser(description="Character counter and genkō yōshi manuscript renderer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--state", help="State file holding the last text")
    subparsers = parser.add_subparsers(dest="command", required=True)

    count = subparsers.add_parser("count", help="Show text statistics and SNS limits")
    count.add_argument("input", nargs="?", help="Input text file, '-' for stdin")
    count.add_argument("--json", action="store_true", help="Print statistics as JSON")
    count.add_argument("--lang", choices=["ja", "en"], default="ja", help="Language for durations")
    count.add_argument("--no-save", action="store_true", help="Do not remember the text")
    count.add_argument("--clear", action="store_true", help="Forget the stored text and exit")
    count.set_defaults(handler=command_count)

    manuscript = subparsers.add_parser("manuscript", help="Render text on manuscript paper")
    manuscript.add_argument("input", nargs="?", help="Input text file, '-' for stdin")
    manuscript.add_argument("--size", choices=list(PaperSizeSelector.PAPER_SIZES), help="Characters per page")
    manuscript.add_argument("--variant", choices=list(PaperSizeSelector.LAYOUT_VARIANTS),
                            default=PaperSizeSelector.DEFAULT_VARIANT, help="Layout variant")
    manuscript.add_argument("--format", choices=["png", "svg", "docx"], default="png", help="Output format")
    manuscript.add_argument("-o", "--output", help="Output directory")
    manuscript.add_argument("--font", help="Font file for manuscript glyphs (PNG only)")
    manuscript.add_argument("--sans-font", help="Font file for page labels (PNG only)")
    manuscript.add_argument("--scale", type=float, default=2, help="Device pixel scale for PNG output")
    manuscript.add_argument("--workers", type=int, help="Build pages in a thread pool")
    manuscript.add_argument("--max-pages", type=int, default=MAX_PAGES, help="Refuse texts needing more pages")
    manuscript.add_argument("--json", help="Export page cell metadata as JSON to file")
    manuscript.add_argument("--no-save", action="store_true", help="Do not remember the text")
    manuscript.set_defaults(handler=command_manuscript)

    sizes = subparsers.add_parser("sizes", help="List paper sizes")
    sizes.set_defaults(handler=command_sizes)
    return parser


def main(argv=None, console=None, store=None):
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    console = console or Console()
    store = store or FileTextStore(args.state)

    try:
        args.handler(args, console, store)
    except Exception as e:
        logging.critical(f"Command '{args.command}' failed: {e}")
        raise


if __name__ == "__main__":
    main()
