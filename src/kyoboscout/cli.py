"""KyoboScout CLI - Kyobo bookstore search tool."""

import asyncio
import json
from enum import Enum
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from kyoboscout.client import KyoboClient, PlaywrightTransport
from kyoboscout.config import Settings
from kyoboscout.errors import KyoboError
from kyoboscout.log import configure_logging
from kyoboscout.models import Book, BookDetailResult, SearchResult
from kyoboscout.service import BookService

app = typer.Typer(
    name="kyoboscout",
    help="Search the Kyobo bookstore and extract book details.",
    no_args_is_help=True,
)
console = Console()


class OutputFormat(str, Enum):
    """Output format options."""

    table = "table"
    json = "json"
    csv = "csv"


CSV_FIELDS = ["id", "title", "authors", "publisher", "publish_date", "isbn", "pages", "rating", "detail_page_url"]


def load_settings(**overrides) -> Settings:
    try:
        return Settings.from_env().with_overrides(**overrides)
    except KyoboError as e:
        console.print(f"[red]Error:[/red] {e.user_message}")
        raise typer.Exit(1)


def build_service(transport: PlaywrightTransport, settings: Settings) -> BookService:
    client = KyoboClient(
        transport,
        timeout=settings.timeout,
        retries=settings.retries,
        min_request_interval=settings.min_request_interval,
    )
    return BookService(client, settings)


async def run_search(query: str, settings: Settings) -> SearchResult:
    async with PlaywrightTransport.launch() as transport:
        service = build_service(transport, settings)
        return await service.search_books(query)


async def run_detail(book_id: str, settings: Settings, embed_cover: bool) -> tuple[BookDetailResult, str | None]:
    async with PlaywrightTransport.launch() as transport:
        service = build_service(transport, settings)
        result = await service.get_book_detail(book_id)
        cover = None
        if embed_cover and result.book.cover_image_url:
            cover = await service.fetch_image_as_data_url(result.book.cover_image_url)
        return result, cover


async def run_health_check(settings: Settings) -> bool:
    async with PlaywrightTransport.launch() as transport:
        return await build_service(transport, settings).client.health_check()


def display_table(books: list[Book], title: str) -> None:
    """Display books as a rich table."""
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Authors", style="magenta")
    table.add_column("Publisher", style="green")
    table.add_column("Date", style="yellow", no_wrap=True)
    table.add_column("ISBN", style="blue", no_wrap=True)

    for book in books:
        table.add_row(
            book.id,
            book.title[:50] + "..." if len(book.title) > 50 else book.title,
            ", ".join(book.display_authors),
            book.publisher or "-",
            book.publish_date or "-",
            book.isbn or "-",
        )

    console.print(table)


def display_detail(book: Book) -> None:
    """Display a single book with its description and table of contents."""
    display_table([book], title=book.title)
    if book.pages:
        console.print(f"[bold]Pages:[/bold] {book.pages}")
    if book.rating is not None:
        console.print(f"[bold]Rating:[/bold] {book.rating}/10")
    if book.categories:
        console.print(f"[bold]Categories:[/bold] {' > '.join(book.categories)}")
    if book.description:
        console.print()
        console.print("[bold]Description[/bold]")
        console.print(book.description, markup=False)
    if book.table_of_contents:
        console.print()
        console.print("[bold]Table of contents[/bold]")
        console.print(book.table_of_contents, markup=False)


def display_json(data) -> None:
    """Display data as JSON."""
    console.print_json(json.dumps(data, ensure_ascii=False, default=str))


def display_csv(books: list[Book]) -> None:
    """Display books as CSV."""
    console.print(",".join(CSV_FIELDS), soft_wrap=True)
    for book in books:
        row = book.to_dict()
        row["authors"] = "; ".join(book.authors)
        values = []
        for name in CSV_FIELDS:
            value = "" if row[name] is None else str(row[name])
            # Escape quotes
            values.append('"' + value.replace('"', '""') + '"')
        console.print(",".join(values), markup=False, highlight=False, soft_wrap=True)


def fail(error: KyoboError) -> NoReturn:
    console.print(f"[red]Error:[/red] {error.user_message}")
    raise typer.Exit(1)


@app.command()
def search(
    query: Annotated[
        str,
        typer.Argument(help="Title, author or keyword to search for"),
    ],
    max_results: Annotated[
        int | None,
        typer.Option("--max", "-n", help="Maximum number of results"),
    ] = None,
    details: Annotated[
        bool,
        typer.Option("--details", "-d", help="Fetch the detail page of every result"),
    ] = False,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.table,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log requests and parser decisions"),
    ] = False,
) -> None:
    """Search kyobobook.co.kr for books."""
    configure_logging(verbose)
    settings = load_settings(max_results=max_results, enable_detail_fetch=details or None)

    try:
        with console.status(f"[bold green]Searching for '{query}'..."):
            result = asyncio.run(run_search(query, settings))
    except KyoboError as e:
        fail(e)

    if format == OutputFormat.table:
        if not result.books:
            console.print(f"No books found for '{query}'.")
            return
        display_table(result.books, title=f"Results for '{query}' ({len(result.books)}/{result.total_found})")
    elif format == OutputFormat.json:
        display_json(
            {
                "query": result.query,
                "total_found": result.total_found,
                "has_more": result.has_more,
                "books": [book.to_dict() for book in result.books],
            }
        )
    elif format == OutputFormat.csv:
        display_csv(result.books)


@app.command()
def detail(
    book_id: Annotated[
        str,
        typer.Argument(help="Product id, e.g. S000001234567"),
    ],
    toc_api_first: Annotated[
        bool,
        typer.Option("--toc-api-first", help="Query table-of-contents endpoints before trusting the page"),
    ] = False,
    embed_cover: Annotated[
        bool,
        typer.Option("--embed-cover", help="Include the cover image as a data URL (JSON output)"),
    ] = False,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.table,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log requests and parser decisions"),
    ] = False,
) -> None:
    """Show the details of a single book."""
    configure_logging(verbose)
    settings = load_settings(toc_api_first=toc_api_first or None)

    try:
        with console.status(f"[bold green]Fetching book {book_id}..."):
            result, cover = asyncio.run(run_detail(book_id, settings, embed_cover))
    except KyoboError as e:
        fail(e)

    if format == OutputFormat.table:
        display_detail(result.book)
        console.print()
        console.print(
            f"[dim]{result.parse_results.successful_fields}/{result.parse_results.total_fields} "
            f"fields found in {result.fetch_time:.2f}s[/dim]"
        )
    elif format == OutputFormat.json:
        data = result.book.to_dict()
        if cover:
            data["cover_data_url"] = cover
        data["parse_results"] = result.parse_results.to_dict()
        display_json(data)
    elif format == OutputFormat.csv:
        display_csv([result.book])


@app.command()
def health() -> None:
    """Check whether kyobobook.co.kr is reachable."""
    configure_logging()
    settings = load_settings()
    with console.status("[bold green]Checking kyobobook.co.kr..."):
        ok = asyncio.run(run_health_check(settings))
    if ok:
        console.print("[green]kyobobook.co.kr is reachable[/green]")
    else:
        console.print("[red]kyobobook.co.kr is not reachable[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
