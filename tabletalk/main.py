"""
TableTalk - Main Entry Point

Command-line interface for asking questions of tabular files.
"""

import sys
import logging
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tabletalk import __version__
from tabletalk.config import TableTalkConfig
from tabletalk.core.context_builder import ContextBuilder
from tabletalk.core.errors import GrammarViolation, SecurityViolation, TableTalkError
from tabletalk.core.grammar import GrammarValidator
from tabletalk.core.interpreter import QueryResult, SQLInterpreter
from tabletalk.core.loader import load_dataset
from tabletalk.core.security import SecurityScanner
from tabletalk.inference.generator import SQLGenerator
from tabletalk.inference.llm_engine import LLMEngine
from tabletalk.session import QuerySession, export_results

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

console = Console()


def _load_config(config_path: Optional[str]) -> TableTalkConfig:
    if config_path:
        return TableTalkConfig.from_yaml(config_path)
    return TableTalkConfig()


def _build_session(data_file: str, table: Optional[str], config: TableTalkConfig) -> QuerySession:
    dataset = load_dataset(data_file, table_name=table)
    generator = SQLGenerator(LLMEngine(config.llm), config=config)
    return QuerySession(dataset, generator, security_log=generator.security_log)


def _print_results(results: QueryResult, max_rows: int = 50):
    """Render result rows as a table."""
    if not results:
        console.print("[yellow]No rows matched.[/yellow]")
        return

    columns = []
    for row in results:
        for key in row:
            if key not in columns:
                columns.append(key)

    table = Table(title=f"Results ({len(results)} rows)", show_header=True)
    for col in columns:
        table.add_column(str(col), style="cyan")
    for row in results[:max_rows]:
        table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])

    console.print(table)
    if len(results) > max_rows:
        console.print(f"[dim]... {len(results) - max_rows} more rows[/dim]")


def _fail(e: Exception, verbose: bool = False):
    if isinstance(e, SecurityViolation):
        console.print(f"[bold red]✗ Security Alert: {', '.join(e.labels)}[/bold red]")
    elif isinstance(e, GrammarViolation):
        console.print("[bold red]✗ SQL grammar error:[/bold red]")
        for detail in e.details:
            console.print(f"  • {detail}")
    else:
        console.print(f"[bold red]✗ Error: {e}[/bold red]")
    if verbose:
        import traceback
        traceback.print_exc()
    sys.exit(1)


# CLI Commands
@click.group()
@click.version_option(version=__version__, prog_name="TableTalk")
def cli():
    """TableTalk - Ask questions of your spreadsheets in plain English"""
    pass


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('question')
@click.option('--table', '-t', help='Table name (defaults to the file name)')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='YAML config file')
@click.option('--output', '-o', type=click.Path(), help='Export results to .csv or .xlsx')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def ask(data_file, question, table, config_path, output, verbose):
    """
    Ask a question about a data file.

    Examples:

        tabletalk ask ./rankings.csv "What is the rank of Nepal?"
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = _load_config(config_path)
        session = _build_session(data_file, table, config)
        results = session.ask(question)
    except TableTalkError as e:
        _fail(e, verbose)
        return

    console.print(Panel(session.last_sql, title="Generated SQL", border_style="blue"))
    _print_results(results)

    if output:
        try:
            path = export_results(results, output)
        except TableTalkError as e:
            _fail(e, verbose)
            return
        console.print(f"[green]✓ Results exported to {path}[/green]")


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('sql')
@click.option('--table', '-t', help='Table name (defaults to the file name)')
@click.option('--output', '-o', type=click.Path(), help='Export results to .csv or .xlsx')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def run(data_file, sql, table, output, verbose):
    """
    Validate and execute a SQL query against a data file.

    Examples:

        tabletalk run ./rankings.csv "SELECT * FROM rankings ORDER BY Rank LIMIT 5"
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        dataset = load_dataset(data_file, table_name=table)
        GrammarValidator().enforce(sql)
        results = SQLInterpreter().execute(dataset, sql)
    except TableTalkError as e:
        _fail(e, verbose)
        return

    _print_results(results)

    if output:
        try:
            path = export_results(results, output)
        except TableTalkError as e:
            _fail(e, verbose)
            return
        console.print(f"[green]✓ Results exported to {path}[/green]")


@cli.command()
@click.argument('text')
def scan(text):
    """Check text for prompt/SQL injection patterns."""
    report = SecurityScanner().report(text)
    if report.is_clean:
        console.print("[bold green]✓ No threats detected[/bold green]")
        return
    console.print("[bold red]✗ Threats detected:[/bold red]")
    for label in report.labels:
        console.print(f"  • {label}")
    sys.exit(1)


@cli.command()
@click.argument('sql')
def validate(sql):
    """Check SQL text against the grammar rules."""
    errors = GrammarValidator().validate(sql)
    if not errors:
        console.print("[bold green]✓ SQL is valid[/bold green]")
        return
    console.print("[bold red]✗ SQL grammar error:[/bold red]")
    for error in errors:
        console.print(f"  • {error.value}")
    sys.exit(1)


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('question', required=False)
@click.option('--table', '-t', help='Table name (defaults to the file name)')
def context(data_file, question, table):
    """Show the retrieval context built for a data file."""
    try:
        dataset = load_dataset(data_file, table_name=table)
    except TableTalkError as e:
        _fail(e)
        return

    builder = ContextBuilder()
    entries = builder.build(dataset.schema, dataset.rows)
    if question:
        entries = builder.relevant(question, entries)

    table_view = Table(title=f"Context for {dataset.name}", show_header=True)
    table_view.add_column("Column", style="cyan")
    table_view.add_column("Type", style="magenta")
    table_view.add_column("Distinct values", style="green")
    for entry in entries:
        values = ", ".join("" if v is None else str(v) for v in entry.distinct_values)
        table_view.add_row(entry.column, entry.type.value, values)
    console.print(table_view)


@cli.command()
@click.option('--host', '-h', help='Bind address')
@click.option('--port', '-p', type=int, help='Port')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='YAML config file')
@click.option('--debug', is_flag=True, help='Flask debug mode')
def serve(host, port, config_path, debug):
    """Run the HTTP API."""
    from tabletalk.webapp.app import create_app

    config = _load_config(config_path)
    app = create_app(config)
    console.print(Panel(
        f"[bold blue]TableTalk API[/bold blue]\n"
        f"[dim]Model: {config.llm.model}[/dim]",
        border_style="blue"
    ))
    app.run(
        host=host or config.server.host,
        port=port or config.server.port,
        debug=debug or config.server.debug,
    )


@cli.command()
def version():
    """Show version information."""
    console.print(Panel(
        f"[bold]TableTalk[/bold] v{__version__}\n\n"
        "Natural-language questions over tabular data.\n\n"
        "Components:\n"
        "  • Security Scanner\n"
        "  • Context Builder\n"
        "  • Prompt Composer\n"
        "  • Grammar Validator\n"
        "  • SQL Interpreter",
        title="About",
        border_style="blue"
    ))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
