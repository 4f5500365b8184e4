"""Command-line interface for medialink."""

import asyncio
import sys
import click
from pathlib import Path
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from medialink.config import Config
from medialink.document import UploadFile
from medialink.editor import Editor
from medialink.engine import EngineError
from medialink.embed import EmbedError, parse_video_embed
from medialink.media_node import MediaNodeSchema
from medialink.platforms.notifier import ConsoleNotifier
from medialink.platforms.transport import HttpTransport
from medialink.url_policy import UrlPolicy

console = Console()

# Configure loguru with a rich console sink; default handler replaced
logger.remove()


def custom_rich_sink(message):
    """Custom loguru sink with color-coded levels."""
    record = message.record
    level = record["level"].name
    time = record["time"].strftime("%H:%M:%S")
    msg = escape(record["message"])

    level_colors = {
        "DEBUG": "dim",
        "INFO": "blue",
        "SUCCESS": "green",
        "WARNING": "yellow",
        "ERROR": "red bold",
    }

    color = level_colors.get(level, "white")
    formatted = f"[green]{time}[/green] | [{color}]{level: <8}[/{color}] | {msg}"
    console.print(formatted, highlight=False)


logger.add(custom_rich_sink, level="INFO")

# Add file logging
LOG_DIR = Path.home() / ".medialink" / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
logger.add(
    LOG_DIR / "medialink_{time:YYYY-MM-DD}.log",
    rotation="1 day",
    retention="7 days",
    level="DEBUG"
)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def cli(verbose):
    """ml - Linkable media for rich-text documents"""
    if verbose:
        logger.remove()
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level="DEBUG"
        )
        logger.debug("Verbose logging enabled")


@cli.command()
def init():
    """Configure the upload endpoint"""
    console.print("[bold cyan]medialink Setup[/bold cyan]\n")

    config = Config()
    settings = config.get_upload_settings()

    settings.endpoint = click.prompt("Upload endpoint URL", default=settings.endpoint or None)
    settings.token = click.prompt("Upload token (blank for none)", default="", hide_input=True,
                                  show_default=False)

    config.save_upload_settings(settings)
    console.print("\n[green]✓ Configuration saved to ~/.medialink/config.toml[/green]")


@cli.command()
def config_show():
    """Show current configuration (token masked)"""
    config = Config()

    if not config.exists():
        console.print("[yellow]No configuration found. Run 'ml init' first.[/yellow]")
        return

    upload = config.get_upload_settings()
    links = config.get_url_policy_settings()
    schema = config.get_schema_settings()

    console.print("[bold]Upload:[/bold]")
    console.print(f"  Endpoint: {upload.endpoint or 'Not configured'}")
    console.print(f"  Token: {upload.token[:6] + '...' if upload.token else 'None'}")
    console.print(f"  Accepted types: {', '.join(upload.accepted_types)}")

    console.print("\n[bold]Links:[/bold]")
    console.print(f"  Default protocol: {links.default_protocol}")
    console.print(f"  Allowed protocols: {', '.join(links.allowed_protocols)}")
    console.print(f"  Blocked domains: {', '.join(links.disallowed_domains) or 'None'}")

    console.print("\n[bold]Schema:[/bold]")
    console.print(f"  Allow base64 images: {'yes' if schema.allow_base64 else 'no'}")


@cli.command()
@click.argument('url')
@click.option('--autolink', is_flag=True, help='Also check whether the URL would be auto-linked')
def check_url(url, autolink):
    """Check a link destination against the URL policy

    Examples:
        ml check-url example.com
        ml check-url "javascript:alert(1)"
    """
    policy = UrlPolicy(Config().get_url_policy_settings())
    verdict = policy.check(url)

    if verdict.accepted:
        console.print(f"[green]✓ Allowed:[/green] {verdict.url}")
    else:
        console.print(f"[red]✗ Rejected:[/red] {verdict.reason}")

    if autolink:
        marker = "[green]yes[/green]" if policy.should_auto_link(url) else "[yellow]no[/yellow]"
        console.print(f"  Auto-link: {marker}")

    if not verdict.accepted:
        sys.exit(1)


@cli.command()
@click.argument('filepath', type=click.Path(exists=True))
def parse(filepath):
    """List media nodes found in an HTML file"""
    schema = MediaNodeSchema(Config().get_schema_settings())
    html = Path(filepath).read_text(encoding='utf-8')
    nodes = schema.parse_all(html)

    if not nodes:
        console.print("[yellow]No media nodes found[/yellow]")
        return

    table = Table(title=f"Media nodes in {Path(filepath).name}")
    table.add_column("#", style="dim")
    table.add_column("Source", style="cyan")
    table.add_column("Alt")
    table.add_column("Size")
    table.add_column("Link", style="blue")

    for i, node in enumerate(nodes, 1):
        size = f"{node.width or '?'}x{node.height or '?'}" if node.width or node.height else ""
        table.add_row(str(i), node.src or "", node.alt or "", size, node.href or "")

    console.print(table)


@cli.command()
@click.argument('document', type=click.Path(exists=True))
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--position', '-p', type=int, help='Insert position (default: end of document)')
@click.option('--output', '-o', type=click.Path(), help='Write result here instead of DOCUMENT')
def upload(document, files, position, output):
    """Upload images and insert them into an HTML document

    Examples:
        ml upload post.html photo.png diagram.gif -p 12
    """
    config = Config()
    try:
        transport = HttpTransport(config.get_upload_settings())
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.Abort()

    doc_path = Path(document)
    editor = Editor.from_config(config, transport=transport, notifier=ConsoleNotifier(console))
    editor.set_content(doc_path.read_text(encoding='utf-8'))
    uploads = [UploadFile.from_path(Path(f)) for f in files]

    if position is None:
        position = len(editor.engine)
    if not 0 <= position <= len(editor.engine):
        console.print(f"[red]✗ Position {position} outside document (0-{len(editor.engine)})[/red]")
        raise click.Abort()
    editor.select(position)

    async def run():
        outcome = editor.upload_files(uploads)
        await editor.wait_for_uploads()
        return outcome

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        task = progress.add_task(f"Uploading {len(uploads)} files...", total=None)
        outcome = asyncio.run(run())
        progress.update(task, completed=True)

    if not outcome.handled:
        console.print("[yellow]Nothing inserted[/yellow]")
        return

    inserted = [t for t in outcome.tasks if t.file_url and not t.error]
    if not inserted:
        logger.error("All {} uploads failed, {} left unchanged", len(outcome.tasks), doc_path)
        console.print("[red]✗ No uploads were inserted[/red]")
        raise click.Abort()

    target = Path(output) if output else doc_path
    target.write_text(editor.get_html(), encoding='utf-8')
    console.print(f"[green]✓ Wrote {target}[/green]")


def _edit_links(document, start, end, url, output):
    doc_path = Path(document)
    editor = Editor.from_config(Config(), notifier=ConsoleNotifier(console))
    editor.set_content(doc_path.read_text(encoding='utf-8'))

    try:
        editor.select(start, end)
    except (ValueError, EngineError) as e:
        console.print(f"[red]✗ Invalid selection: {e}[/red]")
        raise click.Abort()

    state = editor.begin_attach()
    logger.debug("Link target mode={}, current={}", state.mode.value, state.current_href)

    result = editor.commit_attach(url) if url is not None else editor.detach()
    if not result.ok:
        console.print(f"[red]✗ {result.error}[/red]")
        raise click.Abort()

    target = Path(output) if output else doc_path
    target.write_text(editor.get_html(), encoding='utf-8')
    action = "Linked" if url else "Unlinked"
    console.print(f"[green]✓ {action} {state.mode.value} selection {start}-{end}[/green]")


@cli.command()
@click.argument('document', type=click.Path(exists=True))
@click.argument('start', type=int)
@click.argument('end', type=int)
@click.argument('url')
@click.option('--output', '-o', type=click.Path(), help='Write result here instead of DOCUMENT')
def link(document, start, end, url, output):
    """Attach a destination URL to a selection (image or text)"""
    _edit_links(document, start, end, url, output)


@cli.command()
@click.argument('document', type=click.Path(exists=True))
@click.argument('start', type=int)
@click.argument('end', type=int)
@click.option('--output', '-o', type=click.Path(), help='Write result here instead of DOCUMENT')
def unlink(document, start, end, output):
    """Remove the destination URL from a selection"""
    _edit_links(document, start, end, None, output)


@cli.command()
@click.argument('url')
@click.option('--width', '-w', default="640", help='Player width (min 320)')
@click.option('--height', '-h', default="480", help='Player height (min 180)')
def embed(url, width, height):
    """Print embed HTML for a YouTube video"""
    try:
        video = parse_video_embed(url, width, height)
    except EmbedError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.Abort()
    click.echo(video.to_html())


if __name__ == '__main__':
    cli()
