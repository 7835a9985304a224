"""Command-line interface for mailfiler."""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from mailfiler import __app_name__, __version__
from mailfiler.analyzer import EmailAnalyzer
from mailfiler.audit import AuditLog
from mailfiler.config import DEFAULT_DATA_DIR, Config, LoggingConfig, load_config
from mailfiler.decision_engine import DecisionEngine
from mailfiler.domain_rules import DEFAULT_RULES_PATH, load_domain_rules
from mailfiler.executor import ActionExecutor
from mailfiler.imap_client import IMAPClient
from mailfiler.mailbox import MailboxError
from mailfiler.models import FolderAnalysis, Recommendation, SentItemsSummary
from mailfiler.senders import SenderListBuilder

console = Console(width=200, soft_wrap=False)
logger = logging.getLogger("mailfiler")

SAMPLE_CONFIG = """# mailfiler configuration

imap:
  host: mail.example.com
  port: 993
  username: user@example.com
  # Password is read from this environment variable when password is unset
  password_env: MAIL_PASSWORD
  use_tls: true
  inbox_folder: INBOX

analysis:
  sender_sample_size: 100
  header_sample_size: 20
  sent_sample_size: 200
  top_correspondents: 20
  # domain_rules_file: ~/.mailfiler/domain_rules.yml

filing:
  junk_folder: Junk
  list_folder: Lists
  # Senders of these folders are kept in the inbox; recipients of sent mail too
  whitelist_folders: []
  # Senders of these folders are filed back into them
  list_folders: []
  # blacklist_folder: Blacklist
  # sent_folder: Sent
  folder_sample_size: 1000
  whitelisted_emails: []
  whitelisted_domains: []
  blacklisted_emails: []
  # Copy the folders and domain_mappings from `mailfiler analyze -o` here
  list_domain_map: {}
  sender_map: {}
  dry_run: true

logging:
  level: INFO
  # log_file: /var/log/mailfiler.log
  audit_file: audit.jsonl
"""


def setup_logging(settings: LoggingConfig, verbose: bool = False) -> None:
    """Route log records to the console and, optionally, a log file."""
    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    ]

    if settings.log_file:
        file_handler = logging.FileHandler(Path(settings.log_file).expanduser(), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def _load(config: str, verbose: bool) -> Config:
    cfg = load_config(config)
    setup_logging(cfg.logging, verbose)
    return cfg


config_option = click.option(
    "--config",
    "-c",
    required=True,
    type=click.Path(exists=True),
    help="Path to configuration YAML file",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """mailfiler - Analyze mailbox folders and file incoming mail."""
    pass


@cli.command()
@config_option
@click.option("--sent/--no-sent", default=True, help="Analyze sent mail for frequent correspondents")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Write recommendations to this YAML file",
)
@verbose_option
def analyze(config: str, sent: bool, output: str | None, verbose: bool) -> None:
    """Analyze folders and recommend a filing configuration."""
    try:
        cfg = _load(config, verbose)
        audit = AuditLog(cfg.logging.audit_file)
        rules = load_domain_rules(cfg.analysis.user_rules_path(), DEFAULT_RULES_PATH)

        console.print(f"[bold blue]{__app_name__} v{__version__}[/bold blue]")

        with IMAPClient(cfg.imap) as imap:
            console.print(f"[OK] Connected to {cfg.imap.host}")
            analyzer = EmailAnalyzer(
                imap,
                config=cfg.analysis,
                rules=rules,
                audit=audit,
                inbox_folder=cfg.imap.inbox_folder,
            )

            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Analyzing folders...", total=None)

                def on_folder(index: int, total: int, name: str) -> None:
                    progress.update(task, completed=index, total=total, description=name)

                analysis = analyzer.analyze_folders(on_folder)

            if sent:
                analyzer.analyze_sent_items()

            recommendation = analyzer.generate_recommendations()

        _print_folder_table(analysis)
        _print_domain_categories(analyzer.analyze_domain_patterns())
        if analyzer.sent_items:
            _print_correspondents(analyzer.sent_items)
        _print_recommendation(recommendation)

        if output:
            Path(output).write_text(
                yaml.safe_dump(recommendation.to_dict(), sort_keys=False), encoding="utf-8"
            )
            console.print(f"[green]Recommendations written to {output}[/green]")

    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except (ConnectionError, ValueError, MailboxError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def _print_folder_table(analysis: FolderAnalysis) -> None:
    table = Table(title=f"Folders ({analysis.total_analyzed} analyzed, {analysis.total_skipped} skipped)")
    table.add_column("Folder", style="cyan")
    table.add_column("Messages", justify="right", style="green")
    table.add_column("Senders", justify="right")
    table.add_column("Category")
    table.add_column("Reason", style="dim")

    for folder in analysis.folders:
        table.add_row(
            folder.name,
            str(folder.message_count),
            str(len(folder.senders)),
            folder.categorization.value if folder.categorization else "-",
            folder.reason or "",
        )

    console.print(table)
    if analysis.skipped:
        console.print(f"[dim]Skipped: {', '.join(analysis.skipped)}[/dim]")


def _print_domain_categories(categories: dict[str, str]) -> None:
    if not categories:
        return

    by_category: dict[str, list[str]] = {}
    for domain, category in categories.items():
        by_category.setdefault(category, []).append(domain)

    table = Table(title="Sender domain categories")
    table.add_column("Category", style="cyan")
    table.add_column("Domains", justify="right", style="green")
    table.add_column("Examples", style="dim")
    for category, domains in sorted(by_category.items(), key=lambda item: -len(item[1])):
        table.add_row(category, str(len(domains)), ", ".join(sorted(domains)[:5]))
    console.print(table)


def _print_correspondents(sent_items: SentItemsSummary) -> None:
    if not sent_items.frequent_correspondents:
        console.print("[yellow]No frequent correspondents found[/yellow]")
        return

    table = Table(title=f"Frequent correspondents ({sent_items.folder}, {sent_items.sample_size} sampled)")
    table.add_column("Address", style="cyan")
    table.add_column("Sent", justify="right", style="green")
    for address, count in sent_items.frequent_correspondents:
        table.add_row(address, str(count))
    console.print(table)


def _print_recommendation(recommendation: Recommendation) -> None:
    console.print("\n[bold]Recommendations[/bold]")
    console.print(f"  Whitelist folders: {', '.join(recommendation.whitelist_folders) or '-'}")
    console.print(f"  List folders: {', '.join(recommendation.list_folders) or '-'}")

    if recommendation.domain_mappings:
        table = Table(title="Domain mappings")
        table.add_column("Domain", style="cyan")
        table.add_column("Folder", style="green")
        for domain, folder in recommendation.domain_mappings.items():
            table.add_row(domain, folder)
        console.print(table)


def _run_batch(cfg: Config, folder: str, dry_run: bool, mode: str) -> None:
    """Decide and execute for every message of one folder, then expunge once.

    mode is "clean" for new mail, "file" for existing mail and "unjunk" for
    the junk folder.
    """
    audit = AuditLog(cfg.logging.audit_file)

    run_mode = "DRY-RUN" if dry_run else "ACTIVE"
    console.print(f"Mode: [bold]{run_mode}[/bold]")
    audit.run_started(mode=run_mode, command=mode, imap_host=cfg.imap.host, folder=folder)

    with IMAPClient(cfg.imap) as imap:
        console.print(f"[OK] Connected to {cfg.imap.host}")
        executor = ActionExecutor(
            imap,
            junk_folder=cfg.filing.junk_folder,
            dry_run=dry_run,
            audit=audit,
        )

        try:
            builder = SenderListBuilder(imap, cfg.filing)
            if mode == "clean":
                engine = DecisionEngine(cfg.filing, builder.for_cleaning())
                messages = imap.fetch_new_messages(folder)
            else:
                engine = DecisionEngine(cfg.filing, builder.for_filing(), unjunking=mode == "unjunk")
                messages = imap.fetch_all_messages(folder)
            logger.info(f"Processing {len(messages)} messages from {folder}")

            for message in messages:
                if mode == "clean":
                    decision = engine.decide_for_new_message(message)
                else:
                    decision = engine.decide_for_filing(message)
                executor.execute(decision, message)

            logger.info(executor.summary())

            if executor.changed_folders and not dry_run:
                imap.select_folder(folder)
                imap.expunge()
        except MailboxError as e:
            audit.error("mailbox", str(e), folder=folder)
            audit.run_finished("error")
            raise

    audit.run_finished()
    console.print(f"[bold green]Done.[/bold green] {executor.summary()}")


@cli.command()
@config_option
@click.option("--folder", "-f", default=None, help="Folder to clean (default: inbox from config)")
@click.option("--dry-run", is_flag=True, help="Log decisions without moving mail")
@verbose_option
def clean(config: str, folder: str | None, dry_run: bool, verbose: bool) -> None:
    """File new messages: keep whitelisted mail, move list mail, junk the rest."""
    try:
        cfg = _load(config, verbose)
        _run_batch(
            cfg,
            folder or cfg.imap.inbox_folder,
            dry_run or cfg.filing.dry_run,
            mode="clean",
        )
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except (ConnectionError, ValueError, MailboxError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command(name="file")
@config_option
@click.option("--folder", "-f", default=None, help="Folder to file from (default: inbox from config)")
@click.option("--dry-run", is_flag=True, help="Log decisions without moving mail")
@verbose_option
def file_messages(config: str, folder: str | None, dry_run: bool, verbose: bool) -> None:
    """Move existing messages whose sender or domain is mapped to a folder."""
    try:
        cfg = _load(config, verbose)
        _run_batch(
            cfg,
            folder or cfg.imap.inbox_folder,
            dry_run or cfg.filing.dry_run,
            mode="file",
        )
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except (ConnectionError, ValueError, MailboxError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@config_option
@click.option("--dry-run", is_flag=True, help="Log decisions without moving mail")
@verbose_option
def unjunk(config: str, dry_run: bool, verbose: bool) -> None:
    """Move mail from known senders out of the junk folder."""
    try:
        cfg = _load(config, verbose)
        _run_batch(
            cfg,
            cfg.filing.junk_folder,
            dry_run or cfg.filing.dry_run,
            mode="unjunk",
        )
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except (ConnectionError, ValueError, MailboxError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command(name="init-domain-rules")
@click.option(
    "--path",
    type=click.Path(),
    default=None,
    help="Where to create the rules file (default: ~/.mailfiler/domain_rules.yml)",
)
def init_domain_rules(path: str | None) -> None:
    """Copy the default domain rules to a user-editable file."""
    target = Path(path).expanduser() if path else DEFAULT_DATA_DIR.expanduser() / "domain_rules.yml"

    if target.exists():
        console.print(f"Domain rules file already exists at {target}")
        console.print("Edit it to customize your domain mappings")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_RULES_PATH, target)
    console.print(f"[green]Domain rules file created at {target}[/green]")


@cli.command(name="init-config")
@click.argument("output", type=click.Path())
def init_config(output: str) -> None:
    """Write a commented starting configuration."""
    Path(output).write_text(SAMPLE_CONFIG, encoding="utf-8")
    console.print(f"[green]Configuration template written to {output}[/green]")
    console.print("\nThen:")
    console.print("  1. Fill in the imap section and export MAIL_PASSWORD")
    console.print(f"  2. mailfiler analyze -c {output} -o recommendations.yml")
    console.print("  3. Copy the domain mappings into filing.list_domain_map")
    console.print(f"  4. mailfiler clean -c {output} --dry-run")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
