from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich import box

from fixplanner.config.log_config import configure_logging
from fixplanner.config.settings import settings
from fixplanner.models.errors import FixPlannerError

console = Console(stderr=True)


def banner():
    console.print(f"""
[bold blue]╔══════════════════════════════════════════════╗
║   {settings.APP_NAME}  v{settings.VERSION}                        ║
║   Remediation plans for reported issues      ║
╚══════════════════════════════════════════════╝[/bold blue]
""")
    for w in settings.validate():
        console.print(f"  [yellow]⚠  {w}[/yellow]")
    console.print()


def output_path(output_file, plan_name: str):
    """None means stdout; '--' names the file after the last '::' segment of the plan."""
    if output_file is None or output_file == "-":
        return None
    if output_file == "--":
        return Path.cwd() / f"{plan_name.split('::')[-1]}.pp"
    return Path(output_file)


@click.group()
@click.option("--quiet", "-q", is_flag=True, default=False, help="Do not print the banner")
def cli(quiet):
    """Fix Planner — remediation plans from reported benchmark issues"""
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    if not quiet:
        banner()


@cli.command("plan")
@click.argument("issues_files", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option("--issue", "-i", "issue_ref", default=None,
              help="A single issue: <mnemonic>://<node>/<section>_<title> or <mnemonic>:/<section>")
@click.option("--plan", "-p", "plan_name", default=None, help="Name of the generated plan")
@click.option("--output-file", "-o", default=None,
              help="Write the plan to FILE; '-' is stdout, '--' is <plan name>.pp")
@click.option("--fixdir", type=click.Path(file_okay=False), default=None,
              help="Directory holding fixconf.yaml, data and modules")
@click.option("--explain", is_flag=True, default=False, help="Explain fix lookups on stderr")
@click.option("--debug", "-d", is_flag=True, default=False, help="Debug logging")
def produce_plan(issues_files, issue_ref, plan_name, output_file, fixdir, explain, debug):
    """Produce a remediation plan for reported issues."""
    from fixplanner.models.issue import Issue
    from fixplanner.services.fix_service import FixController

    if debug:
        configure_logging("DEBUG", settings.LOG_FILE)

    try:
        issue = None
        if issue_ref is not None:
            issue = Issue.parse(issue_ref)
            if not (issue.mnemonic and issue.section):
                raise click.BadParameter(
                    "Given issue must reference a benchmark and contain the section",
                    param_hint="'--issue'",
                )
        controller = FixController(explain_sink=lambda line: console.print(f"[dim]{line}[/dim]"))
        plan = controller.run(issue=issue, issues_files=issues_files, plan_name=plan_name,
                              explain=explain, fixdir=fixdir)
    except FixPlannerError as e:
        console.print(f"[red]✘ {e}[/red]")
        raise SystemExit(1)

    path = output_path(output_file, controller.plan_name)
    if path is None:
        click.echo(plan, nl=False)
    else:
        path.write_text(plan, encoding="utf-8")
        console.print(f"[green]✔ Plan saved:[/green] {path}")


@cli.command("benchmarks")
@click.option("--fixdir", type=click.Path(file_okay=False), default=None)
def list_benchmarks(fixdir):
    """List the benchmarks known in the fixdir."""
    from fixplanner.services.fix_config import load_fix_config

    try:
        config = load_fix_config(fixdir or settings.FIXDIR)
    except FixPlannerError as e:
        console.print(f"[red]✘ {e}[/red]")
        raise SystemExit(1)

    if not config.benchmarks:
        console.print("[yellow]No benchmarks configured.[/yellow]")
        return
    tbl = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    tbl.add_column("Mnemonic", style="bold")
    tbl.add_column("Version")
    tbl.add_column("Family")
    tbl.add_column("Id")
    for bm in config.benchmarks:
        tbl.add_row(bm.name or "", bm.version or "", bm.family or "", bm.id or "")
    Console().print(tbl)


@cli.command("status")
def check_status():
    """Check configuration status."""
    tbl = Table(box=box.ROUNDED, header_style="bold cyan")
    tbl.add_column("Component", style="bold")
    tbl.add_column("Status")
    tbl.add_column("Details")

    conf = settings.FIXDIR / settings.CONFIG_FILE_NAME
    if conf.is_file():
        tbl.add_row("Configuration", "[green]OK[/green]", str(conf))
    else:
        tbl.add_row("Configuration", "[yellow]NOT FOUND[/yellow]", str(conf))

    if settings.is_fix_service_configured():
        tbl.add_row("Fix lookup", "[green]SERVICE[/green]", settings.FIX_SERVICE_URL)
    else:
        tbl.add_row("Fix lookup", "[green]LOCAL DATA[/green]", str(settings.FIXDIR / "data"))

    tbl.add_row("Default plan", "", settings.PLAN_NAME)
    tbl.add_row("Default node", "", settings.DEFAULT_NODE)
    console.print(tbl)
    console.print()
