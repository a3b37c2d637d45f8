"""Console UI for platformctl."""
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from contextlib import contextmanager


class ConsoleUI:
    """UI class for console output."""

    def __init__(self, console=None):
        self.console = console or Console()

    def print_error(self, error, show_traceback=False):
        """Print error message."""
        self.console.print(f"[red]Error:[/red] {error}")
        if show_traceback:
            self.console.print_exception()

    @contextmanager
    def show_progress(self, title):
        """Show a spinner while a long step runs."""
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=self.console) as progress:
            progress.add_task(title, total=None)
            yield progress

    def display_platform_info(self, info):
        """Display network, endpoints and containers of a running platform."""
        if not info:
            self.console.print("[yellow]No platform info available[/yellow]")
            return

        endpoints = (
            f"[bold]Network:[/bold] {info['network']['name']}\n"
            f"[bold]BASE_URL:[/bold] {info['e2e']['baseUrl']}\n"
            f"[bold]KEYCLOAK_URL:[/bold] {info['e2e']['keycloakUrl']}\n"
            f"[bold]Shell UI:[/bold] {info['external']['shellUi']}\n"
            f"[bold]Keycloak:[/bold] {info['external']['keycloak']}"
        )
        self.console.print(Panel(endpoints, title="Platform Ready", border_style="green"))

        table = Table(title="Containers")
        table.add_column("Key", style="cyan")
        table.add_column("Kind")
        table.add_column("Internal URL")
        table.add_column("External URL")
        table.add_column("Running")
        for key, container in info['containers'].items():
            table.add_row(
                key,
                container['kind'],
                container['internalUrl'],
                container['externalUrl'],
                "[green]yes[/green]" if container['running'] else "[red]no[/red]"
            )
        self.console.print(table)

    def display_health_status(self, statuses):
        """Display health check results."""
        table = Table(title="Health")
        table.add_column("Container", style="cyan")
        table.add_column("Status")
        for status in statuses:
            table.add_row(status.name, "[green]healthy[/green]" if status.healthy else "[red]unhealthy[/red]")
        self.console.print(table)

    def display_e2e_result(self, result):
        """Display the outcome of an e2e run."""
        if result.success:
            body = f"[green]E2E tests passed[/green] in {result.duration_ms / 1000:.1f}s"
            style = "green"
        else:
            body = f"[red]E2E tests failed[/red] with exit code {result.exit_code} after {result.duration_ms / 1000:.1f}s"
            style = "red"
        self.console.print(Panel(body, title="E2E", border_style=style))

    def display_stop_outcomes(self, outcomes):
        """Display which containers were stopped."""
        failed = [outcome for outcome in outcomes if not outcome.stopped]
        self.console.print(f"Stopped {len(outcomes) - len(failed)}/{len(outcomes)} containers")
        for outcome in failed:
            self.console.print(f"[red]  {outcome.name}: {outcome.error}[/red]")

    def display_validation(self, result):
        """Display config validation results."""
        if result.is_valid:
            self.console.print(f"[green]Configuration valid:[/green] {result.path}")
            return
        self.console.print("[red]Configuration invalid[/red]")
        for error in result.errors:
            self.console.print(f"  • {error}")
