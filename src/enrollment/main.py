"""
Enrollment - CLI Entry Point.

Usage:
    enroll steps                 List wizard steps
    enroll pincode 560001        Look up a pincode
    enroll validate draft.json   Validate a saved draft, step by step
    enroll health                Check configuration
    enroll --help                Show help
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="enroll",
    help="Employee onboarding intake tools.",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    from enrollment.logging_setup import configure_logging

    configure_logging("DEBUG" if verbose else None, rich_output=True)


@app.command()
def steps(
    salary: Optional[float] = typer.Option(None, "--salary", help="Show GMC applicability for this salary"),
) -> None:
    """List the wizard steps in order."""
    from enrollment.config import EnrollmentRules
    from onboarding.rules import is_gmc_applicable
    from onboarding.steps import STEP_CLASSES, STEP_ORDER, StepId

    rules = EnrollmentRules()
    table = Table(title="Onboarding Steps")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Title")
    table.add_column("Shown")

    for number, step_id in enumerate(STEP_ORDER, start=1):
        shown = "yes"
        if step_id == StepId.GMC:
            if salary is None:
                shown = f"salary > {rules.salary_threshold:g}"
            else:
                shown = "yes" if is_gmc_applicable(salary, rules) else "no"
        table.add_row(str(number), step_id.value, STEP_CLASSES[step_id].title, shown)

    console.print(table)


@app.command()
def pincode(
    code: str = typer.Argument(..., help="6-digit Indian pincode"),
) -> None:
    """Look up city and state for a pincode."""
    from enrollment.errors import PincodeLookupError
    from enrollment.pincode import PostalPincodeClient
    from onboarding.forms import is_valid_pincode

    if not is_valid_pincode(code):
        console.print(f"[red]❌ Not a valid 6-digit pincode: {code}[/red]")
        raise typer.Exit(1)

    client = PostalPincodeClient()
    try:
        details = asyncio.run(client.lookup(code))
    except PincodeLookupError as e:
        console.print(f"[red]❌ {e.reason}: {code}[/red]")
        raise typer.Exit(1)

    console.print(f"✅ {code}: [bold]{details.city}[/bold], {details.state}")


@app.command()
def validate(
    draft: Path = typer.Argument(..., exists=True, dir_okay=False, help="Draft JSON (store snapshot)"),
    salary_threshold: Optional[float] = typer.Option(None, "--salary-threshold", help="Override the GMC threshold"),
) -> None:
    """Validate a saved draft against every step."""
    from enrollment.config import EnrollmentRules
    from onboarding.state import OnboardingSections
    from onboarding.wizard import OnboardingWizard

    try:
        data = json.loads(draft.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]❌ Not valid JSON: {draft} ({e})[/red]")
        raise typer.Exit(1)

    rules = EnrollmentRules()
    if salary_threshold is not None:
        rules = rules.model_copy(update={"salary_threshold": salary_threshold})

    wizard = OnboardingWizard(user_id=None, uploader=None, records=None, rules=rules)
    wizard.load(OnboardingSections.from_dict(data))

    failed = 0
    for step_id, result in wizard.validate_all().items():
        if result.skipped:
            console.print(f"[dim]⏭  {step_id.value}: skipped[/dim]")
        elif result.ok:
            console.print(f"✅ {step_id.value}")
        else:
            failed += 1
            console.print(f"❌ {step_id.value}")
            for path, message in sorted(result.errors.items()):
                console.print(f"   [red]{path}[/red]: {message}")

    if failed:
        console.print(f"\n[red]{failed} step(s) need attention[/red]")
        raise typer.Exit(1)
    console.print("\n[green]Draft is ready to submit[/green]")


@app.command()
def health() -> None:
    """Check configuration and enrollment rules."""
    from enrollment.config import get_settings

    console.print("\n[bold]Enrollment Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.enrollment_env}")
        console.print(f"   Log level: {settings.log_level}")
        console.print(f"   Submissions table: {settings.submissions_table}")

        if settings.supabase_url.startswith("https://"):
            console.print("✅ Supabase URL configured")
        else:
            console.print("❌ Supabase URL missing or invalid")

        rules = settings.enrollment_rules()
        console.print(
            f"ℹ️  GMC above {rules.salary_threshold:g} "
            f"(single {rules.default_policy_single}, married {rules.default_policy_married})"
        )
        if not rules.enable_pincode_verification:
            console.print("ℹ️  Pincode verification disabled")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Make sure you have a .env file with SUPABASE_URL and SUPABASE_ANON_KEY.[/dim]")
        raise typer.Exit(1)

    console.print("\n[green]All checks passed![/green]")


@app.command()
def version() -> None:
    """Show version information."""
    from enrollment import __version__

    console.print(f"Enrollment version {__version__}")


if __name__ == "__main__":
    app()
