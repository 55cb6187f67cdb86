"""CLI entry point for the visual regression pipeline."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Callable

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visreg.errors import VisregError
from visreg.models.config import DEFAULT_CONFIG_FILE, VisregConfig
from visreg.models.run_outputs import RunOutputs
from visreg.orchestrator import Orchestrator
from visreg.reporter.outputs import write_action_outputs, write_step_summary

console = Console()

# CLI option name -> config path
CAPTURE_OPTIONS = {
    "working_directory": "working_directory",
    "screenshot_directory": "capture.screenshot_directory",
    "test_command": "capture.test_command",
    "install_deps": "capture.install_deps",
}
COMPARE_OPTIONS = {
    "working_directory": "working_directory",
    "base_dir": "compare.base_dir",
    "candidate_dir": "compare.candidate_dir",
    "diffs_dir": "compare.diffs_dir",
    "diff_threshold": "compare.diff_threshold",
    "crop_padding": "compare.crop_padding",
    "crop_min_height": "compare.crop_min_height",
    "output_format": "compare.output_format",
    "gif_frame_delay": "compare.gif_frame_delay",
    "include_diff": "compare.include_diff_in_output",
    "post_comment": "github.post_comment",
    "comment_mode": "github.comment_mode",
    "fail_on_changes": "fail_on_changes",
    "storage": "storage.backend",
    "imgbb_api_key": "storage.imgbb_api_key",
    "imgbb_expiration": "storage.imgbb_expiration",
    "s3_endpoint": "storage.s3_endpoint",
    "r2_account_id": "storage.r2_account_id",
    "s3_region": "storage.s3_region",
    "s3_access_key_id": "storage.s3_access_key_id",
    "s3_secret_access_key": "storage.s3_secret_access_key",
    "s3_bucket": "storage.s3_bucket",
    "public_url": "storage.public_url",
    "git_branch": "storage.git_branch",
    "github_token": "github.token",
    "repository": "github.repository",
    "pr_number": "github.pr_number",
}
FUSED_OPTIONS = {
    **CAPTURE_OPTIONS,
    **COMPARE_OPTIONS,
    "commit_screenshots": "commit.enabled",
    "amend": "commit.amend",
    "base_ref": "commit.base_ref",
    "head_ref": "commit.head_ref",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_config(path: str, explicit: bool) -> VisregConfig:
    """Load the config file; a missing default file means built-in defaults."""
    if not explicit and not Path(path).exists():
        return VisregConfig()
    return VisregConfig.load(path)


def apply_options(config: VisregConfig, options: dict[str, Any], mapping: dict[str, str]) -> VisregConfig:
    return config.with_overrides({mapping[k]: v for k, v in options.items() if k in mapping})


def print_outputs(outputs: RunOutputs, counts: dict[str, int] | None = None) -> None:
    table = Table(title="Visual Regression")
    table.add_column("Output", style="bold")
    table.add_column("Value")
    for key, value in outputs.as_action_outputs().items():
        if value == "true":
            value = f"[yellow]{value}[/yellow]" if key == "has-diffs" else f"[green]{value}[/green]"
        table.add_row(key, value)
    if counts:
        table.add_row("identical", str(counts.get("identical", 0)))
        table.add_row("changed", f"[red]{counts.get('changed', 0)}[/red]")
        table.add_row("new", f"[green]{counts.get('new', 0)}[/green]")
        table.add_row("deleted", f"[yellow]{counts.get('deleted', 0)}[/yellow]")
    console.print(table)


def run_mode(ctx: click.Context, options: dict[str, Any], mapping: dict[str, str],
             mode: Callable[[Orchestrator], RunOutputs]) -> None:
    """Build the config, run one mode, report outputs and set the exit status."""
    try:
        config = apply_options(ctx.obj["config"], options, mapping)
    except ValidationError as e:
        console.print(f"[red]Action failed: invalid configuration: {e}[/red]")
        sys.exit(1)

    orchestrator = None
    try:
        orchestrator = Orchestrator(config)
        outputs = mode(orchestrator)
    except VisregError as e:
        if orchestrator is not None:
            write_action_outputs(orchestrator.outputs)
        console.print(f"[red]Action failed: {e}[/red]")
        sys.exit(1)

    counts = orchestrator.report.counts() if orchestrator.report else None
    write_action_outputs(outputs)
    write_step_summary(outputs, counts)
    print_outputs(outputs, counts)

    if config.fail_on_changes and outputs.has_diffs:
        console.print("[red]Visual changes detected[/red]")
        sys.exit(1)


def capture_options(f: Callable) -> Callable:
    f = click.option("--install-deps/--no-install-deps", default=None, help="Run install commands first")(f)
    f = click.option("--test-command", default=None, help="Shell command that produces screenshots")(f)
    f = click.option("--screenshot-directory", default=None, help="Directory the tests write screenshots to")(f)
    return f


def compare_options(f: Callable) -> Callable:
    options = [
        click.option("--base-dir", default=None, help="Baseline screenshot directory"),
        click.option("--candidate-dir", default=None, help="Candidate screenshot directory"),
        click.option("--diffs-dir", default=None, help="Directory for diff output"),
        click.option("--diff-threshold", type=click.FloatRange(0.0, 1.0), default=None,
                     help="Colour difference threshold (0-1)"),
        click.option("--crop-padding", type=click.IntRange(min=0), default=None,
                     help="Rows kept above and below the change"),
        click.option("--crop-min-height", type=click.IntRange(min=0), default=None,
                     help="Minimum height of the cropped region"),
        click.option("--output-format", type=click.Choice(["side-by-side", "animated-gif"]), default=None),
        click.option("--gif-frame-delay", type=click.IntRange(min=0), default=None,
                     help="Milliseconds per GIF frame"),
        click.option("--include-diff/--no-include-diff", default=None, help="Add the diff image as a frame"),
        click.option("--post-comment/--no-post-comment", default=None, help="Comment on the pull request"),
        click.option("--comment-mode", type=click.Choice(["create", "update"]), default=None),
        click.option("--fail-on-changes/--no-fail-on-changes", default=None,
                     help="Exit non-zero when visual changes are found"),
        click.option("--storage", type=click.Choice(["none", "imgbb", "s3", "git-branch"]), default=None,
                     help="Where comparison images are published"),
        click.option("--imgbb-api-key", default=None, help="imgbb API key"),
        click.option("--imgbb-expiration", type=click.IntRange(60, 15552000), default=None,
                     help="Seconds before imgbb deletes uploads"),
        click.option("--s3-endpoint", default=None, help="S3-compatible endpoint URL"),
        click.option("--r2-account-id", default=None, help="Cloudflare account id; derives the R2 endpoint"),
        click.option("--s3-region", default=None),
        click.option("--s3-access-key-id", default=None),
        click.option("--s3-secret-access-key", default=None),
        click.option("--s3-bucket", default=None),
        click.option("--public-url", default=None, help="Public base URL serving the bucket"),
        click.option("--git-branch", default=None, help="Branch used to store images for the git-branch backend"),
        click.option("--github-token", default=None, envvar="GITHUB_TOKEN", show_envvar=True),
        click.option("--repository", default=None, help="owner/repo"),
        click.option("--pr-number", type=int, default=None),
    ]
    for option in reversed(options):
        f = option(f)
    return f


ENV_SETTINGS = {"auto_envvar_prefix": "VISREG"}


@click.group(context_settings=ENV_SETTINGS)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", "config_path", default=None, help=f"Config file path (default {DEFAULT_CONFIG_FILE})")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """Visual regression testing for pull requests."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path or DEFAULT_CONFIG_FILE, explicit=config_path is not None)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[red]Action failed: invalid configuration: {e}[/red]")
        sys.exit(1)


@cli.command(context_settings=ENV_SETTINGS)
@click.option("--working-directory", default=None, help="Project directory")
@capture_options
@click.pass_context
def capture(ctx: click.Context, **options: Any) -> None:
    """Run the screenshot tests and verify their output."""
    run_mode(ctx, options, CAPTURE_OPTIONS, lambda o: o.run_capture())


@cli.command(context_settings=ENV_SETTINGS)
@click.option("--working-directory", default=None, help="Project directory")
@compare_options
@click.pass_context
def compare(ctx: click.Context, **options: Any) -> None:
    """Compare two screenshot directories and report the differences."""
    run_mode(ctx, options, COMPARE_OPTIONS, lambda o: o.run_compare())


@cli.command(context_settings=ENV_SETTINGS)
@click.option("--working-directory", default=None, help="Project directory")
@capture_options
@compare_options
@click.option("--commit-screenshots/--no-commit-screenshots", default=None,
              help="Commit refreshed screenshots back to the pull request branch")
@click.option("--amend/--no-amend", default=None, help="Amend the last commit instead of adding one")
@click.option("--base-ref", default=None, help="Branch holding the baseline screenshots")
@click.option("--head-ref", default=None, help="Pull request branch to commit to")
@click.pass_context
def fused(ctx: click.Context, **options: Any) -> None:
    """Capture, fetch the baseline from git, compare and commit back."""
    run_mode(ctx, options, FUSED_OPTIONS, lambda o: o.run_fused())


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
