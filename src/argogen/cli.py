"""argogen CLI interface.

Commands:
- generate: Generate ArgoCD Applications (GitHub API or local clones)
- onboard: Scaffold a Helm chart and landing-zone Applications
- tenants: Onboard tenants through Terraform
- sync: Clone or update local copies of the application repositories
- publish: Sync, regenerate, commit and push generated manifests
- validate: Validate generated Applications
- validate-kustomize: Run kustomize build on every overlay
- update-image: Pin a Kustomize overlay to a new image tag
- credentials: Create the Image Updater git write-back secret
- check: Report installed external tools
- init: Write a default configuration file

Global options: --config, --root, --verbose, --quiet, --ci, --version.

Exit codes: 0 success, 1 error, 2 completed with warnings.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from argogen import __version__
from argogen.config import ArgogenConfig, create_default_config, load_config
from argogen.errors import (
    RenderError,
    RequirementsError,
    ToolExecutionError,
    ToolNotAvailableError,
)
from argogen.models.requirements import REQUIREMENTS_FILENAME
from argogen.utils.logging import configure_from_cli, get_logger

app = typer.Typer(
    name="argogen",
    help="GitOps manifest generator for ArgoCD and the ArgoCD Image Updater",
    add_completion=False,
    no_args_is_help=True,
)

# Set by main() for every command
_config: ArgogenConfig | None = None
_root: Path = Path(".")
_ci: bool = False
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Eager --version handler."""
    if value:
        typer.echo(f"argogen {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (default: .argogen/config.yaml or argogen.yaml under --root)",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    root: Annotated[
        Path,
        typer.Option(
            "--root",
            help="Config repository root; configured paths are relative to it",
            exists=True,
            file_okay=False,
        ),
    ] = Path("."),
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Debug logging with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Only log warnings and errors",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="JSON log lines and JSON results",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """argogen - GitOps manifest generator.

    Generates ArgoCD Applications for platform tenant applications, scaffolds
    Helm charts, onboards tenants and publishes the results.
    """
    global _config, _root, _ci

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)
    _root = root.resolve()

    try:
        _config = load_config(config_path=config, start_path=_root)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (ValueError, OSError) as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)

    _ci = ci or _config.ci.json_output


def _get_config() -> ArgogenConfig:
    return _config if _config is not None else ArgogenConfig()


def _emit_json(data: dict[str, Any]) -> None:
    typer.echo(json.dumps(data, indent=2))


def _exit_code(errors: int, warnings: int) -> int:
    if errors:
        return 1
    if warnings:
        return 1 if _get_config().ci.fail_on_warning else 2
    return 0


def _require_tool(tool: Any) -> None:
    """Exit 1 when an external tool is not installed."""
    if not tool.check_available():
        _logger.error(f"{tool.executable} is not installed or not in PATH")
        raise typer.Exit(1)


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the check results as JSON",
        ),
    ] = False,
    command: Annotated[
        str | None,
        typer.Option(
            "--for",
            help="Mark the tools this command needs as required "
            "(generate, generate-apply, sync, publish, tenants, validate-kustomize, credentials)",
        ),
    ] = None,
) -> None:
    """Report which external tools are installed.

    With --for, only the tools that command needs are required (exit 1 when
    one is missing); everything else is optional (exit 2). Checking for
    generate also probes the GitHub API.
    """
    from argogen.utils.preflight import COMMAND_REQUIREMENTS, PreflightChecker

    config = _get_config()
    checker = PreflightChecker()

    if command is None:
        result = checker.check_all()
    elif command in COMMAND_REQUIREMENTS:
        result = checker.check_command(command, github=config.github)
    else:
        _logger.error(f"Unknown command: {command}")
        raise typer.Exit(1)

    if json_output or _ci:
        _emit_json(result.to_dict())
        raise typer.Exit(_exit_code(len(result.errors), len(result.warnings)))

    width = max(len(c.name) for c in result.checks)
    for c in result.checks:
        state = "ok" if c.available else "missing"
        kind = "required" if c.required else "optional"
        detail = (c.version or c.path or "") if c.available else c.message
        typer.echo(f"{c.name:<{width}}  {state:<7}  {kind:<8}  {detail}")

    problems = result.errors + result.warnings
    if problems:
        typer.echo()
        for problem in problems:
            typer.echo(f"- {problem}")

    if result.errors:
        typer.echo("Preflight check FAILED")
    elif result.warnings:
        typer.echo("Preflight check passed with WARNINGS")
    else:
        typer.echo("All preflight checks passed")
    raise typer.Exit(_exit_code(len(result.errors), len(result.warnings)))


# =============================================================================
# generate command
# =============================================================================


@app.command()
def generate(
    apply: Annotated[
        bool,
        typer.Option(
            "--apply",
            help="kubectl apply each manifest and the Image Updater configuration",
        ),
    ] = False,
    local: Annotated[
        bool,
        typer.Option(
            "--local",
            help="Generate from local clones instead of the GitHub API",
        ),
    ] = False,
    app_name: Annotated[
        str | None,
        typer.Option(
            "--app",
            help="Only generate this local application (requires --local)",
        ),
    ] = None,
) -> None:
    """Generate ArgoCD Applications for every application repository.

    Exit codes:
        0: All repositories generated
        1: One or more repositories failed
        2: Generated with warnings
    """
    from argogen.generator import ApplicationGenerator, GenerationOptions

    if app_name and not local:
        _logger.error("--app can only be used with --local")
        raise typer.Exit(1)

    config = _get_config()
    generator = ApplicationGenerator(config, _root)
    if apply:
        _require_tool(generator.kubectl)

    try:
        result = generator.run(GenerationOptions(apply=apply, local=local, app=app_name))
    except (FileNotFoundError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    _logger.structured(
        logging.INFO,
        f"Processed {result.repositories_processed} repositories, "
        f"generated {result.applications_generated} Applications",
        repositories=result.repositories_processed,
        applications=result.applications_generated,
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    if _ci:
        _emit_json(result.to_dict())
    else:
        for error in result.errors:
            _logger.error(f"  [{error.subject}] {error.stage}: {error.message}")
        if result.success:
            _logger.success("ArgoCD Application generation complete")

    raise typer.Exit(_exit_code(len(result.errors), len(result.warnings)))


# =============================================================================
# onboard command
# =============================================================================


@app.command()
def onboard(
    requirements: Annotated[
        Path,
        typer.Argument(
            help=f"Path to the application's {REQUIREMENTS_FILENAME}",
            dir_okay=False,
        ),
    ] = Path(REQUIREMENTS_FILENAME),
) -> None:
    """Scaffold a Helm chart and landing-zone Applications for an application."""
    from argogen.onboarding import ApplicationOnboarder

    onboarder = ApplicationOnboarder(_get_config(), _root)
    try:
        written = onboarder.onboard(requirements)
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except RequirementsError as e:
        _logger.error(f"Invalid requirements file {e.source}:")
        for message in e.errors:
            _logger.error(f"  {message}")
        raise typer.Exit(1)
    except RenderError as e:
        _logger.error(f"Rendering failed: {e}")
        raise typer.Exit(1)

    if _ci:
        _emit_json({"written": [str(p) for p in written]})
    else:
        typer.echo("\nCreated files:")
        for path in written:
            typer.echo(f"  {path}")
    raise typer.Exit(0)


# =============================================================================
# tenants command
# =============================================================================


@app.command()
def tenants(
    discover: Annotated[
        bool | None,
        typer.Option(
            "--discover/--no-discover",
            help="Force tenant discovery on or off (default: tenant sources file settings)",
        ),
    ] = None,
) -> None:
    """Onboard every tenant in the tenant sources file through Terraform.

    Exit codes:
        0: All tenants onboarded or already present
        1: A prerequisite failed or a tenant failed to onboard
    """
    from argogen.tenants import TenantOnboarder

    onboarder = TenantOnboarder(_get_config(), _root)
    try:
        result = onboarder.run(discover=discover)
    except (ToolNotAvailableError, ToolExecutionError, FileNotFoundError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if _ci:
        _emit_json(result.to_dict())
    else:
        typer.echo("\nTenant Onboarding Summary\n")
        typer.echo(f"  Onboarded: {', '.join(result.onboarded) or '-'}")
        typer.echo(f"  Already present: {', '.join(result.skipped) or '-'}")
        if result.discovered:
            typer.echo(f"  Discovered: {', '.join(result.discovered)}")
        if result.failed:
            typer.echo("  Failed:")
            for failure in result.failed:
                typer.echo(f"   • {failure.subject}: {failure.message}")

    raise typer.Exit(0 if result.success else 1)


# =============================================================================
# sync command
# =============================================================================


@app.command()
def sync() -> None:
    """Clone or update local copies of the application repositories."""
    from argogen.models.source import read_sources_file
    from argogen.tools.git import sync_repositories

    config = _get_config()
    try:
        sources = read_sources_file(
            _root / config.paths.sources_file, config.github.default_branch
        )
        synced, failed = sync_repositories(
            sources, _root / config.paths.local_repos_dir, config.ci.timeout
        )
    except (FileNotFoundError, ValueError, ToolNotAvailableError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if _ci:
        _emit_json(
            {
                "synced": synced,
                "failed": [{"repository": name, "error": error} for name, error in failed],
            }
        )
    elif not failed:
        _logger.success(f"All {len(synced)} repositories synced")

    raise typer.Exit(1 if failed else 0)


# =============================================================================
# publish command
# =============================================================================


@app.command()
def publish(
    app_name: Annotated[
        str | None,
        typer.Argument(help="Only regenerate this application"),
    ] = None,
    no_sync: Annotated[
        bool,
        typer.Option(
            "--no-sync",
            help="Skip syncing the local clones",
        ),
    ] = False,
) -> None:
    """Sync, regenerate, commit and push generated manifests.

    Exit codes:
        0: Changes pushed, or nothing to publish
        1: Sync, generation or a git step failed
        2: Committed locally but the push failed
    """
    from argogen.publish import Publisher, PublishStatus

    publisher = Publisher(_get_config(), _root)
    try:
        result = publisher.run(app=app_name, sync=not no_sync)
    except (ToolExecutionError, ToolNotAvailableError, FileNotFoundError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if _ci:
        _emit_json(result.to_dict())
    elif result.status == PublishStatus.SYNC_FAILED:
        for name, error in result.sync_failures:
            _logger.error(f"  [{name}] {error}")
    elif result.status == PublishStatus.GENERATION_FAILED and result.generation:
        for error in result.generation.errors:
            _logger.error(f"  [{error.subject}] {error.stage}: {error.message}")
    elif result.links:
        typer.echo("\nView changes on GitHub:")
        for link in result.links:
            typer.echo(f"  {link}")

    exit_codes = {
        PublishStatus.PUSHED: 0,
        PublishStatus.NO_CHANGES: 0,
        PublishStatus.PUSH_FAILED: 2,
    }
    raise typer.Exit(exit_codes.get(result.status, 1))


# =============================================================================
# validate commands
# =============================================================================


@app.command()
def validate(
    path: Annotated[
        Path | None,
        typer.Argument(
            help="Application manifest or applications directory (default: configured directory)",
            exists=True,
        ),
    ] = None,
) -> None:
    """Validate generated ArgoCD Applications.

    Exit codes:
        0: All Applications valid
        1: One or more Applications invalid
        2: Valid with warnings
    """
    from argogen.validation import ApplicationValidator, validate_directory

    config = _get_config()
    validator = ApplicationValidator(config.platform.annotation_prefix)
    target = path or _root / config.paths.applications_dir

    try:
        if target.is_file():
            reports = [validator.validate_file(target)]
        else:
            reports = validate_directory(target, validator)
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if not reports:
        _logger.warning(f"No Applications found under {target}")

    invalid = [r for r in reports if not r.valid]
    warnings = sum(len(r.warnings) for r in reports)

    if _ci:
        _emit_json({"reports": [r.to_dict() for r in reports]})
    elif target.is_file():
        for error in reports[0].errors:
            _logger.error(error)
        for warning in reports[0].warnings:
            _logger.warning(warning)
    if not invalid and reports:
        _logger.success(f"{len(reports)} Application(s) valid")

    raise typer.Exit(_exit_code(len(invalid), warnings))


@app.command("validate-kustomize")
def validate_kustomize(
    directory: Annotated[
        Path | None,
        typer.Argument(
            help="Directory to search for kustomizations (default: charts directory)",
        ),
    ] = None,
) -> None:
    """Run kustomize build on every kustomization directory."""
    from argogen.validation import KustomizeValidator

    config = _get_config()
    validator = KustomizeValidator(directory or _root / config.paths.charts_dir)
    _require_tool(validator.kustomize)

    try:
        results = validator.validate()
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    failed = [r for r in results if not r.valid]
    if _ci:
        _emit_json(
            {
                "results": [
                    {"directory": str(r.directory), "valid": r.valid, "error": r.error}
                    for r in results
                ]
            }
        )
    elif not failed:
        _logger.success(f"All {len(results)} kustomizations are valid")

    raise typer.Exit(1 if failed else 0)


@app.command("update-image")
def update_image(
    app_name: Annotated[str, typer.Argument(help="Application directory name")],
    environment: Annotated[str, typer.Argument(help="Overlay name (e.g. staging)")],
    tag: Annotated[str, typer.Argument(help="New image tag")],
) -> None:
    """Pin a Kustomize overlay to a new image tag."""
    from argogen.validation import update_kustomize_image_tag

    config = _get_config()
    try:
        path, diff = update_kustomize_image_tag(
            _root, app_name, environment, tag, charts_dir=config.paths.charts_dir
        )
    except (FileNotFoundError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if _ci:
        _emit_json({"path": str(path), "diff": diff})
    elif diff:
        typer.echo(diff)
    raise typer.Exit(0)


# =============================================================================
# credentials command
# =============================================================================


@app.command()
def credentials(
    username: Annotated[
        str | None,
        typer.Option("--username", "-u", help="GitHub username"),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            "-t",
            help="GitHub personal access token with repo permissions",
            envvar="ARGOGEN_GIT_TOKEN",
        ),
    ] = None,
    repo_url: Annotated[
        str | None,
        typer.Option("--repo-url", help="Repository URL (default: platform.config_repo_url)"),
    ] = None,
) -> None:
    """Create the git write-back secret the ArgoCD Image Updater commits with."""
    from argogen.credentials import setup_git_credentials
    from argogen.tools.kubectl import Kubectl

    config = _get_config()
    kubectl = Kubectl(cwd=_root, timeout=config.ci.timeout)
    _require_tool(kubectl)
    if not kubectl.cluster_reachable():
        _logger.error("Cannot connect to Kubernetes cluster. Ensure your KUBECONFIG is set correctly.")
        raise typer.Exit(1)

    repo_url = repo_url or config.platform.config_repo_url
    if _ci and not (username and token and repo_url):
        _logger.error("--username, --token and --repo-url are required in CI mode")
        raise typer.Exit(1)

    if not username:
        username = typer.prompt("GitHub username")
    if not token:
        token = typer.prompt("GitHub personal access token", hide_input=True)
    if not repo_url:
        repo_url = typer.prompt("Repository URL")

    try:
        setup_git_credentials(
            kubectl,
            username,
            token,
            repo_url,
            secret_reference=config.platform.write_back_secret,
        )
    except (ValueError, ToolExecutionError, ToolNotAvailableError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    raise typer.Exit(0)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Write a default configuration file to .argogen/config.yaml."""
    config_file = _root / ".argogen" / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(create_default_config(), encoding="utf-8")
    _logger.success(f"Created config: {config_file}")
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
