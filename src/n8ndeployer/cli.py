import logging
import os

import click
from rich.logging import RichHandler

from .core import N8NDeployer, console
from .constants import DEFAULT_BASE_DIR, DEFAULT_SYSTEMD_DIR
from .errors import DeployerError
from .models import DirectoryLayout
from .services.config_loader import ConfigLoader
from .services.host import HostService
from .services.prompt import PromptService
from .services.validation import ValidationService

PASSWORD_ENV_VAR = "N8N_AUTH_PASSWORD"
DEFAULT_CONFIG_FILE = ".n8ndeployer.yml"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _load_config(config_path):
    resolved_config = config_path
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path
    return ConfigLoader().load(resolved_config)


def _configure_logging(verbose, log_file):
    logger = logging.getLogger("n8ndeployer")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _layout_from(config_values, base_dir, systemd_dir=None):
    return DirectoryLayout(
        base_dir=_resolve_option(base_dir, config_values, "base_dir", default=DEFAULT_BASE_DIR),
        systemd_dir=_resolve_option(
            systemd_dir, config_values, "systemd_dir", default=DEFAULT_SYSTEMD_DIR
        ),
    )


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, verbose, log_file):
    """Deploy n8n behind Traefik with TLS, basic auth and backups."""
    try:
        config_values = _load_config(config)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.ensure_object(dict)
    ctx.obj["config_values"] = config_values


def _deploy_options(func):
    options = [
        click.option("--domain", required=False, help="Public domain for n8n, e.g. n8n.example.com"),
        click.option("--email", required=False, help="E-mail for Let's Encrypt notifications"),
        click.option("--auth-user", required=False, help="HTTP basic auth username"),
        click.option(
            "--allowlist",
            required=False,
            help="Comma-separated IPs/CIDRs allowed to reach n8n. Empty disables filtering.",
        ),
        click.option("--timezone", required=False, help="Container timezone (default: UTC)"),
        click.option("--n8n-image", required=False, help="n8n container image"),
        click.option("--proxy-image", required=False, help="Traefik container image"),
        click.option("--base-dir", required=False, type=click.Path(), help="Install directory"),
        click.option(
            "--systemd-dir",
            required=False,
            type=click.Path(),
            help="Directory for the systemd unit file.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_deployer(config_values, params, dry_run):
    validation_service = ValidationService()
    prompt_service = PromptService(validation_service)

    deployment_config = prompt_service.collect(
        domain=_resolve_option(params["domain"], config_values, "domain"),
        email=_resolve_option(params["email"], config_values, "email"),
        auth_user=_resolve_option(params["auth_user"], config_values, "auth_user"),
        auth_password=os.environ.get(PASSWORD_ENV_VAR),
        ip_allowlist=_resolve_option(params["allowlist"], config_values, "ip_allowlist"),
        timezone=_resolve_option(params["timezone"], config_values, "timezone"),
        n8n_image=_resolve_option(params["n8n_image"], config_values, "n8n_image"),
        proxy_image=_resolve_option(params["proxy_image"], config_values, "proxy_image"),
    )

    return N8NDeployer(
        config=deployment_config,
        layout=_layout_from(config_values, params["base_dir"], params["systemd_dir"]),
        skip_upgrade=bool(
            _resolve_option(params["skip_upgrade"], config_values, "skip_upgrade", default=False)
        ),
        dry_run=dry_run,
    )


@main.command()
@_deploy_options
@click.option(
    "--skip-upgrade",
    is_flag=True,
    default=None,
    help="Refresh package lists but do not upgrade installed packages.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Validate inputs and print the rendered configuration without changing the host.",
)
@click.pass_context
def install(ctx, dry_run, **params):
    """Install or re-apply the n8n stack. Safe to run repeatedly."""
    config_values = ctx.obj["config_values"]

    if not dry_run:
        try:
            HostService(logger=logging.getLogger("n8ndeployer"), console=console).ensure_privileges()
        except DeployerError as exc:
            raise click.ClickException(str(exc)) from exc

    try:
        deployer = _build_deployer(config_values, params, dry_run=dry_run)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


@main.command()
@_deploy_options
@click.pass_context
def render(ctx, **params):
    """Print every file install would write, without touching the host."""
    params["skip_upgrade"] = None
    try:
        deployer = _build_deployer(ctx.obj["config_values"], params, dry_run=True)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


@main.command()
@click.option("--base-dir", required=False, type=click.Path(), help="Install directory")
@click.option("--list", "list_only", is_flag=True, default=False, help="List existing backups instead.")
@click.pass_context
def backup(ctx, base_dir, list_only):
    """Archive the n8n data directory into the backups directory."""
    deployer = N8NDeployer(layout=_layout_from(ctx.obj["config_values"], base_dir))
    if list_only:
        raise SystemExit(deployer.list_backups())
    raise SystemExit(deployer.backup())


@main.command()
@click.argument("archive", type=click.Path())
@click.option("--base-dir", required=False, type=click.Path(), help="Install directory")
@click.pass_context
def restore(ctx, archive, base_dir):
    """Stop the stack, restore ARCHIVE into the data directory and start it again."""
    deployer = N8NDeployer(layout=_layout_from(ctx.obj["config_values"], base_dir))
    raise SystemExit(deployer.restore(archive))


@main.command()
@click.option("--base-dir", required=False, type=click.Path(), help="Install directory")
@click.pass_context
def update(ctx, base_dir):
    """Pull newer images and restart the stack."""
    deployer = N8NDeployer(layout=_layout_from(ctx.obj["config_values"], base_dir))
    raise SystemExit(deployer.update())


if __name__ == "__main__":
    main()
