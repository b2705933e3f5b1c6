"""Interactive input collection for n8n-deployer."""

from typing import Any, Callable, Optional

import click

from n8ndeployer.errors import ConfigurationError
from n8ndeployer.models import DeploymentConfig
from n8ndeployer.services.validation import ValidationService


class PromptService:
    """Fills in missing deployment values from the terminal.

    Values supplied up front (CLI options or config file) are validated and
    fail the run when invalid. Values typed at a prompt are validated as they
    are entered and asked for again until they pass.
    """

    def __init__(self, validation_service: ValidationService, prompt: Callable = click.prompt):
        self.validation_service = validation_service
        self.prompt = prompt

    def _ask(self, text: str, normalizer: Callable[[str], Any], **kwargs) -> Any:
        def value_proc(value):
            try:
                return normalizer(value)
            except ConfigurationError as exc:
                raise click.BadParameter(str(exc)) from exc

        return self.prompt(text, value_proc=value_proc, **kwargs)

    def collect(
        self,
        domain: Optional[str] = None,
        email: Optional[str] = None,
        auth_user: Optional[str] = None,
        auth_password: Optional[str] = None,
        ip_allowlist: Any = None,
        timezone: Optional[str] = None,
        n8n_image: Optional[str] = None,
        proxy_image: Optional[str] = None,
    ) -> DeploymentConfig:
        validation = self.validation_service

        if not domain:
            domain = self._ask(
                "Enter your domain for n8n (e.g. n8n.example.com)",
                validation.normalize_domain,
            )
        if not email:
            email = self._ask(
                "Enter your e-mail for Let's Encrypt notifications",
                validation.normalize_email,
            )
        if not auth_user:
            auth_user = self._ask("Set HTTP basic auth username", validation.normalize_username)
        if not auth_password:
            auth_password = self._ask(
                "Set HTTP basic auth password",
                validation.validate_password,
                hide_input=True,
                confirmation_prompt=True,
            )
        if ip_allowlist is None:
            ip_allowlist = self._ask(
                "Enter comma-separated IPs/CIDRs to allowlist (e.g. 203.0.113.0/24,198.51.100.42) "
                "or leave empty",
                lambda value: ",".join(validation.parse_allowlist(value)),
                default="",
                show_default=False,
            )

        return validation.build_config(
            domain=domain,
            email=email,
            auth_user=auth_user,
            auth_password=auth_password,
            ip_allowlist=ip_allowlist,
            timezone=timezone,
            n8n_image=n8n_image,
            proxy_image=proxy_image,
        )
