"""Input validation for n8n-deployer.

Everything the operator types passes through here exactly once. The result is
a frozen DeploymentConfig, so rendered files never see unchecked text.
"""

import ipaddress
import re
from typing import Iterable, List, Optional, Tuple, Union

from n8ndeployer.constants import DEFAULT_TIMEZONE, N8N_IMAGE, PROXY_IMAGE
from n8ndeployer.errors import ConfigurationError
from n8ndeployer.errors_catalog import actionable_error
from n8ndeployer.models import DeploymentConfig

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_EMAIL_RE = re.compile(r"^[^@\s]+@([^@\s]+)$")
_TIMEZONE_RE = re.compile(r"^[A-Za-z0-9_+-]+(/[A-Za-z0-9_+-]+){0,2}$")
_IMAGE_RE = re.compile(
    r"^(?:[A-Za-z0-9.-]+(?::[0-9]+)?/)?"
    r"[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*"
    r"(?::[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})?"
    r"(?:@sha256:[a-f0-9]{64})?$"
)


class ValidationService:
    """Parses raw operator values into a DeploymentConfig."""

    def normalize_domain(self, value: str) -> str:
        domain = (value or "").strip().lower().rstrip(".")
        if not self.is_valid_hostname(domain):
            raise ConfigurationError(actionable_error("invalid_domain", value=value or ""))
        return domain

    def is_valid_hostname(self, hostname: str) -> bool:
        if not hostname or len(hostname) > 253:
            return False

        labels = hostname.split(".")
        if len(labels) < 2:
            return False
        if labels[-1].isdigit():
            return False
        return all(_LABEL_RE.match(label) for label in labels)

    def normalize_email(self, value: str) -> str:
        email = (value or "").strip()
        match = _EMAIL_RE.match(email)
        if not match or not self.is_valid_hostname(match.group(1).lower()):
            raise ConfigurationError(actionable_error("invalid_email", value=value or ""))
        return email

    def normalize_username(self, value: str) -> str:
        username = (value or "").strip()
        if not username or ":" in username or any(c.isspace() for c in username):
            raise ConfigurationError(actionable_error("invalid_username"))
        return username

    def validate_password(self, value: str) -> str:
        if not value or "\n" in value or "\r" in value or "\x00" in value:
            raise ConfigurationError(actionable_error("invalid_password"))
        return value

    def normalize_timezone(self, value: Optional[str]) -> str:
        timezone = (value or DEFAULT_TIMEZONE).strip()
        if not _TIMEZONE_RE.match(timezone):
            raise ConfigurationError(actionable_error("invalid_timezone", value=timezone))
        return timezone

    def normalize_image(self, value: Optional[str], default: str) -> str:
        """Accept registry/name[:tag][@digest] references only.

        These values land in docker-compose.yml, where `$` would be interpolated.
        """
        image = (value or default).strip()
        if not _IMAGE_RE.match(image):
            raise ConfigurationError(actionable_error("invalid_image", value=image))
        return image

    def parse_allowlist(self, value: Union[None, str, Iterable[str]]) -> Tuple[str, ...]:
        """Split, validate and de-duplicate allowlist entries, keeping their order.

        Accepts a comma-separated string (the prompt format) or a list (the
        config file format). An empty value means no IP filtering.
        """
        if value is None:
            return ()

        if isinstance(value, str):
            raw_entries: List[str] = value.split(",")
        else:
            raw_entries = [str(item) for item in value]

        entries: List[str] = []
        for raw in raw_entries:
            candidate = raw.strip()
            if not candidate:
                continue
            try:
                network = ipaddress.ip_network(candidate, strict=False)
            except ValueError as exc:
                raise ConfigurationError(
                    actionable_error("invalid_allowlist_entry", value=candidate)
                ) from exc

            normalized = str(network)
            if normalized not in entries:
                entries.append(normalized)

        return tuple(entries)

    def build_config(
        self,
        domain: str,
        email: str,
        auth_user: str,
        auth_password: str,
        ip_allowlist: Union[None, str, Iterable[str]] = None,
        timezone: Optional[str] = None,
        n8n_image: Optional[str] = None,
        proxy_image: Optional[str] = None,
    ) -> DeploymentConfig:
        return DeploymentConfig(
            domain=self.normalize_domain(domain),
            email=self.normalize_email(email),
            auth_user=self.normalize_username(auth_user),
            auth_password=self.validate_password(auth_password),
            ip_allowlist=self.parse_allowlist(ip_allowlist),
            timezone=self.normalize_timezone(timezone),
            n8n_image=self.normalize_image(n8n_image, N8N_IMAGE),
            proxy_image=self.normalize_image(proxy_image, PROXY_IMAGE),
        )
