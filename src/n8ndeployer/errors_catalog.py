"""Actionable error catalog for n8n-deployer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_root": {
        "what": "This command must be run as root.",
        "next": "Re-run it with `sudo`.",
    },
    "invalid_domain": {
        "what": "Invalid domain name: `{value}`.",
        "next": "Use a fully qualified host name such as `n8n.example.com`.",
    },
    "invalid_email": {
        "what": "Invalid e-mail address: `{value}`.",
        "next": "Provide an address Let's Encrypt can send expiry notices to.",
    },
    "invalid_username": {
        "what": "Invalid basic auth username.",
        "next": "Use a non-empty name without spaces or `:`.",
    },
    "invalid_password": {
        "what": "Invalid basic auth password.",
        "next": "Use a non-empty password on a single line.",
    },
    "invalid_allowlist_entry": {
        "what": "Invalid allowlist entry: `{value}`.",
        "next": "Use IPv4/IPv6 addresses or CIDR ranges such as `203.0.113.0/24`.",
    },
    "invalid_timezone": {
        "what": "Invalid timezone: `{value}`.",
        "next": "Use an IANA zone name such as `Europe/Berlin` or `UTC`.",
    },
    "invalid_image": {
        "what": "Invalid container image reference: `{value}`.",
        "next": "Use a reference such as `n8nio/n8n:1.64.0` or `traefik:v2.11`.",
    },
    "compose_unavailable": {
        "what": "Docker Compose v2 is not available after installation.",
        "next": "Check `docker compose version` and the `docker-compose-plugin` package.",
    },
    "write_failed": {
        "what": "Could not write {path}: {reason}",
        "next": "Check free disk space and permissions on the target directory, then re-run.",
    },
    "backup_not_found": {
        "what": "Backup archive not found: {path}",
        "next": "List the backup directory and pass an existing archive.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
