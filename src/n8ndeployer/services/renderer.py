"""Configuration artifact rendering for n8n-deployer.

Every artifact is built as plain data first and then serialized, so user
values never become part of a template. Rendering is a pure function of its
inputs: the same config and layout always produce byte-identical output.
"""

import base64
import hashlib
import re
import shlex
from typing import Any, Dict, List, Sequence, Tuple

import yaml

from n8ndeployer.constants import (
    ALLOWLIST_MIDDLEWARE,
    AUTH_MIDDLEWARE,
    CERT_RESOLVER,
    DOCKER_BINARY,
    FILE_MODE,
    N8N_HEALTH_URL,
    N8N_PORT,
    PROJECT_NAME,
    SCRIPT_MODE,
    SECRET_MODE,
    UNIT_MODE,
)
from n8ndeployer.models import DeploymentConfig, DirectoryLayout, RenderedArtifact

HEADER = "Managed by n8n-deployer. Manual changes are overwritten on the next install."

_PLAIN_ENV_VALUE = re.compile(r"^[A-Za-z0-9_./:@+,=-]*$")

Section = Tuple[str, Sequence[Tuple[str, str]]]


class ConfigRenderer:
    """Builds the environment, proxy, compose, unit and backup artifacts."""

    CONTAINER_PROXY_DIR = "/etc/traefik"
    CONTAINER_STATIC_CONFIG = "/etc/traefik/traefik.yaml"
    CONTAINER_DYNAMIC_CONFIG = "/etc/traefik/dynamic.yaml"
    CONTAINER_ACME_STORE = "/acme/acme.json"
    CONTAINER_DATA_DIR = "/home/node/.n8n"
    DOCKER_SOCKET = "/var/run/docker.sock"

    # serialization

    @staticmethod
    def dump_yaml(data: Dict[str, Any]) -> str:
        body = yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
        return f"# {HEADER}\n{body}"

    @staticmethod
    def format_env_value(value: str) -> str:
        if _PLAIN_ENV_VALUE.match(value):
            return value
        if "'" not in value:
            return f"'{value}'"
        escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
        return f'"{escaped}"'

    def dump_env(self, entries: Sequence[Tuple[str, str]]) -> str:
        lines = [f"# {HEADER}"]
        lines.extend(f"{key}={self.format_env_value(value)}" for key, value in entries)
        return "\n".join(lines) + "\n"

    @staticmethod
    def dump_unit(sections: Sequence[Section]) -> str:
        blocks = [f"# {HEADER}"]
        for name, entries in sections:
            lines = [f"[{name}]"]
            lines.extend(f"{key}={value}" for key, value in entries)
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"

    # credentials

    @staticmethod
    def hash_basic_auth(user: str, password: str) -> str:
        """Return an htpasswd ``{SHA}`` entry, which Traefik's basicAuth accepts."""
        digest = hashlib.sha1(password.encode("utf-8")).digest()
        return f"{user}:{{SHA}}{base64.b64encode(digest).decode('ascii')}"

    # data models

    def middleware_refs(self, config: DeploymentConfig) -> List[str]:
        refs = [f"{AUTH_MIDDLEWARE}@file"]
        if config.ip_allowlist:
            refs.append(f"{ALLOWLIST_MIDDLEWARE}@file")
        return refs

    def env_entries(self, config: DeploymentConfig) -> List[Tuple[str, str]]:
        # n8n reads the password in clear text; the file itself is owner-only.
        return [
            ("N8N_BASIC_AUTH_ACTIVE", "true"),
            ("N8N_BASIC_AUTH_USER", config.auth_user),
            ("N8N_BASIC_AUTH_PASSWORD", config.auth_password),
            ("N8N_HOST", config.domain),
            ("N8N_PROTOCOL", "https"),
            ("WEBHOOK_URL", f"https://{config.domain}/"),
            ("GENERIC_TIMEZONE", config.timezone),
        ]

    def proxy_static_config(self, config: DeploymentConfig) -> Dict[str, Any]:
        return {
            "entryPoints": {
                "web": {
                    "address": ":80",
                    "http": {
                        "redirections": {
                            "entryPoint": {"to": "websecure", "scheme": "https"},
                        },
                    },
                },
                "websecure": {"address": ":443"},
            },
            "providers": {
                "docker": {"exposedByDefault": False},
                "file": {"filename": self.CONTAINER_DYNAMIC_CONFIG, "watch": True},
            },
            "certificatesResolvers": {
                CERT_RESOLVER: {
                    "acme": {
                        "email": config.email,
                        "storage": self.CONTAINER_ACME_STORE,
                        "httpChallenge": {"entryPoint": "web"},
                    },
                },
            },
        }

    def proxy_dynamic_config(self, config: DeploymentConfig) -> Dict[str, Any]:
        middlewares: Dict[str, Any] = {
            AUTH_MIDDLEWARE: {
                "basicAuth": {
                    "users": [self.hash_basic_auth(config.auth_user, config.auth_password)],
                },
            },
        }
        # No entry at all for an empty allowlist: an empty sourceRange would reject everyone.
        if config.ip_allowlist:
            middlewares[ALLOWLIST_MIDDLEWARE] = {
                "ipWhiteList": {"sourceRange": list(config.ip_allowlist)},
            }
        return {"http": {"middlewares": middlewares}}

    def compose_manifest(self, config: DeploymentConfig, layout: DirectoryLayout) -> Dict[str, Any]:
        router = "traefik.http.routers.n8n"
        labels = [
            "traefik.enable=true",
            f"{router}.rule=Host(`{config.domain}`)",
            f"{router}.entrypoints=websecure",
            f"{router}.tls=true",
            f"{router}.tls.certresolver={CERT_RESOLVER}",
            f"{router}.middlewares={','.join(self.middleware_refs(config))}",
            f"traefik.http.services.n8n.loadbalancer.server.port={N8N_PORT}",
        ]

        return {
            "services": {
                "traefik": {
                    "image": config.proxy_image,
                    "command": [f"--configFile={self.CONTAINER_STATIC_CONFIG}"],
                    "ports": ["80:80", "443:443"],
                    # Atomic rewrites swap inodes; only a directory mount follows them.
                    "volumes": [
                        f"{layout.proxy_dir}:{self.CONTAINER_PROXY_DIR}:ro",
                        f"{layout.acme_file}:{self.CONTAINER_ACME_STORE}",
                        f"{self.DOCKER_SOCKET}:{self.DOCKER_SOCKET}:ro",
                    ],
                    "restart": "always",
                },
                "n8n": {
                    "image": config.n8n_image,
                    "env_file": [".env"],
                    "environment": [f"TZ={config.timezone}"],
                    "volumes": [f"{layout.data_dir}:{self.CONTAINER_DATA_DIR}"],
                    "labels": labels,
                    "healthcheck": {
                        "test": [
                            "CMD-SHELL",
                            f"wget -q --spider {N8N_HEALTH_URL} || exit 1",
                        ],
                        "interval": "30s",
                        "timeout": "10s",
                        "retries": 3,
                    },
                    "depends_on": ["traefik"],
                    "restart": "always",
                },
            },
        }

    def unit_sections(self, layout: DirectoryLayout) -> List[Section]:
        compose = f"{DOCKER_BINARY} compose --project-name {PROJECT_NAME} -f {layout.compose_file}"
        return [
            (
                "Unit",
                [
                    ("Description", "n8n automation service"),
                    ("After", "docker.service"),
                    ("Requires", "docker.service"),
                ],
            ),
            (
                "Service",
                [
                    ("Type", "oneshot"),
                    ("WorkingDirectory", layout.base_dir),
                    ("ExecStartPre", f"{compose} pull"),
                    ("ExecStart", f"{compose} up -d"),
                    ("ExecStop", f"{compose} down"),
                    ("RemainAfterExit", "yes"),
                ],
            ),
            ("Install", [("WantedBy", "multi-user.target")]),
        ]

    # artifacts

    def render_env_file(self, config: DeploymentConfig, layout: DirectoryLayout) -> RenderedArtifact:
        return RenderedArtifact("env", layout.env_file, self.dump_env(self.env_entries(config)), SECRET_MODE)

    def render_proxy_static(self, config: DeploymentConfig, layout: DirectoryLayout) -> RenderedArtifact:
        return RenderedArtifact(
            "proxy_static",
            layout.proxy_static_file,
            self.dump_yaml(self.proxy_static_config(config)),
            FILE_MODE,
        )

    def render_proxy_dynamic(self, config: DeploymentConfig, layout: DirectoryLayout) -> RenderedArtifact:
        return RenderedArtifact(
            "proxy_dynamic",
            layout.proxy_dynamic_file,
            self.dump_yaml(self.proxy_dynamic_config(config)),
            SECRET_MODE,
        )

    def render_compose(self, config: DeploymentConfig, layout: DirectoryLayout) -> RenderedArtifact:
        return RenderedArtifact(
            "compose",
            layout.compose_file,
            self.dump_yaml(self.compose_manifest(config, layout)),
            FILE_MODE,
        )

    def render_unit(self, layout: DirectoryLayout) -> RenderedArtifact:
        return RenderedArtifact("unit", layout.unit_file, self.dump_unit(self.unit_sections(layout)), UNIT_MODE)

    def render_backup_script(self, layout: DirectoryLayout, python_executable: str) -> RenderedArtifact:
        command = " ".join(
            shlex.quote(part)
            for part in (python_executable, "-m", "n8ndeployer.cli", "backup", "--base-dir", layout.base_dir)
        )
        content = "\n".join(
            [
                "#!/usr/bin/env bash",
                f"# {HEADER}",
                "set -euo pipefail",
                f"exec {command}",
                "",
            ]
        )
        return RenderedArtifact("backup_script", layout.backup_script, content, SCRIPT_MODE)

    def render_all(self, config: DeploymentConfig, layout: DirectoryLayout) -> List[RenderedArtifact]:
        """The five stack artifacts, in the order they are written."""
        return [
            self.render_env_file(config, layout),
            self.render_proxy_static(config, layout),
            self.render_proxy_dynamic(config, layout),
            self.render_compose(config, layout),
            self.render_unit(layout),
        ]
