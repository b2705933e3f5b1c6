"""
n8n-deployer - Single-node n8n provisioning behind Traefik
"""

__version__ = "0.3.0"

from .core import N8NDeployer, DeployerError

__all__ = ["N8NDeployer", "DeployerError"]
