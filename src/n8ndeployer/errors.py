"""Domain errors for n8n-deployer."""


class DeployerError(RuntimeError):
    """Raised when the deployment cannot continue safely."""


class ConfigurationError(DeployerError):
    """Raised when operator input cannot be turned into a valid configuration."""
