"""Production configuration guard — enforces hard constraints in production.

The guard validates that production-critical settings are configured
before any upload runs.  It is called once when an ``ArtifactUploader``
is constructed and fails hard (raises ``ProductionConfigError``) if any
constraint is violated.
"""

from __future__ import annotations

import logging

from repodrop.config import RepodropConfig

logger = logging.getLogger(__name__)

# Settings that MUST be non-empty in production.
PRODUCTION_REQUIRED_SETTINGS: list[str] = [
    "github_token",
    "github_repo",
]


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    The process cannot safely upload in production mode with the current
    configuration.  It must not be caught and ignored.
    """


def enforce_production_constraints(config: RepodropConfig) -> None:
    """Validate all production-critical configuration constraints.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. ``github_token`` and ``github_repo`` must be configured.
    3. The retry budget allows at least one attempt and the manifest
       path is a relative file path.

    Raises
    ------
    ProductionConfigError
        If any production constraint is violated.  All violations are
        reported at once.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set REPODROP_DEBUG=false."
        )

    for key_name in PRODUCTION_REQUIRED_SETTINGS:
        if not getattr(config, key_name, ""):
            violations.append(
                f"Setting '{key_name}' is required in production but not configured. "
                f"Set REPODROP_{key_name.upper()}."
            )

    if config.max_attempts < 1:
        violations.append(
            f"max_attempts must be at least 1, got {config.max_attempts}."
        )

    if not config.manifest_path or config.manifest_path.startswith("/") or config.manifest_path.endswith("/"):
        violations.append(
            f"manifest_path must be a relative file path, got {config.manifest_path!r}."
        )

    if violations:
        msg = (
            "Production configuration guard failed.\n"
            + "\n".join(f"  - {v}" for v in violations)
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
