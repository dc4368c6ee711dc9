from __future__ import annotations

from .config import settings
from .pipeline import SandboxLimits


def get_limits() -> SandboxLimits:
    """Sandbox budgets from configuration, injected into routes with Depends."""
    return SandboxLimits(
        timeout_ms=max(0, int(settings.script_timeout_ms)),
        memory_limit_mb=max(0, int(settings.script_memory_limit_mb)),
    )
