# envgod/server.py
"""Server-only entry point for frameworks that import EnvGod at startup."""

from .loader import check_browser, load_env
from .models import LoadEnvOptions


async def load_server_env(options: LoadEnvOptions | None = None, **kwargs) -> dict[str, str]:
    """Same as load_env, but refuses to run before anything else in a browser runtime."""
    check_browser()
    return await load_env(options, **kwargs)
