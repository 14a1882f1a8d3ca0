"""Configuration loading and management for indexrunner."""

from indexrunner.kernel.config.models import IndexRunnerConfig, LoggingConfig, RunDefaults


def __getattr__(name: str) -> object:
    """Lazy imports for config loader symbols (they live in indexrunner.compiler.config_loader)."""
    _loader_names = {
        "ConfigLoader",
        "clear_config_cache",
        "get_default_config",
        "load_config",
    }
    if name in _loader_names:
        from indexrunner.compiler import config_loader

        return getattr(config_loader, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "IndexRunnerConfig",
    "LoggingConfig",
    "RunDefaults",
]
