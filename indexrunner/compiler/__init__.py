"""Compiler layer of indexrunner.

Turns files on disk into runtime objects: application configuration
(``config_loader``) and index configuration files into build jobs
(``job_loader``).
"""

from indexrunner.compiler.job_loader import LoadedJob, load_index_config, load_job, load_jobs


def __getattr__(name: str) -> object:
    """Lazy imports for config loader symbols to avoid circular imports."""
    _config_names = {
        "ConfigLoader",
        "clear_config_cache",
        "get_default_config",
        "load_config",
    }
    if name in _config_names:
        from indexrunner.compiler import config_loader

        return getattr(config_loader, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "LoadedJob",
    "load_index_config",
    "load_job",
    "load_jobs",
]
