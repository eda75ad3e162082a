"""Run configuration I/O (YAML)."""

from gridwindow.io.manifest import RunConfig, load_config, parse_config

__all__ = ['RunConfig', 'load_config', 'parse_config']
