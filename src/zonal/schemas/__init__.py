"""Pydantic configuration schemas for the zonal pipeline.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from zonal.schemas.resolve import resolve_config
from zonal.schemas.internal import InternalConfig
from zonal.schemas.param import ParamConfig
from zonal.schemas.user import UserConfig
from zonal.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
