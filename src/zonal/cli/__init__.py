"""Command-line interface modules for zonal pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from zonal.cli.run_zonal import run_zonal_pipeline

__all__ = ['run_zonal_pipeline']
