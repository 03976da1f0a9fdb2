"""Root-level pytest fixtures for the zonal test suite.

Provides shared configuration fixtures following the Pydantic-based architecture.
All tests must use these fixtures instead of creating raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from zonal.schemas import ParamConfig, UserConfig, resolve_config

from tests.helpers.fake_fields import make_grid
from tests.helpers.fake_zones import make_store, square


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.

    Examples
    --------
    >>> def test_engine_init(internal_config):
    ...     engine = SpatialPredicateEngine(internal_config)
    ...     assert engine.mode == "center"
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Use this when you need to override specific values for a test.
    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_overlap(make_config):
    ...     config = make_config(predicate="overlap")
    ...     engine = SpatialPredicateEngine(config)
    ...     assert engine.mode == "overlap"
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def grid_2x2():
    """2x2 grid in EPSG:3857 covering [0, 2] x [0, 2], values [[1, 2], [3, 4]].

    Cell centers: (0.5, 1.5)=1, (1.5, 1.5)=2, (0.5, 0.5)=3, (1.5, 0.5)=4.
    """
    return make_grid([[1.0, 2.0], [3.0, 4.0]])


@pytest.fixture
def three_zones():
    """Zone 1 covers cell value 1, zone 2 the right column, zone 3 nothing."""
    return make_store(
        [square(0, 1), square(1, 0, width=1, height=2), square(10, 10)],
        ids=[1, 2, 3],
        attributes=[{"name": "a"}, {"name": "b"}, {"name": "c"}],
    )
