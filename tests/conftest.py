"""
conftest.py
~~~~~~~~~~~

Shared fixtures.
"""

import os
import sys
import tempfile

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# The API server reloads saved networks at import time; keep it away from ./models
os.environ.setdefault('MODEL_DIR', tempfile.mkdtemp(prefix='deepnet-models-'))

from deepnet import ActivationType, Config, Mode, Network, new_uniform  # noqa: E402
from deepnet.training import Example  # noqa: E402


@pytest.fixture(autouse=True)
def seeded():
    """Fix numpy's global random state for every test."""
    np.random.seed(0)


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def simple_network():
    """A 3-input network with one hidden layer of 4 and 2 outputs."""
    return Network(Config(inputs=3, layout=[4, 2]))


@pytest.fixture
def xor_examples():
    return [
        Example([0.0, 0.0], [0.0]),
        Example([0.0, 1.0], [1.0]),
        Example([1.0, 0.0], [1.0]),
        Example([1.0, 1.0], [0.0]),
    ]


@pytest.fixture
def xor_network():
    return Network(Config(
        inputs=2,
        layout=[3, 1],
        activation=ActivationType.SIGMOID,
        mode=Mode.BINARY,
        weight=new_uniform(0.25, 0),
        bias=True
    ))


@pytest.fixture
def separable_examples():
    """Two linearly separable clusters with a single 0/1 response."""
    points = [
        ([2.7810836, 2.550537003], 0.0),
        ([1.465489372, 2.362125076], 0.0),
        ([3.396561688, 4.400293529], 0.0),
        ([1.38807019, 1.850220317], 0.0),
        ([3.06407232, 3.005305973], 0.0),
        ([7.627531214, 2.759262235], 1.0),
        ([5.332441248, 2.088626775], 1.0),
        ([6.922596716, 1.77106367], 1.0),
        ([8.675418651, -0.242068655], 1.0),
        ([7.673756466, 3.508563011], 1.0),
    ]
    return [Example(x, [y]) for x, y in points]
