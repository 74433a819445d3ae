import pytest

from sim import Network


@pytest.fixture
def net():
    """2-of-3 registry with a registered roster."""
    return Network(threshold=2, num_peers=3)


@pytest.fixture
def net5():
    """3-of-5 registry with a registered roster."""
    return Network(threshold=3, num_peers=5)


@pytest.fixture
def keyed(net):
    """2-of-3 registry with key 42 generated at epoch 0."""
    net.run_keygen(42)
    return net
