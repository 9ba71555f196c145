import pytest


class ConstantRng:
    """Stands in for a Generator that always draws the same value."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    def random(self):
        self.calls += 1
        return self.value


class SequenceRng:

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


@pytest.fixture
def constant_rng():
    return ConstantRng


@pytest.fixture
def sequence_rng():
    return SequenceRng
