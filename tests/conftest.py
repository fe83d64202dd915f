import pytest


class ScriptedRandom:
    """Random source that hands out a fixed list of faces, in order."""

    def __init__(self, faces):
        self.faces = list(faces)
        self.calls = []

    def randint(self, a, b):
        self.calls.append((a, b))
        face = self.faces.pop(0)
        assert a <= face <= b, f"scripted face {face} outside [{a}, {b}]"
        return face


class MaxRandom:
    """Random source that always rolls the highest face."""

    def randint(self, a, b):
        return b


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture
def max_random():
    return MaxRandom()
