import pytest


class ScriptedSource:
    """Completion source that replays a fixed list of fragments."""

    def __init__(self, fragments, fail_after=None):
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.calls = []

    async def stream(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i >= self.fail_after:
                raise ConnectionError("stream dropped")
            yield fragment


class UnreachableSource:
    def __init__(self):
        self.calls = 0

    def stream(self, system_prompt, user_prompt):
        self.calls += 1
        raise ConnectionError("completion endpoint unreachable")


@pytest.fixture
def scripted_source():
    return ScriptedSource


@pytest.fixture
def unreachable_source():
    return UnreachableSource()
