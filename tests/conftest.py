import io
import threading

import pytest

from print_threads import Session


@pytest.fixture
def make_session():
    """Build sessions writing to a StringIO and finish them after the test"""
    sessions = []

    def factory(refresh_rate=1, bar_length=50, head_char='>', body_char='=', lock=None, **kwargs):
        kwargs.setdefault('stream', io.StringIO())
        kwargs.setdefault('handle_signals', False)
        kwargs.setdefault('size_probe', lambda: (80, 24))
        if lock is None:
            lock = threading.Lock()
        session = Session(lock, refresh_rate, bar_length, head_char, body_char, **kwargs)
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        session.finish()
