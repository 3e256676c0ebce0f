import re
import sys
import threading

import pytest

from print_threads import (
    CLEAR_LINE,
    HIDE_CURSOR,
    SHOW_CURSOR,
    ConfigurationError,
    Percentage,
    Session,
)

BAR_LINE = re.compile(r'^Thread \d: \[=*> *\] +\d{1,3}%$')
MESSAGE_LINE = re.compile(r'^worker \d step \d+$')


def test_print_message_clears_line_and_formats(make_session):
    session = make_session()
    session.print_message('%s finished after %d steps (%d%%)', 'worker', 3, 100)
    assert session.stream.getvalue() == CLEAR_LINE + 'worker finished after 3 steps (100%)\n'


def test_print_message_without_args_still_formats(make_session):
    session = make_session()
    session.print_message('100%%')
    session.print_message('%d%%', 100)
    session.print_message('all done')
    assert session.stream.getvalue() == CLEAR_LINE + '100%\n' + CLEAR_LINE + '100%\n' + CLEAR_LINE + 'all done\n'


def test_print_message_lone_percent_without_args_is_rejected(make_session):
    session = make_session()
    with pytest.raises(ConfigurationError, match=r'^\[Print threads Print Error\]'):
        session.print_message('100% done')


def test_print_message_trailing_newline_is_not_doubled(make_session):
    session = make_session()
    session.print_message('done\n')
    assert session.stream.getvalue() == CLEAR_LINE + 'done\n'


def test_print_message_clears_every_line(make_session):
    session = make_session()
    session.print_message('first\nsecond')
    assert session.stream.getvalue() == CLEAR_LINE + 'first\n' + CLEAR_LINE + 'second\n'


def test_print_message_bad_format(make_session):
    session = make_session()
    with pytest.raises(ConfigurationError, match=r'^\[Print threads Print Error\]'):
        session.print_message('%d', 'not a number')


def test_messages_never_tear_bar_lines(make_session):
    lock = threading.Lock()
    session = make_session(refresh_rate=1, bar_length=20, lock=lock)
    progress = [Percentage() for _ in range(3)]
    for n, value in enumerate(progress):
        session.add_source(n, value)
    session.start()

    def worker(n, value):
        for i in range(101):
            with lock:
                value.value = i
            session.print_message('worker %d step %d', n, i)

    threads = [threading.Thread(target=worker, args=(n, p)) for n, p in enumerate(progress)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    session.finish()

    output = session.stream.getvalue()
    for escape in (HIDE_CURSOR, SHOW_CURSOR, CLEAR_LINE):
        output = output.replace(escape, '')
    output = re.sub(r'\x1b\[\d+A', '', output)

    pieces = [piece for line in output.split('\n') for piece in line.split('\r') if piece]
    hybrids = [piece for piece in pieces if not (BAR_LINE.match(piece) or MESSAGE_LINE.match(piece))]
    assert hybrids == []
    assert sum(1 for piece in pieces if MESSAGE_LINE.match(piece)) == 3 * 101


def test_proxy_stdout_routes_print_through_gate(make_session, capsys):
    session = make_session(proxy_stdout=True)
    session.start()

    print('hello')
    print('partial', end='')
    session.finish()

    assert not isinstance(sys.stdout, Session.StdProxy)
    out = capsys.readouterr().out
    assert CLEAR_LINE + 'hello\n' in out
    assert CLEAR_LINE + 'partial\n' in out
