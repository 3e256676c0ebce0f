# -*- coding: utf-8 -*-
"""
Print Threads – Stacked terminal progress bars for concurrently running threads.
Copyright (c) 2025 The print-threads authors
Licensed under the MIT License.
"""

import os
import sys
import signal
import shutil
import threading
import select
import fcntl
from dataclasses import dataclass
from enum import Enum
from typing import (
        Any,
        Callable,
        Dict,
        Iterable,
        Iterator,
        List,
        Optional,
        Sequence,
        TextIO,
        Tuple,
)
import logging

__all__ = [
    'init',
    'start',
    'finish',
    'monitor',
    'add_source',
    'remove_source',
    'print_message',
    'active_session',
    'Session',
    'State',
    'Registry',
    'ProgressSource',
    'Percentage',
    'TerminalGeometry',
    'ResizeWatcher',
    'ConfigurationError',
    'format_bar_line',
    'decoration_width',
    'cursor_up',
    'HIDE_CURSOR',
    'SHOW_CURSOR',
    'CLEAR_LINE',
]

logger = logging.getLogger('print-threads')


HIDE_CURSOR = '\033[?25l'
SHOW_CURSOR = '\033[?25h'
CLEAR_LINE = '\033[2K'

_REGISTRY_INITIAL_CAPACITY = 10
_REGISTRY_GROWTH_FACTOR = 2
_DEFAULT_TERMINAL_SIZE = (80, 24)
_PERCENTAGE_SUFFIX = '] 100%'
_MAX_LOOP_ERRORS = 10

_active_session: Optional['Session'] = None
_active_session_lock = threading.Lock()
_prev_termination_handlers: Dict[int, Any] = {}


def cursor_up(lines: int) -> str:
    """Escape sequence moving the cursor up by `lines` rows"""
    return f'\033[{lines}A'


class ConfigurationError(ValueError):
    """Raised when the monitor is misconfigured or used outside its lifecycle"""

    def __init__(self, component: str, message: str):
        self.component = component
        super().__init__(f'[Print threads {component} Error] {message}')


# ============================================================================
# Terminal utilities
# ============================================================================

def _get_terminal_size(stream: Optional[TextIO] = None) -> Tuple[int, int]:
    """Return (columns, rows) of the terminal, with a safe fallback."""
    if stream is not None:
        try:
            size = os.get_terminal_size(stream.fileno())
            # Unsized ptys report 0x0
            if size.columns > 0 and size.lines > 0:
                return size.columns, size.lines
        except (AttributeError, ValueError, OSError):
            # StringIO, closed streams and redirected output have no TTY
            pass
    try:
        size = shutil.get_terminal_size(fallback=_DEFAULT_TERMINAL_SIZE)
        if size.columns > 0 and size.lines > 0:
            return size.columns, size.lines
    except Exception:
        pass
    return _DEFAULT_TERMINAL_SIZE


@dataclass
class TerminalGeometry:
    """Current terminal size, plus the width before the last change"""
    width: int
    height: int
    previous_width: int = 0


# ============================================================================
# Progress sources
# ============================================================================

class Percentage:
    """Integer percentage owned by a worker and read by the monitor"""

    __slots__ = ('value',)

    def __init__(self, value: int = 0):
        self.value = value

    def __repr__(self):
        return f'{type(self).__name__}({self.value!r})'


def _label_for(handle: Any) -> str:
    if isinstance(handle, threading.Thread):
        ident = handle.ident if handle.ident is not None else handle.name
        return f'Thread {ident}'
    return f'Thread {handle}'


@dataclass
class ProgressSource:
    """One tracked worker.

    `progress` is a back-reference to a value the worker owns: either an
    object exposing `.value` or a zero-argument callable. It is only read.
    """
    handle: Any
    progress: Any
    label: Optional[str] = None
    last_rendered: int = 0

    def __post_init__(self):
        if self.label is None:
            self.label = _label_for(self.handle)

    def read(self) -> int:
        """Current percentage, clamped to 0..100"""
        progress = self.progress
        value = progress() if callable(progress) else progress.value
        return max(0, min(100, int(value)))


# ============================================================================
# Registry
# ============================================================================

class Registry:
    """Ordered, index-addressed sources backed by a doubling slot array.

    Not synchronized on its own; the session mutates it under its lock.
    """

    def __init__(self, capacity: int = _REGISTRY_INITIAL_CAPACITY):
        if capacity <= 0:
            raise ConfigurationError('Init', 'Registry capacity must be positive')
        self._slots: List[Optional[ProgressSource]] = [None] * capacity
        self._count = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __len__(self):
        return self._count

    def __iter__(self) -> Iterator[ProgressSource]:
        for index in range(self._count):
            yield self._slots[index]

    def __getitem__(self, index: int) -> ProgressSource:
        if not 0 <= index < self._count:
            raise IndexError('registry index out of range')
        return self._slots[index]

    def check(self):
        """Validate the count/capacity invariant"""
        if self._count > len(self._slots):
            raise ConfigurationError(
                'Configuration',
                f'Number of sources ({self._count}) greater than registry capacity ({len(self._slots)})')

    def append(self, source: ProgressSource) -> int:
        if self._count == len(self._slots):
            self._grow()
        index = self._count
        self._slots[index] = source
        self._count += 1
        return index

    def _grow(self):
        capacity = len(self._slots)
        self._slots.extend([None] * (capacity * (_REGISTRY_GROWTH_FACTOR - 1)))
        logger.debug('Registry grown from %d to %d slots', capacity, len(self._slots))

    def pop(self) -> Optional[ProgressSource]:
        """Remove and return the most recently added source, or None when empty"""
        if self._count == 0:
            return None
        self._count -= 1
        source = self._slots[self._count]
        self._slots[self._count] = None
        return source


# ============================================================================
# Bar drawing
# ============================================================================

def decoration_width(label: str, head_char: str) -> int:
    """Columns taken by everything on a bar line except the fill and blank segments"""
    return len(f'{label}: [') + len(head_char) + len(_PERCENTAGE_SUFFIX)


def format_bar_line(label: str, percentage: int, bar_length: int, fill: str, head_char: str) -> str:
    """Render one bar frame.

    A non-positive `bar_length` degenerates to the label and percentage only.
    """
    if bar_length <= 0:
        return f'{label}: {percentage:3d}%'

    progress = percentage * bar_length // 100
    progress = max(0, min(progress, bar_length, len(fill)))
    blank = ' ' * (bar_length - progress)
    return f'{label}: [{fill[:progress]}{head_char}{blank}] {percentage:3d}%'


# ============================================================================
# Session
# ============================================================================

class State(Enum):
    UNINITIALIZED = 'uninitialized'
    INITIALIZED = 'initialized'
    RUNNING = 'running'
    FINISHED = 'finished'


class Session:
    """Monitors registered workers and renders one bar line per worker"""

    def __init__(self,
                 lock: Any,
                 refresh_rate: int,
                 bar_length: Optional[int] = None,
                 head_char: str = '>',
                 body_char: str = '=',
                 *,
                 stream: Optional[TextIO] = None,
                 size_probe: Optional[Callable[[], Tuple[int, int]]] = None,
                 watch_interval: Optional[float] = 0.5,
                 terminal_padding_right: int = 0,
                 handle_signals: bool = True,
                 proxy_stdout: bool = False):
        """
        Create a monitoring session.

        Args:
            lock: Lock shared with the workers; guards every terminal write
            refresh_rate: Milliseconds between redraws
            bar_length: Fixed bar length, or None to size bars to the terminal
            head_char: Character drawn at the tip of every bar
            body_char: Character filling the completed part of every bar
            stream: Output stream (default sys.stdout)
            size_probe: Callable returning (columns, rows) of the terminal
            watch_interval: Seconds between geometry polls, None to rely on SIGWINCH only
            terminal_padding_right: Columns left free at the right edge
            handle_signals: Install SIGWINCH and termination handlers on start
            proxy_stdout: Route sys.stdout writes through the output gate while running
        """
        self._state = State.UNINITIALIZED

        if lock is None:
            raise ConfigurationError('Init', 'Mutex is NULL')
        if not (hasattr(lock, 'acquire') and hasattr(lock, 'release')):
            raise ConfigurationError('Init', f'Mutex must provide acquire() and release(), got {type(lock).__name__}')
        if refresh_rate <= 0:
            raise ConfigurationError('Init', "Refresh rate can't be 0")
        if bar_length is not None and bar_length <= 0:
            raise ConfigurationError('Init', "Bar length can't be 0")
        for name, char in (('head_char', head_char), ('body_char', body_char)):
            if not isinstance(char, str) or len(char) != 1:
                raise ConfigurationError('Init', f'{name} must be a single character, got {char!r}')
        if terminal_padding_right < 0:
            raise ConfigurationError('Init', 'terminal_padding_right must be non-negative')
        if watch_interval is not None and watch_interval <= 0:
            raise ConfigurationError('Init', 'watch_interval must be positive')

        self._lock = lock
        self._refresh_rate = refresh_rate
        self._bar_length = bar_length
        self._head_char = head_char
        self._body_char = body_char
        self._terminal_padding_right = terminal_padding_right
        self._handle_signals = handle_signals
        self._proxy_stdout = proxy_stdout

        self._stream: TextIO = stream if stream is not None else sys.stdout
        self._size_probe = size_probe or (lambda: _get_terminal_size(self._stream))

        width, height = self._probe_geometry()
        self._geometry = TerminalGeometry(width, height, previous_width=width)

        fill_length = bar_length if bar_length is not None else width
        self._fill: Optional[str] = body_char * fill_length
        self._registry: Optional[Registry] = Registry()

        self._exit = threading.Event()
        self._renderer_thread: Optional[threading.Thread] = None
        self._watcher = ResizeWatcher(self, watch_interval) if self.resize_aware else None
        self._original_stdout: Optional[TextIO] = None
        self._cursor_hidden = False

        self._state = State.INITIALIZED

    def __enter__(self):
        if self._state is State.INITIALIZED:
            self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False

    def __repr__(self):
        return f'{type(self).__name__}(state={self._state.value}, sources={self.source_count})'

    # Configuration

    @property
    def lock(self):
        """Lock shared with the workers"""
        return self._lock

    @property
    def state(self) -> State:
        return self._state

    @property
    def resize_aware(self) -> bool:
        """Whether bars are sized to the terminal instead of a fixed length"""
        return self._bar_length is None

    @property
    def refresh_rate(self) -> int:
        """Milliseconds between redraws"""
        return self._refresh_rate

    @refresh_rate.setter
    def refresh_rate(self, value: int):
        if value <= 0:
            raise ConfigurationError('Configuration', "Refresh rate can't be 0")
        with self._lock:
            self._refresh_rate = value

    @property
    def refresh_interval(self) -> float:
        return self._refresh_rate / 1000.0

    @property
    def terminal_padding_right(self) -> int:
        return self._terminal_padding_right

    @terminal_padding_right.setter
    def terminal_padding_right(self, value: int):
        if value < 0:
            raise ConfigurationError('Configuration', 'terminal_padding_right must be non-negative')
        with self._lock:
            self._terminal_padding_right = value

    @property
    def geometry(self) -> TerminalGeometry:
        """Snapshot of the terminal geometry"""
        with self._lock:
            g = self._geometry
            return TerminalGeometry(g.width, g.height, g.previous_width)

    @property
    def fill_buffer(self) -> Optional[str]:
        with self._lock:
            return self._fill

    @property
    def stream(self) -> TextIO:
        return self._stream

    # Registry

    @property
    def source_count(self) -> int:
        with self._lock:
            return len(self._registry) if self._registry is not None else 0

    @property
    def sources(self) -> Tuple[ProgressSource, ...]:
        with self._lock:
            return tuple(self._registry) if self._registry is not None else ()

    @property
    def registry_capacity(self) -> int:
        with self._lock:
            return self._registry.capacity if self._registry is not None else 0

    def _check_configuration(self):
        if self._lock is None:
            raise ConfigurationError('Configuration', 'Mutex is NULL')
        if self._fill is None:
            raise ConfigurationError('Configuration', 'Fill buffer is NULL')
        if self._registry is None:
            raise ConfigurationError('Configuration', 'Sources registry is NULL')
        self._registry.check()

    def add_source(self, handle: Any, progress: Any, label: Optional[str] = None) -> int:
        """Register a worker and return its row index"""
        source = self._make_source(handle, progress, label)
        with self._lock:
            self._check_configuration()
            return self._registry.append(source)

    def add_sources(self, sources: Iterable[Tuple[Any, Any]]) -> List[int]:
        """Register several (handle, progress) pairs in one atomic step"""
        prepared = [self._make_source(handle, progress, None) for handle, progress in sources]
        with self._lock:
            self._check_configuration()
            return [self._registry.append(source) for source in prepared]

    @staticmethod
    def _make_source(handle: Any, progress: Any, label: Optional[str]) -> ProgressSource:
        if progress is None or not (callable(progress) or hasattr(progress, 'value')):
            raise ConfigurationError('Configuration', 'Progress reference must be callable or expose .value')
        return ProgressSource(handle, progress, label)

    def remove_source(self):
        """Remove the most recently added worker"""
        with self._lock:
            self._check_configuration()
            if self._registry.pop() is None:
                logger.warning("[Print threads Remove Warning] there aren't threads to remove")

    # Geometry

    def _probe_geometry(self) -> Tuple[int, int]:
        width, height = self._size_probe()
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            logger.debug('Size probe reported %dx%d, using the fallback size', width, height)
            return _get_terminal_size()
        return width, height

    def check_geometry(self) -> bool:
        """Re-query the terminal size; returns True when it changed"""
        width, height = self._probe_geometry()
        with self._lock:
            return self._apply_geometry_internal(width, height)

    def _apply_geometry_internal(self, width: int, height: int) -> bool:
        if self._fill is None:
            return False

        geometry = self._geometry
        if width == geometry.width and height == geometry.height:
            return False

        if self.resize_aware and width != geometry.width:
            # May raise MemoryError; geometry stays untouched so the next check retries
            self._fill = self._body_char * max(0, width)

        logger.debug('Terminal resized from %dx%d to %dx%d',
                     geometry.width, geometry.height, width, height)
        geometry.previous_width = geometry.width
        geometry.width = width
        geometry.height = height
        return True

    def notify_resize(self):
        """Ask the resize watcher to re-query the terminal size"""
        if self._watcher is not None:
            self._watcher.notify()

    def _bar_length_for(self, source: ProgressSource) -> int:
        if self._bar_length is not None:
            return self._bar_length
        available = self._geometry.width - self._terminal_padding_right
        return available - decoration_width(source.label, self._head_char)

    # Rendering

    def refresh(self, overwrite: bool = True):
        """Draw every registered bar once"""
        with self._lock:
            self._refresh_internal(overwrite=overwrite)

    def _refresh_internal(self, overwrite: bool = True):
        if self._fill is None or self._registry is None:
            return

        sources = list(self._registry)
        if self.resize_aware:
            sources = sources[:max(1, self._geometry.height - 1)]

        for source in sources:
            self._draw_source_internal(source)

        if overwrite and sources:
            self._stream.write(cursor_up(len(sources)))
        self._stream.flush()

    def _draw_source_internal(self, source: ProgressSource):
        current = source.read()
        bar_length = self._bar_length_for(source)
        first = min(source.last_rendered, current)

        self._stream.write(CLEAR_LINE)
        for percentage in range(first, current + 1):
            line = format_bar_line(source.label, percentage, bar_length, self._fill, self._head_char)
            self._stream.write(line + '\r')
            self._stream.flush()
        self._stream.write('\n')

        source.last_rendered = current

    # Output gate

    def print_message(self, fmt: str, *args):
        """Write a printf-style message without tearing the bar display"""
        try:
            message = fmt % args
        except (TypeError, ValueError) as e:
            raise ConfigurationError('Print', f'Cannot format {fmt!r}: {e}') from e

        if message.endswith('\n'):
            message = message[:-1]

        with self._lock:
            self._write_lines_internal(self._stream, message.split('\n'))

    @staticmethod
    def _write_lines_internal(stream: TextIO, lines: Sequence[str]):
        stream.write(''.join(f'{CLEAR_LINE}{line}\n' for line in lines))
        stream.flush()

    class StdProxy:
        """Forwards complete lines written to a stream through the session's lock"""

        def __init__(self, session: 'Session', stream: TextIO):
            self.session = session
            self.stream = stream
            self.buffer: List[str] = []

        def write(self, data):
            if not data:
                return 0

            with self.session.lock:
                self.buffer.append(data)

                if '\n' not in data:
                    return len(data)

                full_data = ''.join(self.buffer)
                self.buffer = []

                complete_part, _, trailing_part = full_data.rpartition('\n')
                if trailing_part:
                    self.buffer.append(trailing_part)

                Session._write_lines_internal(self.stream, complete_part.split('\n'))
            return len(data)

        def flush(self):
            with self.session.lock:
                self._flush_internal()

        def _flush_internal(self):
            if self.buffer:
                data = ''.join(self.buffer)
                self.buffer = []
                Session._write_lines_internal(self.stream, [data])
            else:
                self.stream.flush()

        def __getattr__(self, name):
            return getattr(self.stream, name)

    # Lifecycle

    def start(self):
        """Hide the cursor and spawn the render (and resize) loops"""
        global _active_session

        if self._state is not State.INITIALIZED:
            raise ConfigurationError('Start', f'Session cannot be started from state {self._state.value}')
        self._check_configuration()

        with _active_session_lock:
            if _active_session is not None:
                raise ConfigurationError('Start', 'Another session is already running')
            _active_session = self

        with self._lock:
            self._stream.write(HIDE_CURSOR)
            self._stream.flush()
            self._cursor_hidden = True
            self._state = State.RUNNING

        if self._handle_signals:
            _install_termination_handlers()

        if self._proxy_stdout:
            self._original_stdout = sys.stdout
            sys.stdout = self.StdProxy(self, self._original_stdout)

        if self._watcher is not None:
            self._watcher.start(install_handler=self._handle_signals)

        self._renderer_thread = threading.Thread(
            target=_renderer, args=(self,), name='print-threads-renderer', daemon=True)
        self._renderer_thread.start()

    def finish(self):
        """Stop the loops, draw the final frame and restore the terminal.

        Safe to call more than once; later calls do nothing.
        """
        global _active_session

        if self._state is State.FINISHED:
            return

        with self._lock:
            if self._state is State.FINISHED:
                return
            was_running = self._state is State.RUNNING
            self._state = State.FINISHED
            self._exit.set()

        if self._watcher is not None:
            self._watcher.stop()

        renderer = self._renderer_thread
        if renderer is not None and renderer is not threading.current_thread():
            renderer.join()
        self._renderer_thread = None

        if was_running and self._proxy_stdout and self._original_stdout is not None:
            if isinstance(sys.stdout, self.StdProxy):
                sys.stdout.flush()
            sys.stdout = self._original_stdout
            self._original_stdout = None

        with self._lock:
            self._registry = None
            self._fill = None
            if self._cursor_hidden:
                self._stream.write(SHOW_CURSOR)
                self._stream.flush()
                self._cursor_hidden = False

        with _active_session_lock:
            if _active_session is self:
                _active_session = None
                if self._handle_signals:
                    _uninstall_termination_handlers()

    def _restore_cursor(self):
        """Show the cursor without taking the lock; used on abrupt termination"""
        try:
            self._stream.write(SHOW_CURSOR)
            self._stream.flush()
        except (OSError, ValueError, RuntimeError):
            # Closed stream or a reentrant write on a buffered stream
            pass


# ============================================================================
# Render loop
# ============================================================================

def _renderer(session: Session):
    """Redraw all bars every refresh interval until the session exits"""
    error_count = 0

    while not session._exit.is_set():
        try:
            session.refresh(overwrite=True)
            error_count = 0
        except Exception:
            error_count += 1
            if error_count <= _MAX_LOOP_ERRORS:
                logger.exception('Renderer failed (error %d/%d)', error_count, _MAX_LOOP_ERRORS)
            elif error_count == _MAX_LOOP_ERRORS + 1:
                logger.error('Renderer: suppressing further errors')
        session._exit.wait(session.refresh_interval)

    # Last frame stays in the scrollback
    try:
        session.refresh(overwrite=False)
    except Exception:
        logger.exception('Final render failed')


# ============================================================================
# Terminal resize handling
# ============================================================================

class ResizeWatcher:
    """Waits for SIGWINCH (or a poll timeout) and rebuilds the session's fill buffer.

    The signal handler only sets a flag and writes a byte to a self-pipe; the
    geometry query and the locking happen on the watcher thread.
    """

    def __init__(self, session: Session, watch_interval: Optional[float] = 0.5):
        self._session = session
        self._watch_interval = watch_interval
        self._pending = False
        self._read_fd: Optional[int] = None
        self._write_fd: Optional[int] = None
        self._thread: Optional[threading.Thread] = None
        self._prev_handler: Any = None
        self._handler_installed = False

    @property
    def handler_installed(self) -> bool:
        return self._handler_installed

    def start(self, install_handler: bool = True):
        self._read_fd, self._write_fd = os.pipe()
        # Make both ends non-blocking
        for fd in (self._read_fd, self._write_fd):
            flags = fcntl.fcntl(fd, fcntl.F_GETFL)
            fcntl.fcntl(fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)

        if install_handler:
            self._install_handler()

        self._thread = threading.Thread(target=self._run, name='print-threads-resize-watcher', daemon=True)
        self._thread.start()

    def stop(self):
        """Wake the watcher, wait for it to exit and release the pipe"""
        self._wake()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

        self._uninstall_handler()

        read_fd, write_fd = self._read_fd, self._write_fd
        self._read_fd = self._write_fd = None
        for fd in (read_fd, write_fd):
            if fd is not None:
                os.close(fd)

    def notify(self):
        """Flag a pending resize; safe to call from a signal handler"""
        self._pending = True
        self._wake()

    def _wake(self):
        fd = self._write_fd
        if fd is None:
            return
        try:
            os.write(fd, b'\x00')
        except OSError:
            # Pipe might be full, that's ok - a wakeup is already queued
            pass

    def _handle_sigwinch(self, signum, frame):
        self.notify()

        prev = self._prev_handler
        if callable(prev):
            try:
                prev(signum, frame)
            except Exception:
                logger.exception('Chained SIGWINCH handler failed')

    def _install_handler(self):
        if not hasattr(signal, 'SIGWINCH'):
            return
        if threading.current_thread() is not threading.main_thread():
            logger.warning('[Print threads Start Warning] SIGWINCH handler not installed outside the main thread')
            return
        self._prev_handler = signal.getsignal(signal.SIGWINCH)
        signal.signal(signal.SIGWINCH, self._handle_sigwinch)
        self._handler_installed = True

    def _uninstall_handler(self):
        if not self._handler_installed:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.warning('[Print threads Finish Warning] SIGWINCH handler not restored outside the main thread')
            return
        prev = self._prev_handler if self._prev_handler is not None else signal.SIG_DFL
        signal.signal(signal.SIGWINCH, prev)
        self._prev_handler = None
        self._handler_installed = False

    def _wait(self, timeout: Optional[float]):
        read_fd = self._read_fd
        if read_fd is None:
            return
        select.select([read_fd], [], [], timeout)

        # Drain the pipe
        try:
            while os.read(read_fd, 1024):
                pass
        except OSError:
            pass  # Pipe is empty now

    def _run(self):
        session = self._session
        error_count = 0

        while not session._exit.is_set():
            try:
                if not self._pending:
                    self._wait(self._watch_interval)
                if session._exit.is_set():
                    break
                if not self._pending and self._watch_interval is None:
                    continue  # spurious wakeup

                self._pending = False
                session.check_geometry()
                error_count = 0
            except Exception:
                self._pending = True
                error_count += 1
                if error_count <= _MAX_LOOP_ERRORS:
                    logger.exception('Terminal resize watcher failed (error %d/%d)', error_count, _MAX_LOOP_ERRORS)
                elif error_count == _MAX_LOOP_ERRORS + 1:
                    logger.error('Terminal resize watcher: suppressing further errors')
                # Keep the previous fill buffer and retry after a back-off
                session._exit.wait(1)


# ============================================================================
# Termination signals
# ============================================================================

def _termination_signals() -> List[int]:
    names = ('SIGINT', 'SIGTERM', 'SIGHUP', 'SIGQUIT')
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


def _restore_terminal(signum, frame):
    session = _active_session
    if session is not None:
        session._restore_cursor()

    prev = _prev_termination_handlers.get(signum)
    if callable(prev):
        prev(signum, frame)
    elif prev is None or prev == signal.SIG_DFL:
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)


def _install_termination_handlers():
    if threading.current_thread() is not threading.main_thread():
        logger.warning('[Print threads Start Warning] Termination handlers not installed outside the main thread')
        return
    for signum in _termination_signals():
        _prev_termination_handlers[signum] = signal.getsignal(signum)
        signal.signal(signum, _restore_terminal)


def _uninstall_termination_handlers():
    if not _prev_termination_handlers:
        return
    if threading.current_thread() is not threading.main_thread():
        logger.warning('[Print threads Finish Warning] Termination handlers not restored outside the main thread')
        return
    for signum, prev in list(_prev_termination_handlers.items()):
        signal.signal(signum, prev if prev is not None else signal.SIG_DFL)
    _prev_termination_handlers.clear()


# ============================================================================
# Module-level API
# ============================================================================

def active_session() -> Optional[Session]:
    """The session currently running in this process, if any"""
    return _active_session


def _resolve(session: Optional[Session], component: str) -> Session:
    if session is None:
        session = _active_session
    if session is None:
        raise ConfigurationError(component, 'Printing configuration is NULL')
    return session


def init(lock: Any,
         refresh_rate: int,
         bar_length: Optional[int] = None,
         head_char: str = '>',
         body_char: str = '=',
         **kwargs) -> Session:
    """Create a session; see `Session` for the keyword arguments"""
    return Session(lock, refresh_rate, bar_length, head_char, body_char, **kwargs)


def start(session: Session):
    _resolve(session, 'Start').start()


def finish(session: Optional[Session] = None):
    """Finish `session`, or the active one; does nothing when neither exists"""
    if session is None:
        session = _active_session
    if session is not None:
        session.finish()


def add_source(handle: Any, progress: Any, label: Optional[str] = None, session: Optional[Session] = None) -> int:
    return _resolve(session, 'Configuration').add_source(handle, progress, label)


def remove_source(session: Optional[Session] = None):
    _resolve(session, 'Configuration').remove_source()


def print_message(fmt: str, *args, session: Optional[Session] = None):
    _resolve(session, 'Print').print_message(fmt, *args)


def monitor(handles: Sequence[Any],
            progress_refs: Sequence[Any],
            lock: Any,
            refresh_rate: int,
            bar_length: Optional[int] = None,
            head_char: str = '>',
            body_char: str = '=',
            **kwargs) -> Session:
    """
    Start monitoring a fixed set of workers in one call.

    Example:
        session = monitor(threads, percentages, lock, 1, 50)
        for t in threads:
            t.join()
        session.finish()
    """
    if len(handles) != len(progress_refs):
        raise ConfigurationError('Init', f'{len(handles)} handles but {len(progress_refs)} progress references')

    session = Session(lock, refresh_rate, bar_length, head_char, body_char, **kwargs)
    session.add_sources(zip(handles, progress_refs))
    session.start()
    return session
