"""Examples demonstrating stacked thread progress bars"""

import random
import threading
import time

import print_threads
from print_threads import Percentage, Session


def example_0():
    print("=== Example 0: Five workers with a fixed bar length and interleaved messages ===")

    lock = threading.Lock()
    session = print_threads.init(lock, 1, 50, '>', '=')

    def worker(ident, progress, max_count, delay):
        for i in range(max_count + 1):
            with lock:
                progress.value = i * 100 // max_count
            session.print_message("Thread %d: %d", ident, i)
            time.sleep(delay)
        session.print_message("Thread %d finished!", ident)

    threads = []
    for ident in range(5):
        progress = Percentage()
        t = threading.Thread(target=worker, args=(ident, progress, 100, 0.01))
        t.start()
        session.add_source(t, progress)
        threads.append(t)

    print_threads.start(session)
    for t in threads:
        t.join()
    print_threads.finish(session)


def example_1():
    print("=== Example 1: Bars sized to the terminal, resize the window while it runs ===")

    lock = threading.Lock()
    progress = [Percentage() for _ in range(4)]

    def worker(value):
        while value.value < 100:
            time.sleep(random.uniform(0.05, 0.2))
            with lock:
                value.value = min(100, value.value + random.randint(1, 7))

    threads = [threading.Thread(target=worker, args=(p,)) for p in progress]
    for t in threads:
        t.start()

    with print_threads.monitor(threads, progress, lock, 50, head_char='#', body_char='-'):
        for t in threads:
            t.join()


def example_2():
    print("=== Example 2: Workers joining and leaving, plain print() routed through the gate ===")

    lock = threading.Lock()
    with Session(lock, 20, 30, proxy_stdout=True) as session:
        for round_ in range(3):
            value = Percentage()
            session.add_source(f"job-{round_}", value, label=f"Job {round_}")
            for i in range(0, 101, 5):
                with lock:
                    value.value = i
                if i % 25 == 0:
                    print(f"Job {round_} reached {i}%")
                time.sleep(0.02)
            session.remove_source()


if __name__ == "__main__":
    import logging

    logging.basicConfig(level=logging.DEBUG)

    for i in range(0, 2 + 1):
        if i != 0:
            time.sleep(1)
        globals()[f"example_{i}"]()
