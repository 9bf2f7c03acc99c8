from contextlib import contextmanager
from queue import Empty, Full, LifoQueue


class Pool:
    # free list of reusable scratch objects, safe for concurrent use
    def __init__(self, factory, reset, max_idle=16):
        self.factory = factory
        self.reset = reset
        self.queue = LifoQueue(maxsize=max_idle)

    def acquire(self):
        # borrow an idle object or make a new one
        try:
            obj = self.queue.get_nowait()
        except Empty:
            return self.factory()
        self.reset(obj)
        return obj

    def release(self, obj):
        # hand an object back; dropped when the pool is full
        self.reset(obj)
        try:
            self.queue.put_nowait(obj)
        except Full:
            pass

    @contextmanager
    def borrow(self):
        obj = self.acquire()
        try:
            yield obj
        finally:
            self.release(obj)

    def idle(self):
        return self.queue.qsize()
