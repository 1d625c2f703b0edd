'''Time sources for the ledger.

The ledger never waits for anything; deadlines are plain comparisons of the
round start with the current time obtained from a clock at call time. Times
are whole UNIX seconds.
'''

import abc
import time


class Clock(metaclass=abc.ABCMeta):
    '''A source of the current time. Base class, not intended for direct use.'''
    @abc.abstractmethod
    def now(self) -> int:
        '''Return the current time in whole UNIX seconds.

        :raises NotImplementedError:
        '''
        raise NotImplementedError


class SystemClock(Clock):
    '''The wall clock of the host, truncated to whole seconds.'''
    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    '''A clock that only moves when told to.

    Useful for tests and for tools that replay operations at given times.
    Time never moves backwards.

    :param start: Initial UNIX timestamp.
    '''
    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f'invalid start timestamp: {start}')
        self.timestamp = int(start)

    def now(self) -> int:
        return self.timestamp

    def advance(self, seconds: int) -> int:
        '''Move the clock forward and return the new time.'''
        if seconds < 0:
            raise ValueError(f'cannot move clock backwards by {-seconds} s')
        self.timestamp += int(seconds)
        return self.timestamp

    def set(self, timestamp: int) -> None:
        '''Move the clock to the given time, which must not be in the past.'''
        if timestamp < self.timestamp:
            raise ValueError(
                f'cannot move clock backwards from {self.timestamp}'
                f' to {timestamp}'
            )
        self.timestamp = int(timestamp)
