##############################################################################
#
# Copyright (c) Zope Foundation and Contributors.
# All Rights Reserved.
#
# This software is subject to the provisions of the Zope Public License,
# Version 2.1 (ZPL).  A copy of the ZPL should accompany this distribution.
# THIS SOFTWARE IS PROVIDED "AS IS" AND ANY AND ALL EXPRESS OR IMPLIED
# WARRANTIES ARE DISCLAIMED, INCLUDING, BUT NOT LIMITED TO, THE IMPLIED
# WARRANTIES OF TITLE, MERCHANTABILITY, AGAINST INFRINGEMENT, AND FITNESS
# FOR A PARTICULAR PURPOSE
#
##############################################################################
import struct
import time
from binascii import hexlify
from threading import RLock  # noqa: F401 re-exported for backends

from persistent.timestamp import TimeStamp


__all__ = ['z64',
           'p64',
           'u64',
           'newSerial',
           'serial_repr',
           'serial_time',
           'chunk_count',
           'chunk_length',
           'split_chunks',
           'check_precondition',
           'locked',
           ]

z64 = b'\0' * 8

_SERIAL_STRUCT = struct.Struct('>Q')
_SERIAL_PACK = _SERIAL_STRUCT.pack
_SERIAL_UNPACK = _SERIAL_STRUCT.unpack


def p64(v):
    """Pack an integer into a 8-byte string."""
    try:
        return _SERIAL_PACK(v)
    except struct.error as e:
        raise ValueError(*(e.args + (v,)))


def u64(v):
    """Unpack an 8-byte string into a 64-bit integer."""
    try:
        return _SERIAL_UNPACK(v)[0]
    except struct.error as e:
        raise ValueError(*(e.args + (v,)))


def newSerial(old):
    """Return a new write serial, strictly later than `old` if given."""
    t = time.time()
    ts = TimeStamp(*time.gmtime(t)[:5]+(t % 60,))
    if old is not None:
        ts = ts.laterThan(TimeStamp(old))
    return ts.raw()


def serial_time(serial):
    """Return the POSIX time encoded in a serial."""
    return TimeStamp(serial).timeTime()


def serial_repr(serial):
    if isinstance(serial, bytes) and len(serial) == 8:
        return '0x' + hexlify(serial).decode('ascii')
    return repr(serial)


def chunk_count(total_size, chunk_size):
    """Number of chunks needed to hold total_size bytes."""
    return (total_size + chunk_size - 1) // chunk_size


def chunk_length(sequence, total_size, chunk_size):
    """Expected payload length of chunk `sequence` of a blob."""
    start = sequence * chunk_size
    return max(0, min(chunk_size, total_size - start))


def split_chunks(data, chunk_size):
    """Iterate over (sequence, payload) pairs for data.

    Empty data produces no chunks.
    """
    view = memoryview(data).cast('B')
    for sequence, start in enumerate(range(0, len(view), chunk_size)):
        yield sequence, bytes(view[start:start+chunk_size])


def check_precondition(precondition):
    if not precondition():
        raise AssertionError(
            "Failed precondition: ",
            precondition.__doc__.strip())


class Locked(object):

    def __init__(self, func, inst=None, class_=None, preconditions=()):
        self.__func__ = func
        self.__self__ = inst
        self.__self_class__ = class_
        self.preconditions = preconditions

    def __get__(self, inst, class_):
        return self.__class__(
            self.__func__, inst, class_, self.preconditions)

    def __call__(self, *args, **kw):
        inst = self.__self__
        if inst is None:
            inst = args[0]
        func = self.__func__.__get__(self.__self__, self.__self_class__)

        with inst._lock:
            for precondition in self.preconditions:
                if not precondition(inst):
                    failed = getattr(inst, 'preconditionFailed', None)
                    if failed is not None:
                        failed(precondition)
                    raise AssertionError(
                        "Failed precondition: ",
                        precondition.__doc__.strip())

            return func(*args, **kw)


class locked(object):
    """Run a method while holding the instance's ``_lock``.

    Used bare (``@locked``) or with preconditions (``@locked(opened)``).
    Preconditions are checked under the lock. An instance may define
    ``preconditionFailed(precondition)`` to raise its own error instead
    of the default AssertionError.
    """

    def __init__(self, *preconditions):
        self.preconditions = preconditions

    def __get__(self, inst, class_):
        # We didn't get any preconditions, so we have a single "precondition",
        # which is actually the function to call.
        func, = self.preconditions
        return Locked(func, inst, class_)

    def __call__(self, func):
        return Locked(func, preconditions=self.preconditions)
