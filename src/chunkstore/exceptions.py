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
"""Chunk store exceptions
"""


def _recon(class_, state):
    err = class_.__new__(class_)
    err.__setstate__(state)
    return err


_recon.__no_side_effects__ = True


class ChunkStoreError(Exception):
    """Chunked blob store error."""

    def __reduce__(self):
        # Copy extra data from internal structures
        state = self.__dict__.copy()
        state['args'] = self.args

        return (_recon, (self.__class__, state))

    def __setstate__(self, state):
        # PyPy keeps 'args' out of the instance __dict__, so restore it
        # explicitly or the unpickled exception loses its message.
        args = state.pop('args', ())
        self.__dict__.update(state)
        self.args = args


class NotFoundError(ChunkStoreError, KeyError):
    """No blob is stored under the given id."""

    def __str__(self):
        if not self.args:
            return 'blob not found'
        return 'blob not found: %r' % (self.args[0],)

    @property
    def blob_id(self):
        return self.args[0] if self.args else None


class InvalidArgumentError(ChunkStoreError, ValueError):
    """An argument was out of range or of the wrong type."""


class HandleStateError(ChunkStoreError):
    """A handle isn't in the required state for an operation."""


class ReadAfterCloseError(HandleStateError):
    """An operation was attempted on a closed handle.

    Raised for reads, writes and seeks alike; closing is the only
    operation a closed handle accepts.
    """


class BackendError(ChunkStoreError):
    """Base class for backend based exceptions."""


class BackendUnavailableError(BackendError):
    """The backend could not be reached or failed to complete a call.

    Instance attributes:
      backend : string
        the name of the backend that failed
      reason : string
        a human-readable explanation, usually the underlying error
    """

    def __init__(self, backend=None, reason=None):
        ChunkStoreError.__init__(self, backend, reason)
        self.backend = backend
        self.reason = reason

    def __str__(self):
        if self.backend is None:
            return self.reason or 'backend unavailable'
        if self.reason:
            return "backend %s unavailable: %s" % (self.backend, self.reason)
        return "backend %s unavailable" % self.backend


class ReadOnlyError(BackendError):
    """Unable to modify a read-only backend."""


class CorruptedBlobError(ChunkStoreError):
    """Stored chunks don't agree with the blob's metadata record.

    This is the state a write leaves behind when the backend fails after
    some chunks were replaced but before the metadata record was updated.

    Instance attributes:
      blob_id : string
        the id of the damaged blob
      sequence : int
        the sequence number of the offending chunk
      reason : string
        what didn't match
    """

    def __init__(self, blob_id, sequence, reason):
        ChunkStoreError.__init__(self, blob_id, sequence, reason)
        self.blob_id = blob_id
        self.sequence = sequence
        self.reason = reason

    def __str__(self):
        return "blob %r is corrupted at chunk %d: %s" % (
            self.blob_id, self.sequence, self.reason)
