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
"""Blob records and handles
"""

import zope.interface

import chunkstore.interfaces
from chunkstore import utils
from chunkstore.exceptions import InvalidArgumentError
from chunkstore.exceptions import ReadAfterCloseError


OPEN = 'open'
CLOSED = 'closed'


class Chunk(object):
    """One stored fragment of a blob."""

    __slots__ = ('blobId', 'sequenceNumber', 'serial', 'payload')

    def __init__(self, blobId, sequenceNumber, serial, payload):
        self.blobId = blobId
        self.sequenceNumber = sequenceNumber
        self.serial = serial
        self.payload = payload

    @property
    def key(self):
        return (self.blobId, self.sequenceNumber)

    def __eq__(self, other):
        if not isinstance(other, Chunk):
            return NotImplemented
        return (self.key, self.serial, self.payload) == (
            other.key, other.serial, other.payload)

    __hash__ = None

    def __repr__(self):
        return '<Chunk %r #%d serial=%s len=%d>' % (
            self.blobId, self.sequenceNumber,
            utils.serial_repr(self.serial), len(self.payload))


class MetadataRecord(object):
    """The per-blob record kept by a backend."""

    def __init__(self, blobId, totalSize, chunkSize, createdAt, serial,
                 extension=None):
        self.blobId = blobId
        self.totalSize = totalSize
        self.chunkSize = chunkSize
        self.createdAt = createdAt
        self.serial = serial
        self.extension = dict(extension or ())

    @property
    def chunkCount(self):
        return utils.chunk_count(self.totalSize, self.chunkSize)

    def asDict(self):
        """Return a JSON-compatible representation."""
        return dict(
            id=self.blobId,
            size=self.totalSize,
            chunk_size=self.chunkSize,
            created=self.createdAt,
            serial=utils.u64(self.serial),
            extension=self.extension,
        )

    @classmethod
    def fromDict(cls, data):
        return cls(data['id'], data['size'], data['chunk_size'],
                   data['created'], utils.p64(data['serial']),
                   data.get('extension'))

    def __eq__(self, other):
        if not isinstance(other, MetadataRecord):
            return NotImplemented
        return self.asDict() == other.asDict()

    __hash__ = None

    def __repr__(self):
        return '<MetadataRecord %r size=%d chunk_size=%d serial=%s>' % (
            self.blobId, self.totalSize, self.chunkSize,
            utils.serial_repr(self.serial))


@zope.interface.implementer(chunkstore.interfaces.IBlobHandle)
class BlobHandle(object):
    """Read-only view of a metadata record."""

    def __init__(self, record):
        self._record = record

    id = property(lambda self: self._record.blobId)
    totalSize = property(lambda self: self._record.totalSize)
    chunkSize = property(lambda self: self._record.chunkSize)
    chunkCount = property(lambda self: self._record.chunkCount)
    created = property(lambda self: self._record.createdAt)
    serial = property(lambda self: self._record.serial)
    extension = property(lambda self: dict(self._record.extension))

    def __repr__(self):
        return '<BlobHandle %r size=%d chunks=%d>' % (
            self.id, self.totalSize, self.chunkCount)


class Handle(object):
    """Base class for read and write handles."""

    state = OPEN

    def __init__(self, store, id):
        self._store = store
        self.id = id

    @property
    def closed(self):
        return self.state == CLOSED

    def checkOpen(self):
        if self.state != OPEN:
            raise ReadAfterCloseError(
                "%s for %r is closed" % (self.__class__.__name__, self.id))

    def close(self):
        self._store.close(self)

    def _release(self):
        # Called by the store
        self.state = CLOSED

    def __enter__(self):
        return self

    def __exit__(self, *ignored):
        self.close()

    def __repr__(self):
        return '<%s %r %s>' % (self.__class__.__name__, self.id, self.state)


@zope.interface.implementer(chunkstore.interfaces.IReadHandle)
class ReadHandle(Handle):
    """Cursor over a committed blob.

    The handle buffers the chunk the cursor is in, so sequential reads
    fetch each chunk from the backend once.
    """

    def __init__(self, store, record):
        Handle.__init__(self, store, record.blobId)
        self.record = record
        self.blob = BlobHandle(record)
        self.position = 0
        self.buffered = None    # (sequence, payload)

    def read(self, size=-1):
        self.checkOpen()
        if size is None or size < 0:
            size = max(0, self.record.totalSize - self.position)
        data, eof = self._store.read(self, size)
        return data

    def seek(self, offset, whence=0):
        self.checkOpen()
        if whence == 0:
            position = offset
        elif whence == 1:
            position = self.position + offset
        elif whence == 2:
            position = self.record.totalSize + offset
        else:
            raise InvalidArgumentError("invalid whence", whence)
        if position < 0:
            raise InvalidArgumentError("negative seek position", position)
        self.position = min(position, self.record.totalSize)
        return self.position

    def tell(self):
        self.checkOpen()
        return self.position

    def _release(self):
        Handle._release(self)
        self.buffered = None


@zope.interface.implementer(chunkstore.interfaces.IWriteHandle)
class WriteHandle(Handle):
    """Writer replacing a blob's data."""

    blob = None

    def __init__(self, store, id, chunkSize):
        Handle.__init__(self, store, id)
        self.chunkSize = chunkSize

    def write(self, data, extension=None):
        return self._store.write(self, data, extension)
