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
"""Chunked blob store

Blobs are split into fixed-size chunks stored under (id, sequence) keys
of a backend, plus one metadata record per blob.  The metadata record is
only written once every chunk of a write has been stored, so a blob
becomes visible only after its first complete write.
"""

import logging
import threading

import zope.interface

import chunkstore.interfaces
from chunkstore import utils
from chunkstore.blob import BlobHandle
from chunkstore.blob import Chunk
from chunkstore.blob import MetadataRecord
from chunkstore.blob import ReadHandle
from chunkstore.blob import WriteHandle
from chunkstore.exceptions import BackendError
from chunkstore.exceptions import CorruptedBlobError
from chunkstore.exceptions import InvalidArgumentError
from chunkstore.exceptions import NotFoundError


logger = logging.getLogger('chunkstore.ChunkedBlobStore')

# 350 KiB
DEFAULT_CHUNK_SIZE = 358400


def _check_id(id):
    if not isinstance(id, str) or not id:
        raise InvalidArgumentError("blob ids must be non-empty strings", id)


def _check_size(name, value, minimum):
    # bool is an int subclass, but never a meaningful size
    if (not isinstance(value, int) or isinstance(value, bool)
            or value < minimum):
        raise InvalidArgumentError(
            "%s must be an integer >= %d" % (name, minimum), value)


@zope.interface.implementer(chunkstore.interfaces.IChunkedBlobStore)
class ChunkedBlobStore(object):
    """Store of named binary objects over an IBackend.

    The store keeps no state of its own besides the last serial it
    handed out; handles carry their own cursors.
    """

    def __init__(self, backend, chunk_size=DEFAULT_CHUNK_SIZE):
        _check_size('chunk_size', chunk_size, 1)
        self.backend = backend
        self.defaultChunkSize = chunk_size
        self._serial = None
        self._serial_lock = threading.Lock()

    def __repr__(self):
        return '<%s over %s>' % (self.__class__.__name__,
                                 self.backend.getName())

    def _newSerial(self):
        with self._serial_lock:
            self._serial = utils.newSerial(self._serial)
            return self._serial

    # reading

    def openForRead(self, id):
        _check_id(id)
        record = self.backend.loadMetadata(id)
        return ReadHandle(self, record)

    def _loadChunk(self, handle, sequence):
        record = handle.record
        try:
            chunk = self.backend.loadChunk(record.blobId, sequence)
        except NotFoundError:
            raise self._corrupted(record, sequence, "chunk is missing")

        if chunk.serial != record.serial:
            raise self._corrupted(
                record, sequence,
                "chunk serial %s doesn't match committed serial %s" % (
                    utils.serial_repr(chunk.serial),
                    utils.serial_repr(record.serial)))

        expected = utils.chunk_length(
            sequence, record.totalSize, record.chunkSize)
        if len(chunk.payload) != expected:
            raise self._corrupted(
                record, sequence,
                "chunk holds %d bytes, expected %d" % (
                    len(chunk.payload), expected))

        return chunk.payload

    def _corrupted(self, record, sequence, reason):
        logger.warning("Blob %r is corrupted at chunk %d: %s",
                       record.blobId, sequence, reason)
        return CorruptedBlobError(record.blobId, sequence, reason)

    def read(self, handle, maxBytes):
        handle.checkOpen()
        _check_size('maxBytes', maxBytes, 0)

        record = handle.record
        total = record.totalSize
        chunk_size = record.chunkSize
        end = min(total, handle.position + maxBytes)

        pieces = []
        while handle.position < end:
            sequence, offset = divmod(handle.position, chunk_size)
            buffered = handle.buffered
            if buffered is None or buffered[0] != sequence:
                buffered = handle.buffered = (
                    sequence, self._loadChunk(handle, sequence))
            payload = buffered[1]
            piece = payload[offset:offset + (end - handle.position)]
            pieces.append(piece)
            handle.position += len(piece)

        return b''.join(pieces), handle.position >= total

    # writing

    def openForWrite(self, id, chunkSize=None):
        _check_id(id)
        if chunkSize is None:
            chunkSize = self.defaultChunkSize
        _check_size('chunkSize', chunkSize, 1)
        return WriteHandle(self, id, chunkSize)

    def write(self, handle, data, extension=None):
        handle.checkOpen()
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError("blob data must be bytes", type(data))
        # Sizes are in bytes whatever the item format of a view
        data = memoryview(data).cast('B')

        id = handle.id
        chunk_size = handle.chunkSize
        serial = self._newSerial()
        backend = self.backend

        count = 0
        for sequence, payload in utils.split_chunks(data, chunk_size):
            backend.storeChunk(Chunk(id, sequence, serial, payload))
            count += 1

        record = MetadataRecord(id, len(data), chunk_size,
                                utils.serial_time(serial), serial, extension)
        backend.storeMetadata(record)

        # Drop chunks of earlier, larger data.  The new data are already
        # committed, so a failure here only leaves unreachable chunks.
        try:
            backend.deleteChunks(id, count)
        except BackendError:
            logger.warning("Couldn't drop stale chunks of blob %r",
                           id, exc_info=True)

        logger.debug("Stored blob %r: %d bytes in %d chunks, serial %s",
                     id, record.totalSize, count, utils.serial_repr(serial))
        handle.blob = BlobHandle(record)
        return handle.blob

    # lifecycle

    def close(self, handle):
        if handle.closed:
            return
        handle._release()

    def delete(self, id):
        _check_id(id)
        self.backend.deleteMetadata(id)
        self.backend.deleteChunks(id, 0)
        logger.debug("Deleted blob %r", id)

    def exists(self, id):
        _check_id(id)
        try:
            self.backend.loadMetadata(id)
        except NotFoundError:
            return False
        return True

    def stat(self, id):
        _check_id(id)
        return BlobHandle(self.backend.loadMetadata(id))

    def listBlobs(self):
        for record in self.backend.listMetadata():
            yield BlobHandle(record)

    def putBlob(self, id, data, chunkSize=None, extension=None):
        with self.openForWrite(id, chunkSize) as handle:
            return self.write(handle, data, extension)

    def getBlob(self, id):
        with self.openForRead(id) as handle:
            data, _ = self.read(handle, handle.record.totalSize)
        return data

    def release(self):
        self.backend.close()
