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
"""A simple in-memory mapping-based chunk store backend

This backend provides an example implementation of the backend
interface without distracting storage details.
"""

import BTrees.LOBTree
import BTrees.OOBTree
import zope.interface

import chunkstore.interfaces
from chunkstore import utils
from chunkstore.exceptions import BackendUnavailableError
from chunkstore.exceptions import NotFoundError


@zope.interface.implementer(chunkstore.interfaces.IBackend)
class MappingBackend(object):
    """In-memory backend implementation

    Each blob has its own BTree of chunks keyed by sequence number, so
    the trailing chunks of a blob can be dropped as a key range.  It's
    useful for testing and exploration where durability is unimportant.
    """

    def __init__(self, name='MappingBackend'):
        """Create a mapping backend

        The name parameter is used by the
        :meth:`~chunkstore.interfaces.IBackend.getName` method.
        """
        self.__name__ = name
        self._chunks = BTrees.OOBTree.OOBTree()    # {id -> {seq -> Chunk}}
        self._metadata = BTrees.OOBTree.OOBTree()  # {id -> MetadataRecord}
        self._lock = utils.RLock()
        self._opened = True

    ######################################################################
    # Preconditions:

    def opened(self):
        """The backend is open
        """
        return self._opened

    def preconditionFailed(self, precondition):
        raise BackendUnavailableError(self.__name__, "backend is closed")

    #
    ######################################################################

    # chunkstore.interfaces.IBackend
    @utils.locked
    def close(self):
        self._opened = False

    # chunkstore.interfaces.IBackend
    def getName(self):
        return self.__name__

    # chunkstore.interfaces.IBackend
    def isReadOnly(self):
        return False

    @utils.locked(opened)
    def __len__(self):
        return len(self._metadata)

    @utils.locked(opened)
    def getSize(self):
        size = 0
        for blob_chunks in self._chunks.values():
            for chunk in blob_chunks.values():
                size += len(chunk.payload)
        return size

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def loadChunk(self, blob_id, sequence):
        blob_chunks = self._chunks.get(blob_id)
        chunk = blob_chunks.get(sequence) if blob_chunks is not None else None
        if chunk is None:
            raise NotFoundError(blob_id, sequence)
        return chunk

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def storeChunk(self, chunk):
        blob_chunks = self._chunks.get(chunk.blobId)
        if blob_chunks is None:
            blob_chunks = BTrees.LOBTree.LOBTree()
            self._chunks[chunk.blobId] = blob_chunks
        blob_chunks[chunk.sequenceNumber] = chunk

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def deleteChunks(self, blob_id, start=0):
        blob_chunks = self._chunks.get(blob_id)
        if blob_chunks is None:
            return 0
        sequences = list(blob_chunks.keys(start))
        for sequence in sequences:
            del blob_chunks[sequence]
        if not blob_chunks:
            del self._chunks[blob_id]
        return len(sequences)

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def loadMetadata(self, blob_id):
        record = self._metadata.get(blob_id)
        if record is None:
            raise NotFoundError(blob_id)
        return record

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def storeMetadata(self, record):
        self._metadata[record.blobId] = record

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def deleteMetadata(self, blob_id):
        try:
            del self._metadata[blob_id]
        except KeyError:
            raise NotFoundError(blob_id)

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def listMetadata(self):
        # Copy, so callers may delete while iterating
        return iter(list(self._metadata.values()))
