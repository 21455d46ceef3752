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
from zope.interface import Attribute
from zope.interface import Interface


class IBlobHandle(Interface):
    """Description of one stored blob.

    Blob handles are immutable snapshots of a metadata record.
    """

    id = Attribute("The blob id, an opaque non-empty string")

    totalSize = Attribute("Size of the blob data in bytes")

    chunkSize = Attribute("Size of every chunk but the last, in bytes")

    chunkCount = Attribute(
        """Number of chunks holding the data

        This is derived: ceil(totalSize / chunkSize), 0 for an empty blob.
        """)

    created = Attribute("POSIX time of the write that stored the data")

    serial = Attribute(
        """8-byte stamp of the write that stored the data

        Every chunk written by that write carries the same serial.
        """)

    extension = Attribute(
        "A mapping of caller-supplied metadata, possibly empty")


class IHandle(Interface):
    """An open, stateful reference to a blob.

    A handle is either OPEN or CLOSED.  Closing is terminal.  Handles
    are context managers that close themselves on exit.

    A handle is meant to be used by one caller at a time.
    """

    id = Attribute("The id of the blob the handle refers to")

    closed = Attribute("True once the handle has been closed")

    def close():
        """Release the handle's cursor and buffers.

        Closing a closed handle is a no-op.
        """


class IReadHandle(IHandle):
    """A cursor over a committed blob."""

    blob = Attribute("The IBlobHandle read through this handle")

    def read(size=-1):
        """Read and return up to size bytes.

        A negative size reads to the end of the blob.  An empty result
        means end of data.
        """

    def seek(offset, whence=0):
        """Move the cursor and return the new absolute position.

        whence works as for files: 0 from the start, 1 relative to the
        current position, 2 relative to the end.  Positions beyond the
        end are clamped to the end.
        """

    def tell():
        """Return the cursor position."""


class IWriteHandle(IHandle):
    """A writer that replaces a blob's data."""

    chunkSize = Attribute("The chunk size used by writes")

    blob = Attribute(
        "The IBlobHandle produced by the last successful write, or None")

    def write(data, extension=None):
        """Replace the blob's data with data.

        See IChunkedBlobStore.write.
        """


class IChunkedBlobStore(Interface):
    """Storage of named binary objects split into fixed-size chunks."""

    backend = Attribute("The IBackend that holds chunks and metadata")

    defaultChunkSize = Attribute(
        "Chunk size used when openForWrite isn't given one")

    def openForRead(id):
        """Open a blob for reading.

        Returns an IReadHandle positioned at offset 0.

        NotFoundError is raised if there is no metadata record for id.
        """

    def read(handle, maxBytes):
        """Read up to maxBytes from a read handle.

        Returns a (data, isEOF) pair.  Chunks are fetched and
        concatenated as the read crosses chunk boundaries.  isEOF is
        true once the cursor has consumed all of the blob.  Reading past
        the end returns (b'', True).

        ReadAfterCloseError is raised if the handle is closed.
        CorruptedBlobError is raised if a chunk is missing or doesn't
        belong to the committed data.
        """

    def openForWrite(id, chunkSize=None):
        """Open a blob for writing.

        No metadata record is created until a write succeeds.

        InvalidArgumentError is raised if chunkSize isn't a positive
        integer or id isn't a non-empty string.
        """

    def write(handle, data, extension=None):
        """Replace the whole blob with data.

        The data are split into chunkSize chunks which are stored in
        sequence order.  When all chunks are stored the metadata record
        is upserted and chunks left over from larger earlier data are
        dropped.

        This is not atomic.  If the backend fails part way, the previous
        metadata record is left in place, but some of its chunks may
        already have been replaced; subsequent reads of the blob raise
        CorruptedBlobError until it is written again or deleted.

        BackendUnavailableError from the backend is propagated.
        """

    def close(handle):
        """Close a handle.  Closing twice is a no-op."""

    def delete(id):
        """Remove a blob's metadata record and all of its chunks.

        NotFoundError is raised if the blob doesn't exist.
        """

    def exists(id):
        """Return whether a blob is stored under id."""

    def stat(id):
        """Return the IBlobHandle for id, raising NotFoundError."""

    def listBlobs():
        """Iterate over the IBlobHandles of all blobs, ordered by id."""

    def putBlob(id, data, chunkSize=None, extension=None):
        """Store data under id in one call and return its IBlobHandle."""

    def getBlob(id):
        """Return all of a blob's data."""

    def release():
        """Close the backend."""


class IBackend(Interface):
    """Key-value storage for chunks and metadata records.

    Each call must be atomic for the key it touches.  All methods raise
    BackendUnavailableError when the backend is closed or its medium
    fails.
    """

    def getName():
        """The name of the backend, used in messages."""

    def isReadOnly():
        """Return whether the backend refuses changes."""

    def loadChunk(blob_id, sequence):
        """Return the Chunk stored under (blob_id, sequence).

        NotFoundError is raised if there is no such chunk.
        """

    def storeChunk(chunk):
        """Store a Chunk, replacing any chunk with the same key."""

    def deleteChunks(blob_id, start=0):
        """Remove every chunk of blob_id with a sequence >= start."""

    def loadMetadata(blob_id):
        """Return the MetadataRecord of blob_id.

        NotFoundError is raised if there is no record.
        """

    def storeMetadata(record):
        """Store a MetadataRecord, replacing any previous record."""

    def deleteMetadata(blob_id):
        """Remove the metadata record of blob_id.

        NotFoundError is raised if there is no record.
        """

    def listMetadata():
        """Iterate over all metadata records, ordered by blob id."""

    def close():
        """Close the backend.  Later calls fail."""
