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
"""Directory-based chunk store backend

Layout of a backend directory::

  .layout             layout marker
  .lock               held by the process that has the backend open
  tmp/                files being written
  3f/3fa2...e1/       one directory per blob, named from the sha256 of
                      the blob id and fanned out by its first byte
    meta.json         the metadata record
    0000000000000000.chunk
    0000000000000001.chunk
    ...

A chunk file holds the 8-byte serial of the write that stored it,
followed by the payload.  Every file is written to tmp/ and renamed
into place, so each key is replaced atomically.
"""

import errno
import hashlib
import json
import logging
import os
import tempfile

import zope.interface
from zc.lockfile import LockFile

import chunkstore.interfaces
from chunkstore import utils
from chunkstore.blob import Chunk
from chunkstore.blob import MetadataRecord
from chunkstore.exceptions import BackendUnavailableError
from chunkstore.exceptions import NotFoundError
from chunkstore.exceptions import ReadOnlyError


logger = logging.getLogger('chunkstore.FileBackend')

LAYOUT_MARKER = '.layout'
LAYOUT_NAME = 'sha256-fanout'
LOCK_NAME = '.lock'
META_NAME = 'meta.json'
CHUNK_SUFFIX = '.chunk'


def chunk_filename(sequence):
    return '%016x%s' % (sequence, CHUNK_SUFFIX)


def chunk_sequence(filename):
    """Return the sequence number of a chunk file name, or None."""
    if not filename.endswith(CHUNK_SUFFIX):
        return None
    try:
        return int(filename[:-len(CHUNK_SUFFIX)], 16)
    except ValueError:
        return None


@zope.interface.implementer(chunkstore.interfaces.IBackend)
class FileBackend(object):
    """Backend storing chunks and metadata as files under a directory."""

    def __init__(self, path, read_only=False, name=None):
        self.base_dir = os.path.abspath(path)
        self.temp_dir = os.path.join(self.base_dir, 'tmp')
        self.__name__ = name or self.base_dir
        self._is_read_only = read_only
        self._lock = utils.RLock()
        self._lock_file = None

        if read_only:
            if not os.path.isdir(self.base_dir):
                raise BackendUnavailableError(
                    self.__name__, "no backend directory at %s" % path)
            self._check_layout()
        else:
            self.create()
            self._lock_file = LockFile(
                os.path.join(self.base_dir, LOCK_NAME))
        self._opened = True

    def create(self):
        if not os.path.exists(self.base_dir):
            os.makedirs(self.base_dir)
            logger.info("Backend directory '%s' does not exist. "
                        "Created new directory.", self.base_dir)
        if not os.path.exists(self.temp_dir):
            os.makedirs(self.temp_dir)
            logger.info("Backend temporary directory '%s' does not exist. "
                        "Created new directory.", self.temp_dir)

        marker = os.path.join(self.base_dir, LAYOUT_MARKER)
        if not os.path.exists(marker):
            with open(marker, 'w') as layout_marker:
                layout_marker.write(LAYOUT_NAME)
        else:
            self._check_layout()

    def _check_layout(self):
        marker = os.path.join(self.base_dir, LAYOUT_MARKER)
        try:
            with open(marker, 'r') as layout_marker:
                layout = layout_marker.read().strip()
        except OSError as e:
            raise BackendUnavailableError(self.__name__, str(e))
        if layout != LAYOUT_NAME:
            raise ValueError(
                "Directory layout `%s` required for backend directory %s, "
                "but marker found for layout `%s`" %
                (LAYOUT_NAME, self.base_dir, layout))

    ######################################################################
    # Preconditions:

    def opened(self):
        """The backend is open
        """
        return self._opened

    def writable(self):
        """The backend is writable
        """
        return not self._is_read_only

    def preconditionFailed(self, precondition):
        if precondition is FileBackend.writable:
            raise ReadOnlyError(self.__name__)
        raise BackendUnavailableError(self.__name__, "backend is closed")

    #
    ######################################################################

    def getPathForBlob(self, blob_id):
        """Return the directory holding a blob's files."""
        digest = hashlib.sha256(blob_id.encode('utf-8')).hexdigest()
        return os.path.join(self.base_dir, digest[:2], digest)

    def _unavailable(self, error):
        return BackendUnavailableError(self.__name__, str(error))

    def _replace(self, data, target):
        """Write data to a temporary file and rename it to target."""
        fd, name = tempfile.mkstemp(suffix='.tmp', dir=self.temp_dir)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(name, target)
        except BaseException:
            if os.path.exists(name):
                os.remove(name)
            raise

    def _cleanup(self, path):
        # Remove a blob directory once it holds nothing.
        try:
            os.rmdir(path)
        except OSError as e:
            if e.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
                raise

    # chunkstore.interfaces.IBackend
    @utils.locked
    def close(self):
        if self._lock_file is not None:
            self._lock_file.close()
            self._lock_file = None
        self._opened = False

    # chunkstore.interfaces.IBackend
    def getName(self):
        return self.__name__

    # chunkstore.interfaces.IBackend
    def isReadOnly(self):
        return self._is_read_only

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def loadChunk(self, blob_id, sequence):
        path = os.path.join(self.getPathForBlob(blob_id),
                            chunk_filename(sequence))
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except FileNotFoundError:
            raise NotFoundError(blob_id, sequence)
        except OSError as e:
            raise self._unavailable(e)
        return Chunk(blob_id, sequence, data[:8], data[8:])

    # chunkstore.interfaces.IBackend
    @utils.locked(opened, writable)
    def storeChunk(self, chunk):
        path = self.getPathForBlob(chunk.blobId)
        try:
            os.makedirs(path, exist_ok=True)
            self._replace(chunk.serial + chunk.payload,
                          os.path.join(path,
                                       chunk_filename(chunk.sequenceNumber)))
        except OSError as e:
            raise self._unavailable(e)

    # chunkstore.interfaces.IBackend
    @utils.locked(opened, writable)
    def deleteChunks(self, blob_id, start=0):
        path = self.getPathForBlob(blob_id)
        removed = 0
        try:
            try:
                names = os.listdir(path)
            except FileNotFoundError:
                return 0
            for name in names:
                sequence = chunk_sequence(name)
                if sequence is not None and sequence >= start:
                    os.remove(os.path.join(path, name))
                    removed += 1
            self._cleanup(path)
        except OSError as e:
            raise self._unavailable(e)
        return removed

    def _readMetadata(self, blob_id, path):
        try:
            with open(os.path.join(path, META_NAME), 'rb') as f:
                raw = f.read()
        except FileNotFoundError:
            raise NotFoundError(blob_id)
        except OSError as e:
            raise self._unavailable(e)
        try:
            record = MetadataRecord.fromDict(json.loads(raw.decode('utf-8')))
        except (ValueError, KeyError, TypeError) as e:
            raise BackendUnavailableError(
                self.__name__,
                "unreadable metadata record in %s: %s" % (path, e))
        return record

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def loadMetadata(self, blob_id):
        record = self._readMetadata(blob_id, self.getPathForBlob(blob_id))
        if record.blobId != blob_id:
            # sha256 collision, or a hand-edited record
            raise NotFoundError(blob_id)
        return record

    # chunkstore.interfaces.IBackend
    @utils.locked(opened, writable)
    def storeMetadata(self, record):
        path = self.getPathForBlob(record.blobId)
        data = json.dumps(record.asDict(), sort_keys=True).encode('utf-8')
        try:
            os.makedirs(path, exist_ok=True)
            self._replace(data, os.path.join(path, META_NAME))
        except OSError as e:
            raise self._unavailable(e)

    # chunkstore.interfaces.IBackend
    @utils.locked(opened, writable)
    def deleteMetadata(self, blob_id):
        path = self.getPathForBlob(blob_id)
        # Refuse to remove another id's record.
        self.loadMetadata(blob_id)
        try:
            os.remove(os.path.join(path, META_NAME))
            self._cleanup(path)
        except FileNotFoundError:
            raise NotFoundError(blob_id)
        except OSError as e:
            raise self._unavailable(e)

    def listBlobPaths(self):
        """Iterate over the directories of all blobs.

        Paths are traversed in a stable order.
        """
        for fanout in sorted(os.listdir(self.base_dir)):
            fanout_path = os.path.join(self.base_dir, fanout)
            if len(fanout) != 2 or not os.path.isdir(fanout_path):
                continue
            for name in sorted(os.listdir(fanout_path)):
                path = os.path.join(fanout_path, name)
                if os.path.isdir(path):
                    yield path

    # chunkstore.interfaces.IBackend
    @utils.locked(opened)
    def listMetadata(self):
        records = []
        try:
            for path in self.listBlobPaths():
                try:
                    records.append(self._readMetadata(None, path))
                except NotFoundError:
                    # Chunks without a committed record
                    continue
        except OSError as e:
            raise self._unavailable(e)
        records.sort(key=lambda record: record.blobId)
        return iter(records)
