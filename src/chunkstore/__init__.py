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

from chunkstore.ChunkedBlobStore import DEFAULT_CHUNK_SIZE
from chunkstore.ChunkedBlobStore import ChunkedBlobStore


def mappingStore(chunk_size=DEFAULT_CHUNK_SIZE, name='MappingBackend'):
    """Return a store over a fresh in-memory backend."""
    from chunkstore.MappingBackend import MappingBackend
    return ChunkedBlobStore(MappingBackend(name), chunk_size)


def fileStore(path, chunk_size=DEFAULT_CHUNK_SIZE, read_only=False):
    """Return a store over a backend directory, creating it if needed."""
    from chunkstore.FileBackend import FileBackend
    return ChunkedBlobStore(FileBackend(path, read_only=read_only),
                            chunk_size)
