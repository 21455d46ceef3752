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
"""Open chunk stores and backends from a configuration."""
import os
from io import StringIO

import ZConfig

import chunkstore


store_schema_path = os.path.join(chunkstore.__path__[0], "config.xml")
_store_schema = None

backend_schema_path = os.path.join(chunkstore.__path__[0], "backend.xml")
_backend_schema = None


def getStoreSchema():
    global _store_schema
    if _store_schema is None:
        _store_schema = ZConfig.loadSchema(store_schema_path)
    return _store_schema


def getBackendSchema():
    global _backend_schema
    if _backend_schema is None:
        _backend_schema = ZConfig.loadSchema(backend_schema_path)
    return _backend_schema


def storeFromString(s):
    """Create a chunk store from a configuration string.

    The string must contain a ``chunkstore`` section holding exactly one
    backend section::

      <chunkstore>
        chunk-size 64KB
        <filebackend>
          path /var/lib/blobs
        </filebackend>
      </chunkstore>
    """
    return storeFromFile(StringIO(s))


def storeFromFile(f):
    """Create a chunk store from a file object that provides configuration.

    See :func:`storeFromString`.
    """
    config, handle = ZConfig.loadConfigFile(getStoreSchema(), f)
    return storeFromConfig(config.store)


def storeFromURL(url):
    """Create a chunk store from a URL (or file name) providing configuration.

    See :func:`storeFromString`.
    """
    config, handler = ZConfig.loadConfig(getStoreSchema(), url)
    return storeFromConfig(config.store)


def storeFromConfig(section):
    return section.open()


def backendFromString(s):
    """Create a backend from a backend-configuration string.
    """
    return backendFromFile(StringIO(s))


def backendFromFile(f):
    """Create a backend from a file object providing backend-configuration.
    """
    config, handle = ZConfig.loadConfigFile(getBackendSchema(), f)
    return backendFromConfig(config.backend)


def backendFromURL(url):
    """\
    Create a backend from a URL (or file name) providing backend-configuration.
    """
    config, handler = ZConfig.loadConfig(getBackendSchema(), url)
    return backendFromConfig(config.backend)


def backendFromConfig(section):
    return section.open()


class BaseConfig(object):
    """Object representing a configured backend or store.

    Methods:

    open() -- open and return the configured object

    Attributes:

    name   -- name of the section

    """

    def __init__(self, config):
        self.config = config
        self.name = config.getSectionName()

    def open(self):
        """Open and return the configured object."""
        raise NotImplementedError


class ChunkStore(BaseConfig):

    def open(self):
        from chunkstore.ChunkedBlobStore import ChunkedBlobStore
        section = self.config
        backend = section.backend.open()
        try:
            return ChunkedBlobStore(backend, chunk_size=section.chunk_size)
        except Exception:
            backend.close()
            raise


class MappingBackend(BaseConfig):

    def open(self):
        from chunkstore.MappingBackend import MappingBackend
        return MappingBackend(self.config.name)


class FileBackend(BaseConfig):

    def open(self):
        from chunkstore.FileBackend import FileBackend
        config = self.config
        return FileBackend(config.path, read_only=config.read_only,
                           name=config.name)
