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
# FOR A PARTICULAR PURPOSE.
#
##############################################################################
"""Conveniences for chunk store tests
"""
import os
import random
import tempfile
import unittest

import zope.testing.setupstack

from chunkstore.exceptions import BackendUnavailableError
from chunkstore.MappingBackend import MappingBackend


def setUp(test, name='test'):
    d = tempfile.mkdtemp(prefix=name)
    zope.testing.setupstack.register(test, zope.testing.setupstack.rmtree, d)
    zope.testing.setupstack.register(test, os.chdir, os.getcwd())
    os.chdir(d)


def tearDown(test):
    zope.testing.setupstack.tearDown(test)


class TestCase(unittest.TestCase):

    def setUp(self):
        self.globs = {}
        name = '%s-%s' % (self.__class__.__name__, self._testMethodName)
        setUp(self, name)

    tearDown = tearDown

    def register(self, function, *args, **kw):
        """Call function at tear down, before the directory is removed."""
        zope.testing.setupstack.register(self, function, *args, **kw)


def random_data(size, seed=0):
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for i in range(size))


def loadTests(*classes):
    suite = unittest.TestSuite()
    for class_ in classes:
        suite.addTest(unittest.defaultTestLoader.loadTestsFromTestCase(class_))
    return suite


class FailingBackend(MappingBackend):
    """Mapping backend that becomes unreachable after a number of stores.

    fail_after counts storeChunk and storeMetadata calls; None never
    fails.  With fail_deletes set, deleteChunks always fails.
    """

    fail_after = None
    fail_deletes = False

    def __init__(self, name='FailingBackend'):
        MappingBackend.__init__(self, name)
        self.stores = 0

    def _tick(self):
        if self.fail_after is not None and self.stores >= self.fail_after:
            raise BackendUnavailableError(self.__name__, "connection lost")
        self.stores += 1

    def storeChunk(self, chunk):
        self._tick()
        MappingBackend.storeChunk(self, chunk)

    def storeMetadata(self, record):
        self._tick()
        MappingBackend.storeMetadata(self, record)

    def deleteChunks(self, blob_id, start=0):
        if self.fail_deletes:
            raise BackendUnavailableError(self.__name__, "connection lost")
        return MappingBackend.deleteChunks(self, blob_id, start)
