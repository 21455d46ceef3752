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
import unittest

import chunkstore.MappingBackend
from chunkstore.blob import Chunk
from chunkstore.exceptions import BackendUnavailableError
from chunkstore.tests import BasicBackend
from chunkstore.tests import util


class MappingBackendTests(BasicBackend.BasicBackend, util.TestCase):

    def setUp(self):
        util.TestCase.setUp(self)
        self._backend = chunkstore.MappingBackend.MappingBackend()

    def testDefaultName(self):
        self.assertEqual(self._backend.getName(), 'MappingBackend')
        named = chunkstore.MappingBackend.MappingBackend('cache')
        self.assertEqual(named.getName(), 'cache')

    def testNotReadOnly(self):
        self.assertFalse(self._backend.isReadOnly())

    def testSizes(self):
        self.assertEqual(len(self._backend), 0)
        self.assertEqual(self._backend.getSize(), 0)
        self._backend.storeChunk(Chunk('a', 0, BasicBackend.SERIAL, b'abc'))
        self._backend.storeChunk(Chunk('a', 1, BasicBackend.SERIAL, b'de'))
        self._backend.storeMetadata(BasicBackend.record('a', 5))
        self.assertEqual(len(self._backend), 1)
        self.assertEqual(self._backend.getSize(), 5)

    def testEmptyTreesAreDropped(self):
        self._backend.storeChunk(Chunk('a', 0, BasicBackend.SERIAL, b'abc'))
        self._backend.deleteChunks('a', 0)
        self.assertNotIn('a', self._backend._chunks)

    def testClosedMessage(self):
        self._backend.close()
        with self.assertRaises(BackendUnavailableError) as context:
            len(self._backend)
        self.assertEqual(str(context.exception),
                         'backend MappingBackend unavailable: '
                         'backend is closed')


def test_suite():
    return util.loadTests(MappingBackendTests)


if __name__ == '__main__':
    unittest.main(defaultTest='test_suite')
