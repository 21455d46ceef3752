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
import os
import sys
import unittest
from contextlib import redirect_stdout
from io import StringIO

import chunkstore.config
from chunkstore.scripts import blobtool
from chunkstore.tests import util


CONFIG = """\
<chunkstore>
  chunk-size 4
  <filebackend>
    path blobs
  </filebackend>
</chunkstore>
"""


def _write_file(name, bits, mode='wb'):
    with open(name, mode) as f:
        f.write(bits)


def _read_file(name, mode='rb'):
    with open(name, mode) as f:
        return f.read()


class Test_parseargs(unittest.TestCase):

    def setUp(self):
        self._old_stderr = sys.stderr
        sys.stderr = StringIO()

    def tearDown(self):
        sys.stderr = self._old_stderr

    def test_short(self):
        options = blobtool.parseargs(['-v', '-C', 'store.conf', 'ls'])
        self.assertTrue(options.verbose)
        self.assertEqual(options.config, 'store.conf')
        self.assertEqual(options.command, 'ls')
        self.assertEqual(options.args, [])

    def test_long(self):
        options = blobtool.parseargs(
            ['--verbose', '--config=store.conf', 'get', '-o', 'out', 'doc'])
        self.assertTrue(options.verbose)
        self.assertEqual(options.command, 'get')
        self.assertEqual(options.args, ['-o', 'out', 'doc'])

    def test_help(self):
        stdout = StringIO()
        with redirect_stdout(stdout):
            with self.assertRaises(SystemExit) as context:
                blobtool.parseargs(['--help'])
        self.assertEqual(context.exception.code, 0)
        self.assertIn('usage:', stdout.getvalue())

    def test_bad_option(self):
        self.assertRaises(SystemExit, blobtool.parseargs, ['--crash'])
        self.assertIn('option --crash not recognized',
                      sys.stderr.getvalue())

    def test_missing_config(self):
        self.assertRaises(SystemExit, blobtool.parseargs, ['ls'])
        self.assertIn('-C is required', sys.stderr.getvalue())

    def test_missing_command(self):
        self.assertRaises(SystemExit, blobtool.parseargs, ['-C', 'x'])
        self.assertIn('A command is required', sys.stderr.getvalue())

    def test_unknown_command(self):
        self.assertRaises(SystemExit, blobtool.parseargs,
                          ['-C', 'x', 'frobnicate'])
        self.assertIn('Unknown command: frobnicate', sys.stderr.getvalue())


class Test_main(util.TestCase):

    def setUp(self):
        util.TestCase.setUp(self)
        _write_file('store.conf', CONFIG, 'w')

    def _main(self, *args):
        stdout = StringIO()
        with redirect_stdout(stdout):
            blobtool.main(['-C', 'store.conf'] + list(args))
        return stdout.getvalue()

    def _fails(self, *args):
        with self.assertRaises(SystemExit) as context:
            self._main(*args)
        return str(context.exception.code)

    def _store(self):
        store = chunkstore.config.storeFromURL('store.conf')
        self.register(store.release)
        return store

    def test_put_and_get(self):
        data = util.random_data(10)
        _write_file('input', data)
        output = self._main('put', 'doc', 'input')
        self.assertEqual(output, 'doc: 10 bytes in 3 chunks\n')
        self._main('get', '-o', 'output', 'doc')
        self.assertEqual(_read_file('output'), data)

    def test_put_chunk_size(self):
        _write_file('input', b'abcdefgh')
        output = self._main('put', '-s', '3', 'doc', 'input')
        self.assertEqual(output, 'doc: 8 bytes in 3 chunks\n')
        self.assertEqual(self._store().stat('doc').chunkSize, 3)

    def test_put_bad_chunk_size(self):
        _write_file('input', b'abc')
        self.assertEqual(self._fails('put', '-s', 'big', 'doc', 'input'),
                         'invalid chunk size: big')
        self.assertIn('chunkSize must be an integer >= 1',
                      self._fails('put', '-s', '0', 'doc', 'input'))

    def test_put_missing_file(self):
        self.assertIn('No such file',
                      self._fails('put', 'doc', 'nonexistent'))

    def test_get_missing(self):
        self.assertEqual(self._fails('get', '-o', 'output', 'nope'),
                         "blob not found: 'nope'")

    def test_get_missing_keeps_output(self):
        _write_file('output', b'precious')
        self._fails('get', '-o', 'output', 'nope')
        self.assertEqual(_read_file('output'), b'precious')

    def test_get_corrupted_keeps_output(self):
        store = self._store()
        store.putBlob('doc', b'abcdefghij')
        store.backend.deleteChunks('doc', 1)
        store.release()
        _write_file('output', b'precious')
        self.assertIn('is corrupted at chunk 1',
                      self._fails('get', '-o', 'output', 'doc'))
        self.assertEqual(_read_file('output'), b'precious')
        self.assertEqual(sorted(os.listdir('.')),
                         ['blobs', 'output', 'store.conf'])

    def test_get_replaces_output(self):
        _write_file('input', b'new data')
        _write_file('output', b'old and longer data')
        self._main('put', 'doc', 'input')
        self._main('get', '-o', 'output', 'doc')
        self.assertEqual(_read_file('output'), b'new data')

    def test_ls(self):
        _write_file('input', b'abcdef')
        self._main('put', 'b', 'input')
        self._main('put', 'a', 'input')
        lines = self._main('ls').splitlines()
        self.assertEqual([line.split()[:3] for line in lines],
                         [['a', '6', '2'], ['b', '6', '2']])

    def test_stat(self):
        store = self._store()
        store.putBlob('doc', b'abcde', extension={'mime': 'x'})
        store.release()
        output = self._main('stat', 'doc')
        self.assertIn('id:          doc\n', output)
        self.assertIn('size:        5\n', output)
        self.assertIn('chunk size:  4\n', output)
        self.assertIn('chunks:      2\n', output)
        self.assertIn('mime:        x\n', output)

    def test_rm(self):
        _write_file('input', b'abc')
        self._main('put', 'doc', 'input')
        self._main('rm', 'doc')
        self.assertEqual(self._main('ls'), '')
        self.assertEqual(self._fails('rm', 'doc'), "blob not found: 'doc'")

    def test_bad_arguments(self):
        self.assertEqual(self._fails('rm'), 'rm needs an ID')
        self.assertEqual(self._fails('ls', 'extra'), 'ls takes no arguments')
        self.assertEqual(self._fails('put', 'doc'),
                         'put needs an ID and a FILE')
        self.assertEqual(self._fails('get', '-x', 'doc'),
                         'option -x not recognized')

    def test_bad_config(self):
        _write_file('store.conf', '<chunkstore>\n</chunkstore>\n', 'w')
        self.assertRaises(SystemExit, self._main, 'ls')

    def test_store_released(self):
        _write_file('input', b'abc')
        self._main('put', 'doc', 'input')
        # The directory lock is free again.
        self.assertEqual(self._store().getBlob('doc'), b'abc')


def test_suite():
    return util.loadTests(Test_parseargs, Test_main)


if __name__ == '__main__':
    unittest.main(defaultTest='test_suite')
