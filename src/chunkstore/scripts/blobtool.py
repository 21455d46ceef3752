#!/usr/bin/env python
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
"""Store and retrieve blobs in a configured chunk store.

usage: %(program)s -C CONFIG [-v] COMMAND [ARGS]

Options:

    -C / --config=FILE
        ZConfig file with a <chunkstore> section.

    -v / --verbose
        Log what the store does to stderr.

    -h / --help
        Print this text and exit.

Commands:

    put [-s SIZE] ID FILE
        Store the contents of FILE ('-' for stdin) as ID, using chunks of
        SIZE bytes if given.

    get [-o FILE] ID
        Write the blob ID to FILE, or to stdout.

    rm ID
        Delete the blob ID.

    ls
        List the stored blobs.

    stat ID
        Describe the blob ID.
"""

import getopt
import logging
import os
import sys
import tempfile
import time

import ZConfig
from zc.lockfile import LockError

import chunkstore.config
from chunkstore.exceptions import ChunkStoreError
from chunkstore.utils import serial_repr


program = sys.argv[0]

READ_SIZE = 64 * 1024


class BlobToolError(Exception):
    pass


def usage(code, msg=''):
    outfp = sys.stderr
    if code == 0:
        outfp = sys.stdout

    print(__doc__ % globals(), file=outfp)
    if msg:
        print(msg, file=outfp)

    sys.exit(code)


def format_time(t):
    return time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime(t))


def do_put(store, args):
    try:
        opts, args = getopt.getopt(args, 's:')
    except getopt.error as msg:
        raise BlobToolError(str(msg))
    chunk_size = None
    for opt, arg in opts:
        if opt == '-s':
            try:
                chunk_size = int(arg)
            except ValueError:
                raise BlobToolError("invalid chunk size: %s" % arg)
    if len(args) != 2:
        raise BlobToolError("put needs an ID and a FILE")
    id, path = args

    if path == '-':
        data = sys.stdin.buffer.read()
    else:
        with open(path, 'rb') as f:
            data = f.read()

    with store.openForWrite(id, chunk_size) as handle:
        blob = store.write(handle, data)
    print("%s: %d bytes in %d chunks" % (blob.id, blob.totalSize,
                                         blob.chunkCount))


def copy_blob(store, handle, outfp):
    eof = False
    while not eof:
        data, eof = store.read(handle, READ_SIZE)
        outfp.write(data)


def do_get(store, args):
    try:
        opts, args = getopt.getopt(args, 'o:')
    except getopt.error as msg:
        raise BlobToolError(str(msg))
    output = None
    for opt, arg in opts:
        if opt == '-o':
            output = arg
    if len(args) != 1:
        raise BlobToolError("get needs an ID")
    id, = args

    with store.openForRead(id) as handle:
        if output is None:
            copy_blob(store, handle, sys.stdout.buffer)
            sys.stdout.buffer.flush()
            return

        # Only replace the output once the whole blob has been read.
        fd, tmpname = tempfile.mkstemp(
            suffix='.tmp', dir=os.path.dirname(os.path.abspath(output)))
        try:
            with os.fdopen(fd, 'wb') as outfp:
                copy_blob(store, handle, outfp)
            os.replace(tmpname, output)
        except BaseException:
            if os.path.exists(tmpname):
                os.remove(tmpname)
            raise


def do_rm(store, args):
    if len(args) != 1:
        raise BlobToolError("rm needs an ID")
    store.delete(args[0])


def do_ls(store, args):
    if args:
        raise BlobToolError("ls takes no arguments")
    for blob in store.listBlobs():
        print("%-30s %10d %6d  %s" % (blob.id, blob.totalSize,
                                      blob.chunkCount,
                                      format_time(blob.created)))


def do_stat(store, args):
    if len(args) != 1:
        raise BlobToolError("stat needs an ID")
    blob = store.stat(args[0])
    print("id:          %s" % blob.id)
    print("size:        %d" % blob.totalSize)
    print("chunk size:  %d" % blob.chunkSize)
    print("chunks:      %d" % blob.chunkCount)
    print("created:     %s" % format_time(blob.created))
    print("serial:      %s" % serial_repr(blob.serial))
    for key, value in sorted(blob.extension.items()):
        print("%-12s %s" % (key + ':', value))


COMMANDS = {
    'put': do_put,
    'get': do_get,
    'rm': do_rm,
    'ls': do_ls,
    'stat': do_stat,
}


def parseargs(argv):
    try:
        opts, args = getopt.getopt(argv, 'hvC:',
                                   ['help', 'verbose', 'config='])
    except getopt.error as msg:
        usage(1, msg)

    class Options(object):
        config = None       # path of the ZConfig file
        verbose = False     # -v flag state
        command = None      # one of COMMANDS
        args = ()           # the command's arguments

    options = Options()

    for opt, arg in opts:
        if opt in ('-h', '--help'):
            usage(0)
        elif opt in ('-v', '--verbose'):
            options.verbose = True
        elif opt in ('-C', '--config'):
            options.config = arg
        else:
            assert False, (opt, arg)

    if options.config is None:
        usage(1, '-C is required')
    if not args:
        usage(1, 'A command is required')
    if args[0] not in COMMANDS:
        usage(1, 'Unknown command: %s' % args[0])
    options.command = args[0]
    options.args = args[1:]
    return options


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    options = parseargs(argv)
    if options.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s %(levelname)s %(name)s %(message)s')

    try:
        store = chunkstore.config.storeFromURL(options.config)
    except (ZConfig.ConfigurationError, ChunkStoreError, LockError,
            OSError) as e:
        sys.exit(str(e))

    try:
        COMMANDS[options.command](store, options.args)
    except (BlobToolError, ChunkStoreError, OSError) as e:
        sys.exit(str(e))
    finally:
        store.release()


if __name__ == '__main__':
    main()
