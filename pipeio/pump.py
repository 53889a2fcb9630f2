#!/usr/bin/env python3
# Copyright 2026 The Bazel Authors. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Copy a byte stream with background pump threads.

This is mostly a way to drive StreamPump and the in-process pipe from the
command line. With --relay, the data crosses an in-process pipe between two
pumps:

    input -> pump -> PipedWriter ~~> PipedReader -> pump -> output
"""

import argparse
import sys

from pipeio.lib.in_process_pipe import pipe
from pipeio.lib.stream_pump import StreamPump


def copy_stream(inp, out, relay=False, verbose=False):
    """Copy inp to out and wait until done. Both streams end up closed."""
    if relay:
        reader, writer = pipe()
        pumps = [
            StreamPump(inp, writer, verbose=verbose),
            StreamPump(reader, out, verbose=verbose),
        ]
    else:
        pumps = [StreamPump(inp, out, verbose=verbose)]
    for pump in pumps:
        pump.join()
        if verbose:
            print(pump.status(), file=sys.stderr)
    return pumps


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Copy a byte stream through background pump threads",
        fromfile_prefix_chars="@")
    parser.add_argument("--input", help="path to read from (default: stdin)")
    parser.add_argument("--output", help="path to write to (default: stdout)")
    parser.add_argument("--relay", action="store_true",
                        help="pass the data through an in-process pipe")
    parser.add_argument("--verbose", action="store_true")
    options = parser.parse_args(argv)

    inp = open(options.input, "rb") if options.input else sys.stdin.buffer
    try:
        out = open(options.output, "wb") if options.output else sys.stdout.buffer
    except OSError:
        if inp is not sys.stdin.buffer:
            inp.close()
        raise
    copy_stream(inp, out, relay=options.relay, verbose=options.verbose)
    return 0


if __name__ == "__main__":
    sys.exit(main())
