# This software is provided 'as-is', without any express or implied
# warranty.  In no event will the author be held liable for any damages
# arising from the use of this software.
#
# Permission is granted to anyone to use this software for any purpose,
# including commercial applications, and to alter it and redistribute it
# freely, subject to the following restrictions:
#
# 1. The origin of this software must not be misrepresented; you must not
#    claim that you wrote the original software. If you use this software
#    in a product, an acknowledgment in the product documentation would be
#    appreciated but is not required.
# 2. Altered source versions must be plainly marked as such, and must not be
#    misrepresented as being the original software.
# 3. This notice may not be removed or altered from any source distribution.
#
# Copyright (c) 2008 Greg Hewgill http://hewgill.com
#
# This has been modified from the original software.
# Copyright (c) 2011 William Grant <me@williamgrant.id.au>
#
# This has been modified from the original software.

import re

from emailauth.errors import UnsupportedModeError

__all__ = [
    'CanonicalizationPolicy',
    'canonicalize_body',
    'canonicalize_headers',
    'Relaxed',
    'select_headers',
    'Simple',
    ]


def crlf_line_endings(content):
    return re.sub(b"(?<!\r)\n", b"\r\n", content)


def strip_trailing_whitespace(content):
    return re.sub(b"[\t ]+(\r\n|\\Z)", b"\\1", content)


def compress_whitespace(content):
    return re.sub(b"[\t ]+", b" ", content)


def strip_trailing_lines(content):
    end = len(content)
    while content.endswith(b"\r\n", 0, end):
        end -= 2
    return content[:end] + b"\r\n"


def unfold_header_value(content):
    return re.sub(b"\r?\n", b"", content)


class Simple:
    """Class that represents the "simple" canonicalization algorithm."""

    name = b"simple"

    @staticmethod
    def canonicalize_headers(headers):
        # No changes to headers.
        return [(x[0], x[1]) for x in headers]

    @staticmethod
    def canonicalize_body(body):
        # Ignore all empty lines at the end of the message body.
        return strip_trailing_lines(crlf_line_endings(body))


class Relaxed:
    """Class that represents the "relaxed" canonicalization algorithm."""

    name = b"relaxed"

    @staticmethod
    def canonicalize_headers(headers):
        # Convert all header field names to lowercase.
        # Unfold all header lines.
        # Compress WSP to single space.
        # Remove all WSP at the start or end of the field value (strip).
        return [
            (x[0].lower().rstrip(),
             compress_whitespace(unfold_header_value(x[1])).strip() + b"\r\n")
            for x in headers]

    @staticmethod
    def canonicalize_body(body):
        # Compress WSP, drop it at line ends, then ignore all empty lines
        # at the end of the message body.  An empty body stays empty.
        body = strip_trailing_whitespace(
            compress_whitespace(crlf_line_endings(body)))
        body = strip_trailing_lines(body)
        if body == b"\r\n":
            return b""
        return body


ALGORITHMS = dict((c.name, c) for c in (Simple, Relaxed))


def _mode_name(mode):
    if isinstance(mode, str):
        mode = mode.encode('ascii', 'replace')
    return mode.strip().lower()


def get_algorithm(mode):
    """Look up a canonicalization algorithm by its c= name.

    >>> get_algorithm('Relaxed').name
    b'relaxed'
    """
    try:
        return ALGORITHMS[_mode_name(mode)]
    except (KeyError, AttributeError):
        raise UnsupportedModeError(
            "unknown canonicalization mode: %r" % (mode,), field='c')


class CanonicalizationPolicy:
    """The pair of algorithms named by a c= tag."""

    def __init__(self, header_algorithm, body_algorithm):
        self.header_algorithm = header_algorithm
        self.body_algorithm = body_algorithm

    @classmethod
    def from_c_value(cls, c):
        """Construct the canonicalization policy described by a c= value.

        May raise an L{UnsupportedModeError} if an unknown algorithm is
        specified or the value is otherwise badly formed.

        @param c: c= value from a DKIM-Signature header field, or None
        @return: a L{CanonicalizationPolicy}
        """
        if c is None:
            c = b'simple/simple'
        m = c.split(b'/')
        if len(m) not in (1, 2):
            raise UnsupportedModeError(
                "invalid c= value: %r" % (c,), field='c')
        if len(m) == 1:
            m.append(b'simple')
        can_headers, can_body = m
        return cls(get_algorithm(can_headers), get_algorithm(can_body))

    def to_c_value(self):
        return b'/'.join(
            (self.header_algorithm.name, self.body_algorithm.name))

    def canonicalize_headers(self, headers):
        return self.header_algorithm.canonicalize_headers(headers)

    def canonicalize_body(self, body):
        return self.body_algorithm.canonicalize_body(body)


def select_headers(headers, include_headers):
    """Select message header fields to be signed/verified.

    Repeated names take instances from the bottom of the header up.

    >>> h = [(b'from',b'biz'),(b'foo',b'bar'),(b'from',b'baz'),(b'subject',b'boring')]
    >>> i = [b'from',b'subject',b'to',b'from']
    >>> select_headers(h,i)
    [(b'from', b'baz'), (b'subject', b'boring'), (b'from', b'biz')]
    >>> h = [(b'From',b'biz'),(b'Foo',b'bar'),(b'Subject',b'Boring')]
    >>> i = [b'from',b'subject',b'to',b'from']
    >>> select_headers(h,i)
    [(b'From', b'biz'), (b'Subject', b'Boring')]
    """
    sign_headers = []
    lastindex = {}
    for h in include_headers:
        h = h.lower()
        i = lastindex.get(h, len(headers))
        while i > 0:
            i -= 1
            if h == headers[i][0].lower():
                sign_headers.append((headers[i][0], headers[i][1]))
                break
        lastindex[h] = i
    return sign_headers


def canonicalize_headers(headers, mode, signed_names):
    """Select the signed header fields and canonicalize them.

    @param headers: (name, value) pairs in message order
    @param mode: header canonicalization name, e.g. b'relaxed'
    @param signed_names: header names from the h= tag
    @return: canonical (name, value) pairs in signing order
    """
    algorithm = get_algorithm(mode)
    return algorithm.canonicalize_headers(
        select_headers(headers, signed_names))


def canonicalize_body(body, mode):
    """Canonicalize a CRLF-separated message body."""
    return get_algorithm(mode).canonicalize_body(body)
