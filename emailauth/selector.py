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

import re

from emailauth.errors import ParameterError, SelectorNotFoundError

__all__ = [
    'BodySelectorMatch',
    'compile_rule',
    'locate_selector',
    'ZKEMAIL_DIV',
    ]

#: Region of an HTML part inside a div whose id contains "zkemail".  Other
#: attributes may follow the id, and quoted printable soft line breaks may
#: appear anywhere in the marker.
ZKEMAIL_DIV = (
    br'<(?:=\r\n)?d(?:=\r\n)?i(?:=\r\n)?v(?:=\r\n)? (?:=\r\n)?i(?:=\r\n)?d'
    br'(?:=\r\n)?=3D(?:=\r\n)?"(?:=\r\n)?[^"]*(?:=\r\n)?z(?:=\r\n)?k'
    br'(?:=\r\n)?e(?:=\r\n)?m(?:=\r\n)?a(?:=\r\n)?i(?:=\r\n)?l(?:=\r\n)?'
    br'[^"]*(?:=\r\n)?"(?:=\r\n)?[^>]*(?:=\r\n)?>(?:=\r\n)?'
    br'(?P<content>[^<>/]+)<(?:=\r\n)?/(?:=\r\n)?d(?:=\r\n)?i(?:=\r\n)?v')


class BodySelectorMatch(object):
    """Half-open byte range [start_offset, end_offset) of a canonical body."""

    __slots__ = ('start_offset', 'end_offset')

    def __init__(self, start_offset, end_offset):
        if not 0 <= start_offset <= end_offset:
            raise ParameterError(
                "invalid selector range %d:%d" % (start_offset, end_offset),
                stage='select')
        self.start_offset = start_offset
        self.end_offset = end_offset

    def __eq__(self, other):
        if not isinstance(other, BodySelectorMatch):
            return NotImplemented
        return (self.start_offset, self.end_offset) == (
            other.start_offset, other.end_offset)

    def __hash__(self):
        return hash((self.start_offset, self.end_offset))

    def __repr__(self):
        return "BodySelectorMatch(%d, %d)" % (
            self.start_offset, self.end_offset)

    def extract(self, body):
        return body[self.start_offset:self.end_offset]


def compile_rule(rule):
    """Compile a selector rule given as bytes, str or compiled pattern."""
    if isinstance(rule, str):
        rule = rule.encode('utf-8')
    if isinstance(rule, bytes):
        try:
            return re.compile(rule, re.DOTALL)
        except re.error as e:
            raise ParameterError("invalid selector rule: %s" % e,
                                 stage='select', field='selector')
    if isinstance(rule.pattern, str):
        raise ParameterError("selector pattern must match bytes",
                             stage='select', field='selector')
    return rule


def locate_selector(canonical_body, rule, required=True):
    """Find the body region named by rule.

    The region is the span of the group named "content" when the rule
    defines one, otherwise the whole match.  The first match wins.

    >>> locate_selector(b'xx[abc]yy', br'\\[(?P<content>[a-z]+)\\]')
    BodySelectorMatch(3, 6)

    @raise SelectorNotFoundError: no match and required is true
    @return: L{BodySelectorMatch}, or None when not required and absent
    """
    pattern = compile_rule(rule)
    m = pattern.search(canonical_body)
    if m is None:
        if required:
            raise SelectorNotFoundError(
                "selector %r not found in body" % pattern.pattern[:60],
                field='selector')
        return None
    if 'content' in pattern.groupindex:
        start, end = m.span('content')
    else:
        start, end = m.span()
    return BodySelectorMatch(start, end)
