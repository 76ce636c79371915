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

import json
import re

from emailauth.encoding import (
    encode_account_code,
    encode_fixed,
    encode_length,
    remove_soft_line_breaks,
    to_circom_bigint,
    )
from emailauth.errors import MissingFieldError, ParameterError
from emailauth.sha256 import BLOCK_SIZE, generate_partial_sha, sha256_pad

__all__ = [
    'assemble',
    'BodyFields',
    'CircuitInput',
    'HeaderAndBodyConfig',
    'HeaderFields',
    'HeaderOnlyConfig',
    'header_indexes',
    ]


def _check_capacity(name, value):
    if not isinstance(value, int) or value <= 0 or value % BLOCK_SIZE:
        raise ParameterError(
            "%s must be a positive multiple of %d, got %r"
            % (name, BLOCK_SIZE, value), stage='assemble', field=name)


class HeaderOnlyConfig(object):
    """Inputs for the circuit that authenticates the header alone."""

    body_parsing = False
    circuit_name = 'email_auth'

    def __init__(self, max_header_length=1024, ignore_body_hash_check=False,
                 verify_signature=True):
        _check_capacity('max_header_length', max_header_length)
        self.max_header_length = max_header_length
        self.ignore_body_hash_check = bool(ignore_body_hash_check)
        self.verify_signature = bool(verify_signature)

    def __repr__(self):
        return "%s(max_header_length=%d, ignore_body_hash_check=%r)" % (
            type(self).__name__, self.max_header_length,
            self.ignore_body_hash_check)


class HeaderAndBodyConfig(HeaderOnlyConfig):
    """Inputs for the circuit that also hashes and reads the body."""

    body_parsing = True
    circuit_name = 'email_auth_with_body_parsing_with_qp_encoding'

    def __init__(self, max_header_length=1024, max_body_length=1024,
                 ignore_body_hash_check=False, selector_rule=None,
                 verify_signature=True):
        HeaderOnlyConfig.__init__(self, max_header_length,
                                  ignore_body_hash_check, verify_signature)
        _check_capacity('max_body_length', max_body_length)
        self.max_body_length = max_body_length
        self.selector_rule = selector_rule

    def __repr__(self):
        return ("%s(max_header_length=%d, max_body_length=%d, "
                "ignore_body_hash_check=%r, selector_rule=%r)") % (
            type(self).__name__, self.max_header_length, self.max_body_length,
            self.ignore_body_hash_check, self.selector_rule)


class HeaderFields(object):
    """Signed header bytes and the key that signed them."""

    def __init__(self, signed_header, public_key_modulus):
        self.signed_header = signed_header
        self.public_key_modulus = public_key_modulus


class BodyFields(object):
    """Canonical body (already cut to l= if present) and selector match."""

    def __init__(self, canonical_body, selector_match=None):
        self.canonical_body = canonical_body
        self.selector_match = selector_match


class CircuitInput(dict):
    """Signal name to value mapping, in the order the circuit declares."""

    def __init__(self, circuit_name):
        dict.__init__(self)
        self.circuit_name = circuit_name

    def to_json(self):
        return json.dumps(self, indent=2)


RE_HEADER_LINE = br'(?:\A|\r\n)%s:'
RE_FROM_ANGLE = re.compile(br'<([^<>\s]+@[^<>\s]+)>')
RE_FROM_BARE = re.compile(br'([^\s<>",;:]+@[^\s<>",;:]+)')
RE_TIMESTAMP = re.compile(br'[:;\s]t\s*=\s*(\d+)')
RE_BODY_HASH = re.compile(br'[:;\s]bh\s*=\s*([A-Za-z0-9+/=]+)')
RE_CODE = re.compile(br'code (0x[0-9a-f]{64})', re.IGNORECASE)


def _field_span(header, name):
    """Offsets of the value of the first header field called name.

    The value ends at the first CRLF not followed by whitespace.
    """
    m = re.search(RE_HEADER_LINE % name, header, re.IGNORECASE)
    if m is None:
        return None
    start = m.end()
    end = start
    while True:
        end = header.find(b'\r\n', end)
        if end == -1:
            end = len(header)
            break
        if header[end+2:end+3] not in (b' ', b'\t'):
            break
        end += 2
    while start < end and header[start:start+1] in (b' ', b'\t'):
        start += 1
    return start, end


def _signature_span(header):
    # The DKIM-Signature is always the last field of the signed header.
    matches = list(re.finditer(RE_HEADER_LINE % b'dkim-signature', header,
                               re.IGNORECASE))
    if not matches:
        return None
    return matches[-1].end(), len(header)


def header_indexes(header):
    """Locate the substrings the circuits read from the signed header.

    @param header: signed header bytes as produced by L{hash_headers}
    @return: dict with from_addr_idx, domain_idx, subject_idx,
    timestamp_idx, code_idx and body_hash_idx; a value is None when the
    substring is absent
    """
    idx = dict.fromkeys(('from_addr_idx', 'domain_idx', 'subject_idx',
                         'timestamp_idx', 'code_idx', 'body_hash_idx'))

    span = _field_span(header, b'from')
    if span is not None:
        value = header[span[0]:span[1]]
        m = RE_FROM_ANGLE.search(value) or RE_FROM_BARE.search(value)
        if m is not None:
            address = m.group(1)
            idx['from_addr_idx'] = span[0] + m.start(1)
            idx['domain_idx'] = address.index(b'@') + 1

    span = _field_span(header, b'subject')
    if span is not None:
        idx['subject_idx'] = span[0]
        m = RE_CODE.search(header, span[0], span[1])
        idx['code_idx'] = m.start(1) if m is not None else 0

    span = _signature_span(header)
    if span is not None:
        m = RE_TIMESTAMP.search(header, span[0] - 1)
        idx['timestamp_idx'] = m.start(1) if m is not None else 0
        m = RE_BODY_HASH.search(header, span[0] - 1)
        if m is not None:
            idx['body_hash_idx'] = m.start(1)
    return idx


def _required(idx, name):
    if idx[name] is None:
        raise MissingFieldError("%s not found in signed header" % name,
                                field=name)
    return idx[name]


def assemble(header_fields, body_fields, account_code, signature, config):
    """Build the circuit input for the variant named by config.

    @param header_fields: L{HeaderFields}
    @param body_fields: L{BodyFields}, or None for L{HeaderOnlyConfig}
    @param account_code: hex or decimal account code
    @param signature: the L{emailauth.DkimSignature} being proven
    @param config: L{HeaderOnlyConfig} or L{HeaderAndBodyConfig}
    @return: L{CircuitInput}
    """
    header = header_fields.signed_header
    padded_header, padded_header_len = sha256_pad(
        header, config.max_header_length, field='padded_header')

    inputs = CircuitInput(config.circuit_name)
    inputs['padded_header'] = encode_fixed(
        padded_header, config.max_header_length, field='padded_header')
    inputs['public_key'] = to_circom_bigint(
        header_fields.public_key_modulus, field='public_key')
    inputs['signature'] = to_circom_bigint(
        int.from_bytes(signature.signature, 'big'), field='signature')
    inputs['padded_header_len'] = encode_length(padded_header_len)
    inputs['account_code'] = encode_account_code(account_code)

    idx = header_indexes(header)
    inputs['from_addr_idx'] = _required(idx, 'from_addr_idx')
    if config.body_parsing:
        inputs['subject_idx'] = _required(idx, 'subject_idx')
    inputs['domain_idx'] = _required(idx, 'domain_idx')
    inputs['timestamp_idx'] = idx['timestamp_idx'] or 0
    inputs['code_idx'] = idx['code_idx'] or 0

    if not config.body_parsing:
        return inputs

    if body_fields is None:
        raise MissingFieldError("body parsing is enabled but no body given",
                                field='padded_body')
    match = body_fields.selector_match
    if config.selector_rule is not None and match is None:
        raise MissingFieldError("selector rule given but no selector match",
                                field='command_idx')

    body = body_fields.canonical_body
    body_sha_length = ((len(body) + 63 + 65) // BLOCK_SIZE) * BLOCK_SIZE
    padded_body, padded_body_len = sha256_pad(
        body, max(config.max_body_length, body_sha_length),
        field='padded_body')
    selector_start = match.start_offset if match is not None else None
    precomputed, remaining, remaining_len = generate_partial_sha(
        padded_body, padded_body_len, selector_start, config.max_body_length)

    inputs['body_hash_idx'] = _required(idx, 'body_hash_idx')
    inputs['precomputed_sha'] = encode_fixed(
        precomputed, 32, field='precomputed_sha')
    inputs['padded_body'] = encode_fixed(
        remaining, config.max_body_length, field='padded_body')
    inputs['padded_body_len'] = encode_length(remaining_len)
    inputs['command_idx'] = command_index(remaining, selector_start)
    inputs['padded_cleaned_body'] = remove_soft_line_breaks(
        inputs['padded_body'])
    return inputs


def command_index(remaining, selector_start):
    """Offset of the selector region in the body with soft breaks removed."""
    if selector_start is None:
        return 0
    rel = selector_start % BLOCK_SIZE
    return rel - 3 * remaining[:rel].count(b'=\r\n')
