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

"""Conversion of byte strings and integers to circuit signal values.

Signals are written as decimal strings, one per field element, which is
what the witness calculator reads from the input JSON.
"""

import re

from emailauth.errors import CapacityExceededError, ParameterError

__all__ = [
    'CIRCOM_BIGINT_N',
    'CIRCOM_BIGINT_K',
    'SNARK_FIELD_SIZE',
    'decode_fixed',
    'encode_account_code',
    'encode_fixed',
    'encode_length',
    'from_circom_bigint',
    'remove_soft_line_breaks',
    'to_circom_bigint',
    ]

#: Limb width and count used by the RSA circuits for 2048 bit keys.
CIRCOM_BIGINT_N = 121
CIRCOM_BIGINT_K = 17

#: Order of the BN254 scalar field.
SNARK_FIELD_SIZE = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617)

_QP_SOFT_BREAK = ('61', '13', '10')


def encode_fixed(data, capacity, field=None):
    """Encode bytes as exactly capacity signals, zero filled.

    >>> encode_fixed(b'Hi', 4)
    ['72', '105', '0', '0']

    @raise CapacityExceededError: data is longer than capacity.  Nothing
    is ever truncated.
    """
    if len(data) > capacity:
        raise CapacityExceededError(
            "%d bytes do not fit in %d slots" % (len(data), capacity),
            field=field)
    return [str(x) for x in bytearray(data)] + ['0'] * (capacity - len(data))


def decode_fixed(array, length):
    """Inverse of encode_fixed up to the recorded length.

    >>> decode_fixed(['72', '105', '0', '0'], 2)
    b'Hi'
    """
    return bytes(bytearray(int(x) for x in array[:length]))


def encode_length(n):
    """Encode a length scalar."""
    if n < 0:
        raise ParameterError("negative length: %d" % n, stage='encode')
    return str(n)


def remove_soft_line_breaks(array):
    """Drop quoted-printable soft line breaks from an encoded body.

    The result keeps the capacity of the input; the tail is zero filled.

    >>> remove_soft_line_breaks(['65', '61', '13', '10', '66', '0'])
    ['65', '66', '0', '0', '0', '0']
    """
    result = []
    i = 0
    while i < len(array):
        if tuple(array[i:i+3]) == _QP_SOFT_BREAK:
            i += 3
        else:
            result.append(array[i])
            i += 1
    return result + ['0'] * (len(array) - len(result))


def to_circom_bigint(n, bits=CIRCOM_BIGINT_N, chunks=CIRCOM_BIGINT_K,
                     field=None):
    """Split a non-negative integer into little-endian limbs.

    >>> to_circom_bigint(2**121 + 5, chunks=3)
    ['5', '1', '0']
    """
    if n < 0 or n >> (bits * chunks):
        raise CapacityExceededError(
            "%d bit value does not fit in %d x %d bit limbs"
            % (n.bit_length(), chunks, bits), field=field)
    mask = (1 << bits) - 1
    return [str((n >> (bits * i)) & mask) for i in range(chunks)]


def from_circom_bigint(limbs, bits=CIRCOM_BIGINT_N):
    n = 0
    for limb in reversed(limbs):
        n = (n << bits) | int(limb)
    return n


def encode_account_code(code):
    """Normalise an account code to a decimal field element.

    >>> encode_account_code('0x1f')
    '31'
    >>> encode_account_code(b'42')
    '42'
    """
    if isinstance(code, bytes):
        code = code.decode('ascii', 'replace')
    if not isinstance(code, str):
        raise ParameterError("account code must be a string",
                             stage='assemble', field='account_code')
    code = code.strip()
    if re.match(r'0[xX][0-9a-fA-F]+\Z', code):
        value = int(code, 16)
    elif re.match(r'[0-9]+\Z', code):
        value = int(code)
    else:
        raise ParameterError("account code is neither hex nor decimal: %r"
                             % code, stage='assemble', field='account_code')
    if value >= SNARK_FIELD_SIZE:
        raise ParameterError("account code is not a field element",
                             stage='assemble', field='account_code')
    return str(value)
