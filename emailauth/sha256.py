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

"""SHA-256 message padding and intermediate state.

The circuits hash the padded header and the tail of the padded body
themselves.  hashlib does not expose the compression state, so the
part of the body the circuit skips is run through the FIPS 180-4
compression function here and handed over as precomputed state.
"""

import struct

from emailauth.errors import CapacityExceededError, ParameterError

__all__ = [
    'generate_partial_sha',
    'partial_sha',
    'sha256_pad',
    ]

BLOCK_SIZE = 64

IV = (
    0x6a09e667, 0xbb67ae85, 0x3c6ef372, 0xa54ff53a,
    0x510e527f, 0x9b05688c, 0x1f83d9ab, 0x5be0cd19,
)

K = (
    0x428a2f98, 0x71374491, 0xb5c0fbcf, 0xe9b5dba5,
    0x3956c25b, 0x59f111f1, 0x923f82a4, 0xab1c5ed5,
    0xd807aa98, 0x12835b01, 0x243185be, 0x550c7dc3,
    0x72be5d74, 0x80deb1fe, 0x9bdc06a7, 0xc19bf174,
    0xe49b69c1, 0xefbe4786, 0x0fc19dc6, 0x240ca1cc,
    0x2de92c6f, 0x4a7484aa, 0x5cb0a9dc, 0x76f988da,
    0x983e5152, 0xa831c66d, 0xb00327c8, 0xbf597fc7,
    0xc6e00bf3, 0xd5a79147, 0x06ca6351, 0x14292967,
    0x27b70a85, 0x2e1b2138, 0x4d2c6dfc, 0x53380d13,
    0x650a7354, 0x766a0abb, 0x81c2c92e, 0x92722c85,
    0xa2bfe8a1, 0xa81a664b, 0xc24b8b70, 0xc76c51a3,
    0xd192e819, 0xd6990624, 0xf40e3585, 0x106aa070,
    0x19a4c116, 0x1e376c08, 0x2748774c, 0x34b0bcb5,
    0x391c0cb3, 0x4ed8aa4a, 0x5b9cca4f, 0x682e6ff3,
    0x748f82ee, 0x78a5636f, 0x84c87814, 0x8cc70208,
    0x90befffa, 0xa4506ceb, 0xbef9a3f7, 0xc67178f2,
)

MASK = 0xffffffff


def _rotr(x, n):
    return ((x >> n) | (x << (32 - n))) & MASK


def compress(state, block):
    """Run one 64 byte block through the SHA-256 compression function."""
    w = list(struct.unpack('>16L', block))
    for i in range(16, 64):
        s0 = _rotr(w[i-15], 7) ^ _rotr(w[i-15], 18) ^ (w[i-15] >> 3)
        s1 = _rotr(w[i-2], 17) ^ _rotr(w[i-2], 19) ^ (w[i-2] >> 10)
        w.append((w[i-16] + s0 + w[i-7] + s1) & MASK)
    a, b, c, d, e, f, g, h = state
    for i in range(64):
        s1 = _rotr(e, 6) ^ _rotr(e, 11) ^ _rotr(e, 25)
        ch = (e & f) ^ (~e & g)
        t1 = (h + s1 + ch + K[i] + w[i]) & MASK
        s0 = _rotr(a, 2) ^ _rotr(a, 13) ^ _rotr(a, 22)
        maj = (a & b) ^ (a & c) ^ (b & c)
        t2 = (s0 + maj) & MASK
        h, g, f, e = g, f, e, (d + t1) & MASK
        d, c, b, a = c, b, a, (t1 + t2) & MASK
    return tuple((x + y) & MASK for x, y in zip(state, (a, b, c, d, e, f, g, h)))


def sha256_pad(data, max_length, field=None):
    """Apply SHA-256 message padding, then zero fill to max_length.

    >>> padded, length = sha256_pad(b'abc', 128)
    >>> length, len(padded), padded[3], padded[63]
    (64, 128, 128, 24)

    @return: (padded bytes of exactly max_length, padded message length)
    @raise CapacityExceededError: the padded message is longer than
    max_length
    """
    padded = data + b'\x80'
    padded += b'\x00' * ((56 - len(padded)) % BLOCK_SIZE)
    padded += struct.pack('>Q', len(data) * 8)
    if len(padded) > max_length:
        raise CapacityExceededError(
            "padded message is %d bytes, limit is %d"
            % (len(padded), max_length), field=field)
    return padded + b'\x00' * (max_length - len(padded)), len(padded)


def partial_sha(data, length):
    """Return the SHA-256 state after hashing the first length bytes.

    length must be a multiple of the block size; no padding is applied.
    Hashing a whole padded message gives the ordinary digest.
    """
    if length % BLOCK_SIZE:
        raise ParameterError(
            "partial hash length %d is not a multiple of %d"
            % (length, BLOCK_SIZE), stage='hash')
    state = IV
    for i in range(0, length, BLOCK_SIZE):
        state = compress(state, data[i:i+BLOCK_SIZE])
    return struct.pack('>8L', *state)


def generate_partial_sha(body, body_length, selector_start=None,
                         max_remaining_length=1024):
    """Split a SHA-padded body for partial hashing.

    Everything before the 64 byte block holding selector_start is hashed
    here; the rest is returned for the circuit.

    @param body: the SHA-padded body
    @param body_length: padded message length of body
    @param selector_start: offset of the region the circuit must see, or
    None to hand over the whole body
    @return: (precomputed state, remaining body zero filled to
    max_remaining_length, remaining length)
    """
    if selector_start is None:
        cutoff = 0
    else:
        cutoff = (selector_start // BLOCK_SIZE) * BLOCK_SIZE
    if cutoff > body_length:
        raise ParameterError(
            "selector offset %d is past the end of the body" % selector_start,
            stage='hash', field='selector')
    precomputed = partial_sha(body, cutoff)
    remaining = body[cutoff:body_length]
    if len(remaining) > max_remaining_length:
        raise CapacityExceededError(
            "remaining body is %d bytes, limit is %d"
            % (len(remaining), max_remaining_length), field='padded_body')
    remaining += b'\x00' * (max_remaining_length - len(remaining))
    return precomputed, remaining, body_length - cutoff
