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

"""DKIM signing for building test messages.

The library itself only verifies; tests need freshly signed mail because
the fixture key is generated locally and no published message uses it.
"""

import base64
import hashlib
import os.path

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from emailauth import hash_headers, HashThrough, rfc822_parse, RE_BTAG
from emailauth.canonicalization import CanonicalizationPolicy

#: Signature time used unless a test asks for another one.
TIMESTAMP = 1678788068

SHOULD_SIGN = (
    b'from', b'to', b'subject', b'date', b'message-id', b'mime-version',
    b'content-type')


def read_test_data(filename):
    """Get the content of the given test data file.

    The files live in emailauth/tests/data.
    """
    path = os.path.join(os.path.dirname(__file__), 'data', filename)
    with open(path, 'rb') as f:
        return f.read()


def sign(message, selector=b'test', domain=b'example.com', privkey=None,
         canonicalize=(b'relaxed', b'relaxed'), include_headers=None,
         timestamp=TIMESTAMP, length=False, algorithm=b'rsa-sha256'):
    """Return a DKIM-Signature header field for message, ending in CRLF.

    @param privkey: PEM private key (default: the fixture key)
    @param include_headers: header names to sign (default: those from
    SHOULD_SIGN that are present)
    """
    if privkey is None:
        privkey = read_test_data('test.private')
    key = serialization.load_pem_private_key(privkey, password=None)
    headers, body = rfc822_parse(message)
    if include_headers is None:
        present = set(x.lower() for x, y in headers)
        include_headers = [x for x in SHOULD_SIGN if x in present]
    policy = CanonicalizationPolicy.from_c_value(b'/'.join(canonicalize))

    body = policy.canonicalize_body(body)
    bodyhash = base64.b64encode(hashlib.sha256(body).digest())
    sigfields = [
        (b'v', b"1"),
        (b'a', algorithm),
        (b'c', policy.to_c_value()),
        (b'd', domain),
        (b's', selector),
        (b't', str(timestamp).encode('ascii')),
        (b'h', b":".join(include_headers)),
        (b'bh', bodyhash),
        (b'b', b""),
        ]
    if length:
        sigfields.insert(-2, (b'l', str(len(body)).encode('ascii')))
    sig_value = b"; ".join(b"=".join(x) for x in sigfields)
    sig_value = RE_BTAG.sub(b'\\1', sig_value)
    dkim_header = (b'DKIM-Signature', b' ' + sig_value)

    h = HashThrough(hashlib.sha256())
    hash_headers(h, policy, policy.canonicalize_headers(headers),
                 include_headers, dkim_header)
    sig = key.sign(h.hashed(), padding.PKCS1v15(), hashes.SHA256())
    return (b'DKIM-Signature: ' + sig_value + base64.b64encode(sig) +
            b"\r\n")


def signed_message(filename, **kwargs):
    message = read_test_data(filename)
    return sign(message, **kwargs) + message


def dnsfunc(name, timeout=5):
    """Serve the fixture key record for test._domainkey.example.com."""
    if name == b'test._domainkey.example.com.':
        return read_test_data('test.txt')
    return None
