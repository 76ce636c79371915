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

__all__ = [
    'HASH_ALGORITHMS',
    'parse_public_key',
    'parse_public_key_record',
    'load_public_key',
    'RSASSA_PKCS1_v1_5_verify',
    'UnparsableKeyError',
    ]

import base64
import binascii
import hashlib
import re

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from emailauth.util import InvalidTagValueList, parse_tag_value


#: Signature algorithms the circuits can check, mapped to their digest.
HASH_ALGORITHMS = {
    b'rsa-sha256': hashlib.sha256,
    }

_CRYPTOGRAPHY_HASHES = {
    b'rsa-sha256': hashes.SHA256,
    }


class UnparsableKeyError(Exception):
    """The data could not be parsed as a key."""
    pass


def parse_public_key(data):
    """Parse an RSA public key.

    @param data: DER-encoded X.509 subjectPublicKeyInfo
        containing an RFC3447 RSAPublicKey.
    @return: RSA public key
    """
    try:
        pk = serialization.load_der_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise UnparsableKeyError(str(e))
    if not isinstance(pk, rsa.RSAPublicKey):
        raise UnparsableKeyError("not an RSA key: %s" % type(pk).__name__)
    return pk


def parse_public_key_record(record):
    """Parse a DKIM key record (the DNS TXT value) into an RSA key.

    @param record: bytes such as b'v=DKIM1; k=rsa; p=MIIB...'
    @return: RSA public key
    """
    try:
        pub = parse_tag_value(record)
    except InvalidTagValueList as e:
        raise UnparsableKeyError("invalid key record: %s" % e)
    ktag = pub.get(b'k', b'rsa')
    if ktag != b'rsa':
        raise UnparsableKeyError("unsupported key type: %s" % ktag)
    if not pub.get(b'p'):
        # An empty p= means the key was revoked.
        raise UnparsableKeyError("incomplete or revoked public key")
    try:
        der = base64.b64decode(re.sub(br"\s+", b"", pub[b'p']), validate=True)
    except binascii.Error as e:
        raise UnparsableKeyError("p= is not valid base64: %s" % e)
    return parse_public_key(der)


def load_public_key(data):
    """Load a public key given as PEM, as a DNS key record, or as bare
    base64 DER.
    """
    if isinstance(data, str):
        data = data.encode('ascii')
    data = data.strip()
    if data.startswith(b'-----BEGIN'):
        try:
            pk = serialization.load_pem_public_key(data)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise UnparsableKeyError(str(e))
        if not isinstance(pk, rsa.RSAPublicKey):
            raise UnparsableKeyError("not an RSA key")
        return pk
    if b'=' in data and b'p=' in data:
        return parse_public_key_record(data)
    try:
        der = base64.b64decode(re.sub(br"\s+", b"", data), validate=True)
    except binascii.Error:
        raise UnparsableKeyError("not a public key: %r" % data[:40])
    return parse_public_key(der)


def RSASSA_PKCS1_v1_5_verify(signed_data, signature, pk,
                             algorithm=b'rsa-sha256'):
    """Verify a signature made with RFC3447 RSASSA-PKCS1-v1_5.

    @param signed_data: the bytes that were hashed and signed
    @param signature: signature byte string
    @param pk: RSA public key
    @return: True if the signature is valid, False otherwise
    """
    try:
        pk.verify(signature, signed_data, padding.PKCS1v15(),
                  _CRYPTOGRAPHY_HASHES[algorithm]())
    except InvalidSignature:
        return False
    return True
