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
# Copyright (c) 2011 William Grant <me@williamgrant.id.au>
#
# This has been modified from the original software.

import base64
import hashlib
import unittest

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from emailauth.crypto import (
    load_public_key,
    parse_public_key,
    parse_public_key_record,
    RSASSA_PKCS1_v1_5_verify,
    UnparsableKeyError,
    )
from emailauth.tests.signing import read_test_data
from emailauth.util import parse_tag_value


# Extracted from emailauth/tests/data/test.pub.
TEST_KEY_MODULUS = int(
    'A4E8AC8EB9FA0ABB59AE58E44BEFED6DE595FF47440BFA9A990EAF00240889BC'
    'CEE20A9FC0B92741A2766C481C0AB9C8D90C0DC66A3AB84CAF0D5C9F0360E1AF'
    '226E7D8CCF1F3343143501824F4345EEA5612157D49B60A0CF1A7EC9FB21D383'
    '4DDD2D1211E1FDE84CDB710F390ABD898FC3B07E437FA775BF6513713E6A01DE'
    '4E31CF3E1AB5F6A30B21FA72413177ED8B87E204B8943E5A83F04AD0619625B2'
    'E148BA02446C48FA336FC86F6AB4610CCC93289F7188C47084FE2D292FD25C8B'
    'E0EABBBD3155E5F7CB02FF17CA33478F99B133A07332465A96B1E00B3EE0AB85'
    '5C2213063C06D6E65E92BE6D62BC361348C936148383E97CBE848BEAAE70D9D7',
    16)
TEST_KEY_PUBLIC_EXPONENT = 65537


class TestParseKeys(unittest.TestCase):

    def assertTestKey(self, key):
        numbers = key.public_numbers()
        self.assertEqual(TEST_KEY_MODULUS, numbers.n)
        self.assertEqual(TEST_KEY_PUBLIC_EXPONENT, numbers.e)

    def test_parse_public_key(self):
        data = read_test_data('test.txt')
        key = parse_public_key(base64.b64decode(parse_tag_value(data)[b'p']))
        self.assertTestKey(key)

    def test_parse_public_key_record(self):
        self.assertTestKey(parse_public_key_record(read_test_data('test.txt')))

    def test_load_pem(self):
        self.assertTestKey(load_public_key(read_test_data('test.pub')))

    def test_load_bare_base64(self):
        p = parse_tag_value(read_test_data('test.txt'))[b'p']
        self.assertTestKey(load_public_key(p))
        self.assertTestKey(load_public_key(p.decode('ascii')))

    def test_revoked_key(self):
        self.assertRaises(UnparsableKeyError, parse_public_key_record,
                          b'v=DKIM1; k=rsa; p=')

    def test_unknown_key_type(self):
        self.assertRaises(UnparsableKeyError, parse_public_key_record,
                          b'v=DKIM1; k=ed25519; p=AAAA')

    def test_garbage(self):
        self.assertRaises(UnparsableKeyError, parse_public_key, b'\x00\x01')
        self.assertRaises(UnparsableKeyError, load_public_key, b'not a key!')


class TestVerify(unittest.TestCase):

    def setUp(self):
        self.private = serialization.load_pem_private_key(
            read_test_data('test.private'), password=None)
        self.public = load_public_key(read_test_data('test.pub'))
        self.data = b'from:alice@example.com\r\nsubject:hi'
        self.signature = self.private.sign(
            self.data, padding.PKCS1v15(), hashes.SHA256())

    def test_good_signature(self):
        self.assertTrue(RSASSA_PKCS1_v1_5_verify(
            self.data, self.signature, self.public))

    def test_altered_data(self):
        self.assertFalse(RSASSA_PKCS1_v1_5_verify(
            self.data + b'!', self.signature, self.public))

    def test_signature_is_over_sha256(self):
        digest = hashlib.sha256(self.data).digest()
        self.assertFalse(RSASSA_PKCS1_v1_5_verify(
            digest, self.signature, self.public))


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
