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
# Copyright (c) 2017 Valimail Inc
# Contact: Gene Shuman <gene@valimail.com>
#
# This has been modified from the original software.

import aiodns

import emailauth
from emailauth.crypto import load_public_key, UnparsableKeyError
from emailauth.errors import KeyFormatError

__all__ = [
    'EmailAuth',
    'generate_inputs_async',
    'get_txt_async',
    'load_pk_from_dns_async',
    ]


async def get_txt_async(name, timeout=5):
    """Return a TXT record associated with a DNS name in an async loop. For
    DKIM we can assume there is only one."""
    if isinstance(name, bytes):
        try:
            name = name.decode('ascii')
        except UnicodeDecodeError:
            return None
    resolver = aiodns.DNSResolver(timeout=timeout)
    try:
        result = await resolver.query(name, 'TXT')
    except aiodns.error.DNSError:
        result = None

    if not result:
        return None
    txt = result[0].text
    if isinstance(txt, str):
        txt = txt.encode('utf-8')
    return txt


async def load_pk_from_dns_async(name, dnsfunc=get_txt_async, timeout=5):
    s = await dnsfunc(name, timeout=timeout)
    if not s:
        raise KeyFormatError("missing public key: %s" % name)
    try:
        return load_public_key(s)
    except UnparsableKeyError as e:
        raise KeyFormatError("could not parse public key: %s" % e)


class EmailAuth(emailauth.EmailAuth):
    """EmailAuth whose DNS lookups run on the event loop."""

    def __init__(self, message=None, logger=None, minkey=1024, now=None,
                 timeout=5):
        emailauth.EmailAuth.__init__(self, message, logger=logger,
                                     minkey=minkey, now=now)
        self.timeout = timeout

    async def load_key(self, dnsfunc=get_txt_async, public_key=None):
        if self.signature is None:
            self.parse_signature()
        if public_key is not None:
            return emailauth.EmailAuth.load_key(self, public_key=public_key)
        pk = await load_pk_from_dns_async(
            self.signature.key_name, dnsfunc, timeout=self.timeout)
        return self.set_public_key(pk)

    async def generate(self, account_code, config, dnsfunc=get_txt_async,
                       public_key=None):
        self.parse_signature()
        await self.load_key(dnsfunc=dnsfunc, public_key=public_key)
        return self.circuit_input(account_code, config)


async def generate_inputs_async(message, account_code, config,
                                dnsfunc=get_txt_async, public_key=None,
                                logger=None, minkey=1024, timeout=5):
    """Async form of L{emailauth.generate_inputs}."""
    d = EmailAuth(message, logger=logger, minkey=minkey, timeout=timeout)
    return await d.generate(account_code, config, dnsfunc=dnsfunc,
                            public_key=public_key)
