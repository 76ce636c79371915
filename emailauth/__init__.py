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
# Copyright (c) 2016 Google, Inc.
# Contact: Brandon Long <blong@google.com>
#
# This has been modified from the original software.
# Copyright (c) 2016 Scott Kitterman <scott@kitterman.com>
#
# This has been modified from the original software.

import base64
import binascii
import re

from emailauth.canonicalization import CanonicalizationPolicy, select_headers
from emailauth.crypto import (
    HASH_ALGORITHMS,
    load_public_key,
    RSASSA_PKCS1_v1_5_verify,
    UnparsableKeyError,
    )
from emailauth.dnsplug import get_txt
from emailauth.errors import (
    BodyHashMismatchError,
    CapacityExceededError,
    EmailAuthException,
    KeyFormatError,
    MalformedEmailError,
    MissingFieldError,
    MissingSignatureError,
    ParameterError,
    ProofGenerationError,
    SelectorNotFoundError,
    UnsupportedAlgorithmError,
    UnsupportedModeError,
    ValidationError,
    )
from emailauth.selector import BodySelectorMatch, locate_selector
from emailauth.util import (
    get_default_logger,
    InvalidTagValueList,
    parse_tag_value,
    )
from emailauth.witness import (
    assemble,
    BodyFields,
    CircuitInput,
    HeaderAndBodyConfig,
    HeaderFields,
    HeaderOnlyConfig,
    )

__all__ = [
    "EmailAuthException",
    "BodyHashMismatchError",
    "CapacityExceededError",
    "KeyFormatError",
    "MalformedEmailError",
    "MissingFieldError",
    "MissingSignatureError",
    "ParameterError",
    "ProofGenerationError",
    "SelectorNotFoundError",
    "UnsupportedAlgorithmError",
    "UnsupportedModeError",
    "ValidationError",
    "Relaxed",
    "Simple",
    "BodySelectorMatch",
    "CircuitInput",
    "DkimSignature",
    "EmailAuth",
    "HeaderAndBodyConfig",
    "HeaderOnlyConfig",
    "Result",
    "generate",
    "generate_inputs",
    "parse",
]

Relaxed = b'relaxed'    # for clients passing emailauth.Relaxed
Simple = b'simple'      # for clients passing emailauth.Simple


def bitsize(x):
    """Return size of long in bits."""
    return len(bin(x)) - 2


class HashThrough(object):
    def __init__(self, hasher):
        self.data = []
        self.hasher = hasher
        self.name = hasher.name

    def update(self, data):
        self.data.append(data)
        return self.hasher.update(data)

    def digest(self):
        return self.hasher.digest()

    def hashed(self):
        return b''.join(self.data)


# FWS  =  ([*WSP CRLF] 1*WSP) /  obs-FWS ; Folding white space  [RFC5322]
FWS = br'(?:(?:\s*\r?\n)?\s+)?'
RE_BTAG = re.compile(br'([;\s]b'+FWS+br'=)(?:'+FWS+br'[a-zA-Z0-9+/=])*(?:\r?\n\Z)?')


def hash_headers(hasher, canonicalize_headers, headers, include_headers,
                 sigheader):
    """Update hash for signed message header fields.

    The signature header is hashed last, with its b= value removed and
    without a trailing CRLF, even if the canonicalization algorithm would
    add one.
    """
    sign_headers = select_headers(headers, include_headers)
    # The call to sub() assumes that the signature b= only appears
    # once in the signature header
    cheaders = canonicalize_headers.canonicalize_headers(
        [(sigheader[0], RE_BTAG.sub(b'\\1', sigheader[1]))])
    for x, y in sign_headers + [(x, y.rstrip(b'\r\n')) for x, y in cheaders]:
        hasher.update(x)
        hasher.update(b":")
        hasher.update(y)
    return sign_headers


def validate_signature_fields(sig, now=None):
    """Validate DKIM-Signature fields.

    Basic checks for presence and correct formatting of mandatory fields.
    The t= and x= clock checks only run when now is given, since proofs
    are routinely generated for old mail.

    @param sig: A dict mapping field keys to values.
    @param now: current time in seconds since the epoch, or None
    @raise MalformedEmailError: if a check fails
    """
    mandatory_fields = (b'v', b'a', b'b', b'bh', b'd', b'h', b's')
    for field in mandatory_fields:
        if field not in sig:
            raise MalformedEmailError(
                "signature missing %s=" % field.decode('ascii'),
                field=field.decode('ascii'))
    if sig[b'v'] != b"1":
        raise MalformedEmailError(
            "v= value is not 1 (%s)" % sig[b'v'], field='v')
    if re.match(br"[\s0-9A-Za-z+/]+=*$", sig[b'b']) is None:
        raise MalformedEmailError(
            "b= value is not valid base64 (%s)" % sig[b'b'], field='b')
    if re.match(br"[\s0-9A-Za-z+/]+=*$", sig[b'bh']) is None:
        raise MalformedEmailError(
            "bh= value is not valid base64 (%s)" % sig[b'bh'], field='bh')
    if b'i' in sig and (
        not sig[b'i'].lower().endswith(sig[b'd'].lower()) or
        sig[b'i'][-len(sig[b'd'])-1:-len(sig[b'd'])] not in (b'@', b'.')):
        raise MalformedEmailError(
            "i= domain is not a subdomain of d= (i=%s d=%s)" %
            (sig[b'i'], sig[b'd']), field='i')
    if b'l' in sig and re.match(br"\d{1,76}$", sig[b'l']) is None:
        raise MalformedEmailError(
            "l= value is not a decimal integer (%s)" % sig[b'l'], field='l')
    if b'q' in sig and sig[b'q'] != b"dns/txt":
        raise MalformedEmailError(
            "q= value is not dns/txt (%s)" % sig[b'q'], field='q')
    t_sign = 0
    if b't' in sig:
        if re.match(br"\d+$", sig[b't']) is None:
            raise MalformedEmailError(
                "t= value is not a decimal integer (%s)" % sig[b't'],
                field='t')
        t_sign = int(sig[b't'])
    if b'x' in sig:
        if re.match(br"\d+$", sig[b'x']) is None:
            raise MalformedEmailError(
                "x= value is not a decimal integer (%s)" % sig[b'x'],
                field='x')
        if int(sig[b'x']) < t_sign:
            raise MalformedEmailError(
                "x= value is less than t= value (x=%s t=%s)" %
                (sig[b'x'], sig[b't']), field='x')
    if now is not None:
        slop = 36000  # 10H leeway for mailers with inaccurate clocks
        if t_sign > now + slop:
            raise MalformedEmailError(
                "t= value is in the future (%s)" % sig[b't'], field='t')
        if b'x' in sig and int(sig[b'x']) < now - slop:
            raise MalformedEmailError(
                "x= value is past (%s)" % sig[b'x'], field='x')


def rfc822_parse(message):
    """Parse a message in RFC822 format.

    @param message: The message in RFC822 format. Either CRLF or LF is an
    accepted line separator.
    @return: Returns a tuple of (headers, body) where headers is a list of
    [name, value] pairs.  The body is a CRLF-separated string.
    @raise MalformedEmailError: no blank line ends the header, or a header
    line cannot be parsed.
    """
    headers = []
    lines = re.split(b"\r?\n", message)
    i = 0
    while i < len(lines):
        if len(lines[i]) == 0:
            if i == len(lines) - 1:
                # Only the final line separator, not a blank line.
                i += 1
                continue
            # End of headers, return what we have plus the body, excluding
            # the blank line.
            i += 1
            break
        if lines[i][:1] in (b"\t", b" ") and headers:
            headers[-1][1] += lines[i] + b"\r\n"
        else:
            m = re.match(br"([\x21-\x7e]+?):", lines[i])
            if m is not None:
                headers.append([m.group(1), lines[i][m.end(0):] + b"\r\n"])
            elif lines[i].startswith(b"From ") and not headers:
                pass
            else:
                raise MalformedEmailError(
                    "Unexpected characters in RFC822 header: %r" % lines[i])
        i += 1
    else:
        raise MalformedEmailError("no blank line between header and body")
    return (headers, b"\r\n".join(lines[i:]))


class DkimSignature(object):
    """A parsed DKIM-Signature header field.

    Built by L{EmailAuth.parse_signature}; the signed header bytes and
    their hash are computed once, when the record is made.
    """

    def __init__(self, fields, header, headers):
        self.fields = fields
        self.header = tuple(header)
        self.domain = fields[b'd']
        self.selector = fields[b's']
        self.algorithm = fields[b'a']
        self.policy = CanonicalizationPolicy.from_c_value(fields.get(b'c'))
        self.canonicalization_header = self.policy.header_algorithm.name
        self.canonicalization_body = self.policy.body_algorithm.name
        #: Lower case h= names followed by the signature field itself,
        #: which is always hashed last.
        self.signed_header_names = tuple(
            x.lower() for x in re.split(br"\s*:\s*", fields[b'h'].strip())
        ) + (b'dkim-signature',)
        self.body_hash_base64 = re.sub(br"\s+", b"", fields[b'bh'])
        self.signature_base64 = re.sub(br"\s+", b"", fields[b'b'])
        self.body_length = int(fields[b'l']) if b'l' in fields else None
        self.timestamp = int(fields[b't']) if b't' in fields else None

        h = HashThrough(HASH_ALGORITHMS[self.algorithm]())
        self.signed_headers = hash_headers(
            h, self.policy, self.policy.canonicalize_headers(headers),
            self.include_headers, self.header)
        #: Exactly the bytes the signature covers.
        self.signed_header = h.hashed()
        self.header_hash = h.digest()

    @property
    def include_headers(self):
        return list(self.signed_header_names[:-1])

    @property
    def signature(self):
        try:
            return base64.b64decode(self.signature_base64)
        except binascii.Error as e:
            raise MalformedEmailError("b= is not valid base64: %s" % e,
                                      field='b')

    @property
    def key_name(self):
        return self.selector + b"._domainkey." + self.domain + b"."

    def __repr__(self):
        return "DkimSignature(d=%r, s=%r, c=%r)" % (
            self.domain, self.selector, self.policy.to_c_value())


def hash_body(canonical_body, algorithm=b'rsa-sha256', length=None):
    """Digest a canonical body, honouring an l= body length."""
    if length is not None:
        canonical_body = canonical_body[:length]
    try:
        h = HASH_ALGORITHMS[algorithm]()
    except KeyError:
        raise UnsupportedAlgorithmError(
            "unknown signature algorithm: %s" % algorithm, stage='hash',
            field='a')
    h.update(canonical_body)
    return h.digest()


def verify_body_hash(digest, declared_hash):
    """Compare a body digest with a bh= value.

    >>> verify_body_hash(b'\\x00\\x01', b'AA E=')
    True
    """
    try:
        bh = base64.b64decode(re.sub(br"\s+", b"", declared_hash))
    except binascii.Error as e:
        raise MalformedEmailError("bh= is not valid base64: %s" % e,
                                  field='bh')
    return digest == bh


def check_body_hash(sig, canonical_body, ignore=False, logger=None):
    """Check the body against sig's bh= value.

    @return: True when the hash matches, False on a mismatch that ignore
    allowed through
    @raise BodyHashMismatchError: on mismatch unless ignore is set
    """
    if logger is None:
        logger = get_default_logger()
    bodyhash = hash_body(canonical_body, sig.algorithm, sig.body_length)
    logger.debug("bh: %s" % base64.b64encode(bodyhash))
    if verify_body_hash(bodyhash, sig.body_hash_base64):
        return True
    msg = "body hash mismatch (got %s, expected %s)" % (
        base64.b64encode(bodyhash), sig.body_hash_base64)
    if not ignore:
        raise BodyHashMismatchError(msg, field='bh')
    logger.warning("%s; continuing because the check is ignored" % msg)
    return False


#: Hold a message and options while preparing circuit inputs.
class EmailAuth(object):

    #: Create an EmailAuth instance for an rfc5322 message.
    #:
    #: @param message: an RFC822 formatted message
    #: (with either \\n or \\r\\n line endings)
    #: @param logger: a logger to which debug info will be written
    #: (default None)
    #: @param minkey: the minimum key size to accept
    #: @param now: time used for the t= and x= checks (default None: skip)
    def __init__(self, message=None, logger=None, minkey=1024, now=None):
        if logger is None:
            logger = get_default_logger()
        self.logger = logger
        self.minkey = minkey
        self.now = now
        self.set_message(message)

    #: Load a new message.
    #: @param message: an RFC822 formatted message
    #: (with either \\n or \\r\\n line endings)
    def set_message(self, message):
        if isinstance(message, str):
            message = message.encode('utf-8')
        if message:
            self.headers, self.body = rfc822_parse(message)
        else:
            self.headers, self.body = [], b''
        #: The DkimSignature chosen by parse_signature().
        self.signature = None
        #: The RSA public key last loaded.
        self.public_key = None
        #: The public key size last loaded.
        self.keysize = 0

    def parse_signature(self):
        """Parse the first usable DKIM-Signature header field.

        @return: L{DkimSignature}
        @raise MissingSignatureError: there is no DKIM-Signature field
        @raise MalformedEmailError: no DKIM-Signature field is well formed
        @raise UnsupportedAlgorithmError: a= or c= names something the
        circuits cannot check
        """
        sigheaders = [(x, y) for x, y in self.headers
                      if x.lower() == b"dkim-signature"]
        if not sigheaders:
            raise MissingSignatureError("message has no DKIM-Signature")

        first_error = None
        for sigheader in sigheaders:
            try:
                sig = parse_tag_value(sigheader[1])
                validate_signature_fields(sig, self.now)
            except InvalidTagValueList as e:
                first_error = first_error or MalformedEmailError(
                    "invalid DKIM-Signature tag list: %s" % e,
                    field='dkim-signature')
                continue
            except MalformedEmailError as e:
                first_error = first_error or e
                continue
            break
        else:
            raise first_error

        self.logger.debug("sig: %r" % sig)
        if sig[b'a'] not in HASH_ALGORITHMS:
            raise UnsupportedAlgorithmError(
                "unsupported signature algorithm: %s" % sig[b'a'], field='a')
        self.signature = DkimSignature(sig, sigheader, self.headers)
        self.logger.debug("sign headers: %r" % self.signature.signed_headers)
        return self.signature

    def load_key(self, dnsfunc=get_txt, public_key=None):
        """Load the signer's RSA key.

        @param dnsfunc: function looking up a TXT record by name
        @param public_key: PEM, base64 DER or key record to use instead of
        a DNS lookup
        @raise KeyFormatError: the key is missing, unparsable or too small
        """
        if self.signature is None:
            self.parse_signature()
        if public_key is None:
            name = self.signature.key_name
            public_key = dnsfunc(name)
            if not public_key:
                raise KeyFormatError("missing public key: %s" % name)
        try:
            pk = load_public_key(public_key)
        except UnparsableKeyError as e:
            raise KeyFormatError("could not parse public key: %s" % e)
        return self.set_public_key(pk)

    def set_public_key(self, pk):
        """Use an already loaded RSA key, subject to the minkey check."""
        self.keysize = bitsize(pk.public_numbers().n)
        if self.keysize < self.minkey:
            raise KeyFormatError("public key too small: %d" % self.keysize)
        self.public_key = pk
        return pk

    def verify_signature(self):
        """Check the header signature with the loaded key.

        @raise ValidationError: the signature does not verify
        """
        sig = self.signature
        # Since there should be only one From header, an extra unsigned
        # one means the message was tampered with (bug#644046).
        nfrom = len([x for x, y in self.headers if x.lower() == b'from'])
        if nfrom > sig.include_headers.count(b'from'):
            raise ValidationError("unsigned From header field",
                                  stage='key', field='from')
        if not RSASSA_PKCS1_v1_5_verify(
                sig.signed_header, sig.signature, self.public_key,
                sig.algorithm):
            raise ValidationError("signature did not verify",
                                  stage='key', field='b')
        self.logger.debug("%s valid" % sig.header[0])

    def canonical_body(self, ignore_body_hash_check=False):
        sig = self.signature
        body = sig.policy.canonicalize_body(self.body)
        if sig.body_length is not None:
            if sig.body_length > len(body):
                msg = "l= value %d is longer than the body (%d)" % (
                    sig.body_length, len(body))
                if not ignore_body_hash_check:
                    raise MalformedEmailError(msg, field='l')
                self.logger.warning("%s; using the whole body" % msg)
                return body
            body = body[:sig.body_length]
        return body

    def circuit_input(self, account_code, config):
        """Assemble circuit inputs once the key is loaded."""
        sig = self.signature
        if self.public_key is None:
            raise MissingFieldError("no public key loaded",
                                    field='public_key')
        if config.verify_signature:
            self.verify_signature()
        body = self.canonical_body(config.ignore_body_hash_check)
        check_body_hash(sig, body, config.ignore_body_hash_check,
                        self.logger)

        body_fields = None
        if config.body_parsing:
            match = None
            if config.selector_rule is not None:
                match = locate_selector(body, config.selector_rule)
                self.logger.debug("selector: %r" % match)
            body_fields = BodyFields(body, match)
        header_fields = HeaderFields(
            sig.signed_header, self.public_key.public_numbers().n)
        return assemble(header_fields, body_fields, account_code, sig,
                        config)

    def generate(self, account_code, config, dnsfunc=get_txt,
                 public_key=None):
        self.parse_signature()
        self.load_key(dnsfunc=dnsfunc, public_key=public_key)
        return self.circuit_input(account_code, config)


class Result(object):
    """Outcome of a pipeline run: a CircuitInput or the error that
    stopped it."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    @property
    def ok(self):
        return self.error is None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self):
        if self.ok:
            return "Result(value=<%s>)" % type(self.value).__name__
        return "Result(error=%r)" % self.error


def parse(message, logger=None, now=None):
    """Parse a message and its first usable DKIM signature.

    @param message: an RFC822 formatted message (with either \\n or \\r\\n
    line endings)
    @return: (headers, body, L{DkimSignature})
    """
    d = EmailAuth(message, logger=logger, now=now)
    return d.headers, d.body, d.parse_signature()


def generate_inputs(message, account_code, config, dnsfunc=get_txt,
                    public_key=None, logger=None, minkey=1024):
    """Prepare circuit inputs proving message was DKIM signed.

    @param message: an RFC822 formatted message (with either \\n or \\r\\n
    line endings)
    @param account_code: hex or decimal account code to bind
    @param config: L{HeaderOnlyConfig} or L{HeaderAndBodyConfig}
    @param dnsfunc: an optional function to lookup TXT resource records
    @param public_key: signer key to use instead of a DNS lookup
    @param logger: a logger to which debug info will be written
    @return: L{CircuitInput}
    @raise EmailAuthException: when any stage fails
    """
    d = EmailAuth(message, logger=logger, minkey=minkey)
    return d.generate(account_code, config, dnsfunc=dnsfunc,
                      public_key=public_key)


def generate(message, account_code, config, dnsfunc=get_txt,
             public_key=None, logger=None, minkey=1024):
    """Like L{generate_inputs}, but report failure in the returned
    L{Result} instead of raising."""
    try:
        return Result(value=generate_inputs(
            message, account_code, config, dnsfunc=dnsfunc,
            public_key=public_key, logger=logger, minkey=minkey))
    except EmailAuthException as x:
        return Result(error=x)
