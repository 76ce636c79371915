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

__all__ = [
    'EmailAuthException',
    'MalformedEmailError',
    'MissingSignatureError',
    'UnsupportedAlgorithmError',
    'UnsupportedModeError',
    'BodyHashMismatchError',
    'SelectorNotFoundError',
    'CapacityExceededError',
    'MissingFieldError',
    'ProofGenerationError',
    'KeyFormatError',
    'ParameterError',
    'ValidationError',
    ]


class EmailAuthException(Exception):
    """Base class for circuit input generation errors.

    Every error remembers the pipeline stage it was raised in and, where
    there is one, the offending field, so callers can report more than
    the message text.
    """

    #: Stage used when the raiser does not name one.
    default_stage = None

    def __init__(self, message, stage=None, field=None):
        Exception.__init__(self, message)
        self.stage = stage or self.default_stage
        self.field = field

    def __str__(self):
        msg = Exception.__str__(self)
        context = [x for x in (self.stage, self.field) if x]
        if context:
            return "%s [%s]" % (msg, "/".join(context))
        return msg


class MalformedEmailError(EmailAuthException):
    """RFC822 message format error."""
    default_stage = 'parse'


class MissingSignatureError(EmailAuthException):
    """The message carries no DKIM-Signature header field."""
    default_stage = 'parse'


class UnsupportedAlgorithmError(EmailAuthException):
    """Signing or canonicalization algorithm the circuits cannot check."""
    default_stage = 'parse'


class UnsupportedModeError(UnsupportedAlgorithmError):
    """Unknown canonicalization mode."""
    default_stage = 'canonicalize'


class BodyHashMismatchError(EmailAuthException):
    """Computed body hash differs from the bh= value."""
    default_stage = 'hash'


class SelectorNotFoundError(EmailAuthException):
    """Body selector did not match the canonical body."""
    default_stage = 'select'


class CapacityExceededError(EmailAuthException):
    """A value does not fit in its fixed circuit array."""
    default_stage = 'encode'


class MissingFieldError(EmailAuthException):
    """A field required by the circuit variant is absent."""
    default_stage = 'assemble'


class ProofGenerationError(EmailAuthException):
    """The proving backend failed."""
    default_stage = 'prove'


class KeyFormatError(EmailAuthException):
    """Key format error while loading or parsing an RSA public key."""
    default_stage = 'key'


class ParameterError(EmailAuthException):
    """Input parameter error."""
    pass


class ValidationError(EmailAuthException):
    """Validation error."""
    default_stage = 'parse'
