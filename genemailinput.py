#!/usr/bin/env python

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

import sys
import argparse

import emailauth
from emailauth.prove import (
    generate_proof,
    SnarkjsProofDriver,
    write_circuit_input,
    )
from emailauth.selector import ZKEMAIL_DIV
from emailauth.util import get_console_logger

parser = argparse.ArgumentParser(
    description='Generate zk-email circuit inputs for a DKIM signed message.')
parser.add_argument('--email-file', required=True, help='Path to an email file')
parser.add_argument('--account-code', required=True,
                    help="The account code for the sender's email address")
parser.add_argument('--input-file', required=True,
                    help='Path of a json file to write the generated input')
parser.add_argument('--silent', action='store_true', help='No console logs')
parser.add_argument('--body', action='store_true', help='Enable body parsing')
parser.add_argument('--selector', default=None,
                    help='Regular expression for the body region the circuit'
                    ' reads (default: the <div id="zkemail"> element)')
parser.add_argument('--public-key', default=None,
                    help='File holding the signer public key, instead of a'
                    ' DNS lookup')
parser.add_argument('--prove', action='store_true',
                    help='Also generate proof')
parser.add_argument('--timeout', type=float, default=None,
                    help='Seconds to allow the prover')
args = parser.parse_args()

logger = get_console_logger(args.silent)

if not args.input_file.endswith('.json'):
    print('--input-file path arg must end with .json', file=sys.stderr)
    sys.exit(1)

if args.body:
    selector = ZKEMAIL_DIV
    if args.selector is not None:
        selector = args.selector.encode('utf-8')
    config = emailauth.HeaderAndBodyConfig(
        max_header_length=1024, max_body_length=1024,
        ignore_body_hash_check=False, selector_rule=selector)
else:
    config = emailauth.HeaderOnlyConfig(
        max_header_length=1024, ignore_body_hash_check=True)
logger.info("Generating Inputs for: %s" % vars(args))

public_key = None
try:
    with open(args.email_file, 'rb') as f:
        message = f.read()
    if args.public_key is not None:
        with open(args.public_key, 'rb') as f:
            public_key = f.read()
except OSError as e:
    print("Error reading input: %s" % e, file=sys.stderr)
    sys.exit(1)

result = emailauth.generate(message, args.account_code, config,
                            public_key=public_key, logger=logger)
if not result.ok:
    print("Error generating inputs: %s" % result.error, file=sys.stderr)
    sys.exit(1)
inputs = result.value

try:
    write_circuit_input(args.input_file, inputs)
    logger.info("Inputs written to %s" % args.input_file)
    if args.prove:
        generate_proof(SnarkjsProofDriver(logger=logger), inputs,
                       args.input_file, timeout=args.timeout, logger=logger)
        logger.info("Proof for %s circuit generated" % inputs.circuit_name)
except (emailauth.EmailAuthException, OSError) as e:
    print("Error generating inputs: %s" % e, file=sys.stderr)
    sys.exit(1)
