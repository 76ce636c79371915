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
import os
import shutil
import sys
import tempfile
import unittest

from emailauth.errors import ParameterError, ProofGenerationError
from emailauth.prove import (
    generate_proof,
    ProofDriver,
    SnarkjsProofDriver,
    write_circuit_input,
    write_json_atomic,
    )
from emailauth.witness import CircuitInput


FAKE_SNARKJS = (
    "import json, sys\n"
    "json.dump({'protocol': 'groth16'}, open(sys.argv[-2], 'w'))\n"
    "json.dump(['1', '2'], open(sys.argv[-1], 'w'))\n")


class RecordingDriver(ProofDriver):

    def __init__(self):
        self.calls = []

    def prove(self, circuit_input, wasm_path, zkey_path, timeout=None):
        self.calls.append((dict(circuit_input), wasm_path, zkey_path, timeout))
        return {'protocol': 'groth16'}, ['1', '2']


def make_inputs():
    inputs = CircuitInput('email_auth')
    inputs['padded_header'] = ['102', '0']
    inputs['from_addr_idx'] = 5
    return inputs


class TestWriteJson(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_atomic_write(self):
        path = os.path.join(self.tmpdir, 'input.json')
        write_json_atomic(path, {'b': 1, 'a': [1, 2]})
        write_json_atomic(path, {'c': 3})
        with open(path) as f:
            self.assertEqual({'c': 3}, json.load(f))
        self.assertEqual(['input.json'], os.listdir(self.tmpdir))

    def test_indented_in_insertion_order(self):
        path = os.path.join(self.tmpdir, 'input.json')
        write_circuit_input(path, make_inputs())
        with open(path) as f:
            text = f.read()
        self.assertEqual(make_inputs().to_json(), text)
        self.assertLess(text.index('padded_header'),
                        text.index('from_addr_idx'))

    def test_unserializable_leaves_nothing(self):
        path = os.path.join(self.tmpdir, 'input.json')
        self.assertRaises(TypeError, write_json_atomic, path,
                          {'a': object()})
        self.assertEqual([], os.listdir(self.tmpdir))

    @unittest.skipIf(sys.platform == 'win32', 'POSIX permissions')
    def test_world_readable(self):
        path = os.path.join(self.tmpdir, 'input.json')
        write_json_atomic(path, {'a': 1})
        self.assertEqual(0o644, os.stat(path).st_mode & 0o777)

    def test_input_file_must_be_json(self):
        with self.assertRaises(ParameterError) as cm:
            write_circuit_input(os.path.join(self.tmpdir, 'input.txt'),
                                make_inputs())
        self.assertEqual('input_file', cm.exception.field)
        self.assertEqual([], os.listdir(self.tmpdir))


class TestGenerateProof(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.input_path = os.path.join(self.tmpdir, 'input.json')

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_artifacts_beside_input(self):
        driver = RecordingDriver()
        proof_path, public_path = generate_proof(
            driver, make_inputs(), self.input_path, timeout=30)
        self.assertEqual(
            os.path.join(self.tmpdir, 'email_auth_proof.json'), proof_path)
        self.assertEqual(
            os.path.join(self.tmpdir, 'email_auth_public.json'), public_path)
        with open(public_path) as f:
            self.assertEqual(['1', '2'], json.load(f))
        inputs, wasm, zkey, timeout = driver.calls[0]
        self.assertEqual(os.path.join(self.tmpdir, 'email_auth.wasm'), wasm)
        self.assertEqual(os.path.join(self.tmpdir, 'email_auth.zkey'), zkey)
        self.assertEqual(30, timeout)

    def test_body_circuit_names(self):
        inputs = CircuitInput('email_auth_with_body_parsing_with_qp_encoding')
        proof_path, public_path = generate_proof(
            RecordingDriver(), inputs, self.input_path)
        self.assertTrue(proof_path.endswith(
            'email_auth_with_body_parsing_with_qp_encoding_proof.json'))

    def test_interface(self):
        self.assertRaises(NotImplementedError, ProofDriver().prove,
                          make_inputs(), 'a.wasm', 'a.zkey')


class TestSnarkjsProofDriver(unittest.TestCase):

    def test_runs_prover(self):
        driver = SnarkjsProofDriver(command=(sys.executable, '-c',
                                             FAKE_SNARKJS))
        proof, public = driver.prove(make_inputs(), 'c.wasm', 'c.zkey',
                                     timeout=60)
        self.assertEqual({'protocol': 'groth16'}, proof)
        self.assertEqual(['1', '2'], public)

    def test_missing_binary(self):
        driver = SnarkjsProofDriver(command=('/nonexistent/snarkjs',))
        with self.assertRaises(ProofGenerationError) as cm:
            driver.prove(make_inputs(), 'c.wasm', 'c.zkey')
        self.assertEqual('prove', cm.exception.stage)

    def test_failure_exit(self):
        driver = SnarkjsProofDriver(command=(
            sys.executable, '-c', 'import sys; sys.exit("bad zkey")'))
        self.assertRaisesRegex(ProofGenerationError, 'bad zkey',
                               driver.prove, make_inputs(), 'c.wasm',
                               'c.zkey')

    def test_no_output(self):
        driver = SnarkjsProofDriver(command=(sys.executable, '-c', 'pass'))
        self.assertRaises(ProofGenerationError, driver.prove, make_inputs(),
                          'c.wasm', 'c.zkey')

    def test_timeout(self):
        driver = SnarkjsProofDriver(command=(
            sys.executable, '-c', 'import time; time.sleep(30)'))
        self.assertRaisesRegex(ProofGenerationError, 'timed out',
                               driver.prove, make_inputs(), 'c.wasm',
                               'c.zkey', timeout=0.5)


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
