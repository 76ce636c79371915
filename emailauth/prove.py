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

"""Drive a Groth16 prover over generated circuit inputs."""

import json
import os
import subprocess
import tempfile

from emailauth.errors import ParameterError, ProofGenerationError
from emailauth.util import get_default_logger

__all__ = [
    'generate_proof',
    'ProofDriver',
    'SnarkjsProofDriver',
    'write_circuit_input',
    'write_json_atomic',
    ]


def write_json_atomic(path, obj):
    """Write obj as indented JSON, replacing path in one step."""
    text = json.dumps(obj, indent=2)
    dirname = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix='.tmp-', suffix='.json', dir=dirname)
    try:
        with os.fdopen(fd, 'w') as f:
            f.write(text)
        # mkstemp creates the file private to the owner.
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_circuit_input(path, inputs):
    if not path.endswith('.json'):
        raise ParameterError("input file must end in .json: %s" % path,
                             stage='prove', field='input_file')
    write_json_atomic(path, inputs)


class ProofDriver(object):
    """Interface to a proving backend.

    Drivers take a circuit input together with the compiled circuit
    (wasm) and proving key (zkey), and return the proof and the public
    signals as decoded JSON.
    """

    def prove(self, circuit_input, wasm_path, zkey_path, timeout=None):
        raise NotImplementedError


class SnarkjsProofDriver(ProofDriver):
    """Run "snarkjs groth16 fullprove" in a scratch directory."""

    def __init__(self, command=('snarkjs',), logger=None):
        self.command = list(command)
        if logger is None:
            logger = get_default_logger()
        self.logger = logger

    def prove(self, circuit_input, wasm_path, zkey_path, timeout=None):
        with tempfile.TemporaryDirectory(prefix='emailauth-') as tmpdir:
            input_path = os.path.join(tmpdir, 'input.json')
            proof_path = os.path.join(tmpdir, 'proof.json')
            public_path = os.path.join(tmpdir, 'public.json')
            with open(input_path, 'w') as f:
                f.write(json.dumps(circuit_input, indent=2))
            args = self.command + [
                'groth16', 'fullprove', input_path, wasm_path, zkey_path,
                proof_path, public_path]
            self.logger.debug("running %s" % " ".join(args))
            try:
                # run() kills the child when the timeout expires.
                proc = subprocess.run(args, cwd=tmpdir, timeout=timeout,
                                      stdout=subprocess.PIPE,
                                      stderr=subprocess.PIPE)
            except subprocess.TimeoutExpired:
                raise ProofGenerationError(
                    "prover timed out after %s seconds" % timeout)
            except OSError as e:
                raise ProofGenerationError(
                    "could not run %s: %s" % (self.command[0], e))
            if proc.returncode != 0:
                raise ProofGenerationError(
                    "prover exited with status %d: %s" % (
                        proc.returncode,
                        proc.stderr.decode('utf-8', 'replace').strip()))
            try:
                with open(proof_path) as f:
                    proof = json.load(f)
                with open(public_path) as f:
                    public_signals = json.load(f)
            except (OSError, ValueError) as e:
                raise ProofGenerationError("unreadable prover output: %s" % e)
        return proof, public_signals


def generate_proof(driver, inputs, input_path, timeout=None, logger=None):
    """Prove inputs and store the artifacts beside input_path.

    The circuit files are looked up as <circuit>.wasm and <circuit>.zkey
    in the directory of input_path; the proof and public signals are
    written there as <circuit>_proof.json and <circuit>_public.json.

    @param driver: a L{ProofDriver}
    @param inputs: L{emailauth.witness.CircuitInput}
    @return: (proof path, public signals path)
    """
    if logger is None:
        logger = get_default_logger()
    directory = os.path.dirname(os.path.abspath(input_path))
    name = inputs.circuit_name
    proof, public_signals = driver.prove(
        inputs, os.path.join(directory, name + '.wasm'),
        os.path.join(directory, name + '.zkey'), timeout=timeout)
    proof_path = os.path.join(directory, name + '_proof.json')
    public_path = os.path.join(directory, name + '_public.json')
    write_json_atomic(proof_path, proof)
    write_json_atomic(public_path, public_signals)
    logger.info("Wrote %s and %s" % (proof_path, public_path))
    return proof_path, public_path
