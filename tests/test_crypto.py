#!/usr/bin/env python3
"""
Adaptor signature, DLEQ and oracle sigpoint tests.

Usage:
    python tests/test_crypto.py
"""

import os
import sys
import hashlib
import secrets
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from dlc.core import outcome_id
from dlc.crypto.adaptor import (
    AdaptorSignature, AdaptorProof, adaptor_sign, adaptor_verify, adaptor_decrypt,
    ADAPTOR_SIGNATURE_SIZE, ADAPTOR_PROOF_SIZE,
)
from dlc.crypto.oracle import OracleInfo, attest
from dlc.crypto.secp256k1 import (
    G, N, parse_point, serialize_point, lift_x, pubkey_from_privkey,
    ecdsa_verify, int_from_bytes, tagged_hash,
)
from dlc.errors import MalformedInputError


SIGNER_PRIVKEY = bytes.fromhex("0123456789abcdef" * 4)
ORACLE_PRIVKEY = bytes.fromhex("33" * 32)
ORACLE_NONCE = bytes.fromhex("44" * 32)


class TestPointEncoding(unittest.TestCase):

    def test_pubkey_round_trip(self):
        pubkey = pubkey_from_privkey(SIGNER_PRIVKEY)
        self.assertEqual(len(pubkey), 33)
        self.assertIn(pubkey[0], (0x02, 0x03))
        self.assertEqual(serialize_point(parse_point(pubkey)), pubkey)

    def test_generator_encoding(self):
        self.assertEqual(
            pubkey_from_privkey((1).to_bytes(32, "big")).hex(),
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798",
        )

    def test_parse_rejects_bad_prefix(self):
        pubkey = pubkey_from_privkey(SIGNER_PRIVKEY)
        with self.assertRaises(MalformedInputError):
            parse_point(b'\x04' + pubkey[1:])

    def test_parse_rejects_wrong_length(self):
        with self.assertRaises(MalformedInputError):
            parse_point(b'\x02' + b'\x01' * 31)

    def test_lift_x_even(self):
        point = lift_x(serialize_point(G * 7)[1:])
        self.assertIsNotNone(point)
        self.assertEqual(point.y() % 2, 0)

    def test_lift_x_out_of_field(self):
        self.assertIsNone(lift_x(b'\xff' * 32))
        self.assertIsNone(lift_x(b'\x01' * 31))

    def test_tagged_hash(self):
        tag = hashlib.sha256(b"BIP0340/challenge").digest()
        self.assertEqual(tagged_hash("BIP0340/challenge", b"m"),
                         hashlib.sha256(tag + tag + b"m").digest())


class TestAdaptorSignature(unittest.TestCase):

    def setUp(self):
        self.pubkey = pubkey_from_privkey(SIGNER_PRIVKEY)
        self.decryption_key = secrets.token_bytes(32)
        self.encryption_key = serialize_point(G * int_from_bytes(self.decryption_key))
        self.msg = hashlib.sha256(b"cet").digest()
        self.sig, self.proof = adaptor_sign(SIGNER_PRIVKEY, self.encryption_key, self.msg)

    def test_verify(self):
        self.assertTrue(adaptor_verify(self.pubkey, self.msg, self.encryption_key,
                                       self.sig, self.proof))

    def test_wrong_message(self):
        other = hashlib.sha256(b"other").digest()
        self.assertFalse(adaptor_verify(self.pubkey, other, self.encryption_key,
                                        self.sig, self.proof))

    def test_wrong_pubkey(self):
        other = pubkey_from_privkey(bytes.fromhex("22" * 32))
        self.assertFalse(adaptor_verify(other, self.msg, self.encryption_key,
                                        self.sig, self.proof))

    def test_wrong_encryption_key(self):
        other = serialize_point(G * 12345)
        self.assertFalse(adaptor_verify(self.pubkey, self.msg, other, self.sig, self.proof))

    def test_tampered_proof(self):
        e = bytearray(self.proof.e)
        e[0] ^= 0x80
        proof = AdaptorProof(self.proof.r_a, bytes(e), self.proof.s)
        self.assertFalse(adaptor_verify(self.pubkey, self.msg, self.encryption_key,
                                        self.sig, proof))

    def test_proof_from_other_signature(self):
        _, other_proof = adaptor_sign(SIGNER_PRIVKEY, self.encryption_key, self.msg)
        self.assertFalse(adaptor_verify(self.pubkey, self.msg, self.encryption_key,
                                        self.sig, other_proof))

    def test_undecodable_nonce_point(self):
        sig = AdaptorSignature(b'\x05' + self.sig.nonce_point[1:], self.sig.s_prime)
        self.assertFalse(adaptor_verify(self.pubkey, self.msg, self.encryption_key,
                                        sig, self.proof))

    def test_zero_s(self):
        sig = AdaptorSignature(self.sig.nonce_point, b'\x00' * 32)
        self.assertFalse(adaptor_verify(self.pubkey, self.msg, self.encryption_key,
                                        sig, self.proof))

    def test_decrypt(self):
        der = adaptor_decrypt(self.sig, self.decryption_key)
        self.assertTrue(ecdsa_verify(self.pubkey, der, self.msg))

    def test_wire_format(self):
        raw_sig = self.sig.to_bytes()
        raw_proof = self.proof.to_bytes()
        self.assertEqual(len(raw_sig), ADAPTOR_SIGNATURE_SIZE)
        self.assertEqual(len(raw_proof), ADAPTOR_PROOF_SIZE)
        self.assertEqual(AdaptorSignature.from_bytes(raw_sig), self.sig)
        self.assertEqual(AdaptorProof.from_bytes(raw_proof), self.proof)

    def test_wire_format_length_checked(self):
        with self.assertRaises(MalformedInputError):
            AdaptorSignature.from_bytes(self.sig.to_bytes()[:-1])
        with self.assertRaises(MalformedInputError):
            AdaptorProof.from_bytes(self.proof.to_bytes() + b'\x00')


class TestOracle(unittest.TestCase):

    def setUp(self):
        self.oracle = OracleInfo.from_secrets(ORACLE_PRIVKEY, ORACLE_NONCE)

    def test_sigpoint_matches_attestation(self):
        for name in ("heads", "tails", "draw"):
            outcome = outcome_id(name)
            s = attest(ORACLE_PRIVKEY, ORACLE_NONCE, outcome)
            self.assertEqual(self.oracle.compute_sigpoint(outcome),
                             serialize_point(G * int_from_bytes(s)))

    def test_sigpoints_distinct(self):
        points = {self.oracle.compute_sigpoint(outcome_id(n)) for n in ("a", "b", "c")}
        self.assertEqual(len(points), 3)

    def test_undecodable_commitment(self):
        broken = OracleInfo(self.oracle.pubkey, b'\xff' * 32)
        self.assertIsNone(broken.compute_sigpoint(outcome_id("heads")))

    def test_wire_format(self):
        self.assertEqual(OracleInfo.from_bytes(self.oracle.to_bytes()), self.oracle)
        with self.assertRaises(MalformedInputError):
            OracleInfo.from_bytes(b'\x00' * 63)

    def test_attestation_is_bip340_s(self):
        """(R, s) is a BIP340 signature: s*G == R + e*P."""
        outcome = outcome_id("heads")
        s = int_from_bytes(attest(ORACLE_PRIVKEY, ORACLE_NONCE, outcome))
        e = int_from_bytes(tagged_hash(
            "BIP0340/challenge", self.oracle.r_value + self.oracle.pubkey + outcome)) % N
        expected = lift_x(self.oracle.r_value) + lift_x(self.oracle.pubkey) * e
        self.assertEqual(serialize_point(G * s), serialize_point(expected))


if __name__ == "__main__":
    unittest.main(verbosity=2)
