import base64
import io
import os
import ssl
import time
import unittest
import urllib.request
from unittest import mock

from sctaudit import ct_log_client
from sctaudit.log_directory import STATE_READONLY, STATE_RETIRED, STATE_USABLE
from sctaudit.merkle import TreeHead, hash_leaf, verify_audit_path
from sctaudit.stub_ct_log import StubCtLog


class TestCtLogClient(unittest.TestCase):
    def setUp(self):
        self.ct_log = StubCtLog(filler_leaves=5)
        self.debug = io.StringIO()
        self.client = ct_log_client.CtLogClient(timeout=2, debug_file=self.debug)

    def tearDown(self):
        self.ct_log.stop()

    def test_normalize_log_url(self):
        self.assertEqual("https://ct.example.com/log/", ct_log_client.normalize_log_url("ct.example.com/log"))
        self.assertEqual("http://localhost:8080/", ct_log_client.normalize_log_url("http://localhost:8080/"))

    def test_get_sth(self):
        sth = self.client.get_sth(self.ct_log.url)
        self.assertEqual(5, sth.tree_size)
        self.assertEqual(self.ct_log.tree.root(), sth.root_hash)
        self.assertIn("Fetching {}ct/v1/get-sth".format(self.ct_log.url), self.debug.getvalue())

    def test_get_sth_error_status(self):
        self.ct_log.sth_status = 500
        self.assertIsNone(self.client.get_sth(self.ct_log.url))
        self.assertIn("HTTP 500", self.debug.getvalue())

    def test_get_proof_by_hash(self):
        leaf = os.urandom(40)
        index = self.ct_log.add_leaf(leaf)
        self.ct_log.add_filler(2)
        sth = self.client.get_sth(self.ct_log.url)

        proof = self.client.get_proof_by_hash(self.ct_log.url, hash_leaf(leaf), sth.tree_size)
        self.assertEqual(index, proof.leaf_index)
        self.assertTrue(verify_audit_path(hash_leaf(leaf), proof.leaf_index, proof.audit_path, sth.tree_size,
                                          sth.root_hash))

        # The hash must reach the log url-encoded, '+' and '/' included
        encoded = [x for x in self.ct_log.requests if x.startswith("/ct/v1/get-proof-by-hash")][0]
        self.assertNotIn("+", encoded.split("?", 1)[1].replace("%2B", ""))
        self.assertIn("tree_size={}".format(sth.tree_size), encoded)

    def test_get_proof_unknown_hash(self):
        self.assertIsNone(self.client.get_proof_by_hash(self.ct_log.url, os.urandom(32), 5))
        self.assertIn("HTTP 404", self.debug.getvalue())

    def test_connection_refused(self):
        url = self.ct_log.url
        self.ct_log.stop()
        self.assertIsNone(self.client.get_sth(url))
        # Restart so tearDown has something to stop
        self.ct_log = StubCtLog()

    def test_read_failure(self):
        real_urlopen = urllib.request.urlopen

        def urlopen(url, *args, **kwargs):
            response = real_urlopen(url, *args, **kwargs)
            response.read = mock.Mock(side_effect=ssl.SSLError("decryption failed or bad record mac"))
            return response

        with mock.patch("urllib.request.urlopen", side_effect=urlopen):
            self.assertIsNone(self.client.get_sth(self.ct_log.url))
        self.assertIn("decryption failed", self.debug.getvalue())

    def test_timeout(self):
        self.ct_log.delay = 1.5
        client = ct_log_client.CtLogClient(timeout=0.2)
        start = time.monotonic()
        self.assertIsNone(client.get_sth(self.ct_log.url))
        self.assertLess(time.monotonic() - start, 1.4)

    def test_get_tree_head_usable_fetches(self):
        tree_head = self.client.get_tree_head(self.ct_log.log_info(STATE_USABLE))
        self.assertEqual(5, tree_head.tree_size)
        self.assertEqual(1, len(self.ct_log.requests))

    def test_get_tree_head_frozen_uses_final_head(self):
        final = TreeHead(3, self.ct_log.tree.root(3))
        for state in [STATE_READONLY, STATE_RETIRED]:
            self.assertIs(final, self.client.get_tree_head(self.ct_log.log_info(state, final_tree_head=final)))
        self.assertEqual(0, len(self.ct_log.requests))

    def test_get_tree_head_frozen_without_final_head_fetches(self):
        tree_head = self.client.get_tree_head(self.ct_log.log_info(STATE_RETIRED))
        self.assertEqual(5, tree_head.tree_size)


class TestResponseDecoding(unittest.TestCase):
    def test_decode_hash(self):
        digest = os.urandom(32)
        self.assertEqual(digest, ct_log_client._decode_hash(base64.b64encode(digest).decode('utf-8')))
        with self.assertRaises(ValueError):
            ct_log_client._decode_hash(base64.b64encode(b"short").decode('utf-8'))
        with self.assertRaises(ValueError):
            ct_log_client._decode_hash("not base64!")


if __name__ == '__main__':
    unittest.main()
