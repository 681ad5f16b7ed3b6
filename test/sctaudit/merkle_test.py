import hashlib
import unittest

from sctaudit import merkle
from sctaudit.stub_ct_log import ReferenceMerkleTree


class TestMerkle(unittest.TestCase):
    def setUp(self):
        # Four leaf tree, laid out by hand:
        #          root
        #        /      \
        #     n01        n23
        #    /   \      /   \
        #   l0   l1    l2   l3
        self.leaves = [merkle.hash_leaf(bytes([i]) * 8) for i in range(4)]
        l0, l1, l2, l3 = self.leaves
        self.n01 = merkle.hash_children(l0, l1)
        self.n23 = merkle.hash_children(l2, l3)
        self.root = merkle.hash_children(self.n01, self.n23)
        self.paths = [
            [l1, self.n23],
            [l0, self.n23],
            [l3, self.n01],
            [l2, self.n01],
        ]

    def test_hash_prefixes(self):
        data = b"some leaf"
        self.assertEqual(hashlib.sha256(b"\x00" + data).digest(), merkle.hash_leaf(data))
        self.assertEqual(hashlib.sha256(b"\x01" + b"a" * 32 + b"b" * 32).digest(),
                         merkle.hash_children(b"a" * 32, b"b" * 32))

    def test_domain_separation(self):
        data = b"a" * 32 + b"b" * 32
        self.assertNotEqual(hashlib.sha256(b"\x00" + data).digest(), hashlib.sha256(b"\x01" + data).digest())
        self.assertNotEqual(merkle.hash_leaf(data), merkle.hash_children(b"a" * 32, b"b" * 32))

    def test_four_leaf_paths(self):
        for index in range(4):
            self.assertTrue(merkle.verify_audit_path(self.leaves[index], index, self.paths[index], 4, self.root))

    def test_wrong_index(self):
        self.assertFalse(merkle.verify_audit_path(self.leaves[0], 1, self.paths[0], 4, self.root))

    def test_flipped_byte(self):
        for index in range(4):
            for node in range(2):
                for position in [0, 17, 31]:
                    path = list(self.paths[index])
                    corrupted = bytearray(path[node])
                    corrupted[position] ^= 0x01
                    path[node] = bytes(corrupted)
                    self.assertFalse(merkle.verify_audit_path(self.leaves[index], index, path, 4, self.root))

    def test_flipped_root(self):
        root = bytes([self.root[0] ^ 0x80]) + self.root[1:]
        self.assertFalse(merkle.verify_audit_path(self.leaves[2], 2, self.paths[2], 4, root))

    def test_path_too_short(self):
        for index in range(4):
            self.assertFalse(merkle.verify_audit_path(self.leaves[index], index, self.paths[index][:1], 4, self.root))
        self.assertIsNone(merkle.root_from_audit_path(self.leaves[0], 0, [], 4))

    def test_path_too_long(self):
        for index in range(4):
            path = self.paths[index] + [self.leaves[0]]
            self.assertFalse(merkle.verify_audit_path(self.leaves[index], index, path, 4, self.root))
            self.assertIsNone(merkle.root_from_audit_path(self.leaves[index], index, path, 4))

    def test_index_out_of_range(self):
        self.assertFalse(merkle.verify_audit_path(self.leaves[3], 4, self.paths[3], 4, self.root))
        self.assertFalse(merkle.verify_audit_path(self.leaves[0], -1, self.paths[0], 4, self.root))
        self.assertFalse(merkle.verify_audit_path(self.leaves[0], 0, [], 0, self.root))

    def test_bad_node_size(self):
        path = [self.paths[0][0][:31], self.paths[0][1]]
        self.assertFalse(merkle.verify_audit_path(self.leaves[0], 0, path, 4, self.root))

    def test_single_leaf_tree(self):
        self.assertTrue(merkle.verify_audit_path(self.leaves[0], 0, [], 1, self.leaves[0]))
        self.assertFalse(merkle.verify_audit_path(self.leaves[0], 0, [self.leaves[1]], 1, self.leaves[0]))

    def test_unbalanced_trees(self):
        # Sizes that are not powers of two exercise the right-edge shortcut
        for size in [2, 3, 5, 6, 7, 9, 13]:
            tree = ReferenceMerkleTree([merkle.hash_leaf(b"leaf %d" % i) for i in range(size)])
            root = tree.root()
            for index in range(size):
                proof = tree.inclusion_proof(index)
                self.assertTrue(merkle.verify_audit_path(tree.leaf_hashes[index], index, proof, size, root),
                                "size {} index {}".format(size, index))
                self.assertEqual(root, merkle.root_from_audit_path(tree.leaf_hashes[index], index, proof, size))

    def test_proof_for_older_tree_size(self):
        tree = ReferenceMerkleTree([merkle.hash_leaf(b"leaf %d" % i) for i in range(10)])
        proof = tree.inclusion_proof(4, 7)
        self.assertTrue(merkle.verify_audit_path(tree.leaf_hashes[4], 4, proof, 7, tree.root(7)))
        self.assertFalse(merkle.verify_audit_path(tree.leaf_hashes[4], 4, proof, 10, tree.root(10)))


if __name__ == '__main__':
    unittest.main()
