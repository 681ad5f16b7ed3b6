import hashlib
from typing import List, Optional

from .der import bytes_equal

HASH_SIZE = 32

# Leaves and interior nodes hash under different prefixes so that one can never be passed off as the other
LEAF_HASH_PREFIX = b"\x00"
NODE_HASH_PREFIX = b"\x01"


def hash_leaf(data: bytes) -> bytes:
    return hashlib.sha256(LEAF_HASH_PREFIX + data).digest()


def hash_children(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(NODE_HASH_PREFIX + left + right).digest()


def root_from_audit_path(leaf_hash: bytes, leaf_index: int, audit_path: List[bytes],
                         tree_size: int) -> Optional[bytes]:
    """
    Recomputes the tree root from a leaf hash and its inclusion proof, following RFC 9162 section 2.1.3.2.
    Returns None if the proof cannot belong to a tree of `tree_size` leaves (index out of range, path too long
    or too short).
    """
    if leaf_index < 0 or leaf_index >= tree_size:
        return None

    fn = leaf_index
    sn = tree_size - 1
    r = leaf_hash
    for p in audit_path:
        if len(p) != HASH_SIZE:
            return None
        if sn == 0:
            return None
        if fn & 1 == 1 or fn == sn:
            r = hash_children(p, r)
            if fn & 1 == 0:
                # Right-most node with no sibling at this level; climb until it becomes a right child
                while fn & 1 == 0 and fn != 0:
                    fn >>= 1
                    sn >>= 1
        else:
            r = hash_children(r, p)
        fn >>= 1
        sn >>= 1

    if sn != 0:
        return None
    return r


def verify_audit_path(leaf_hash: bytes, leaf_index: int, audit_path: List[bytes], tree_size: int,
                      root_hash: bytes) -> bool:
    computed = root_from_audit_path(leaf_hash, leaf_index, audit_path, tree_size)
    if computed is None:
        return False
    return bytes_equal(computed, root_hash)


class TreeHead:
    def __init__(self, tree_size: int, root_hash: bytes):
        self.tree_size = tree_size
        self.root_hash = root_hash

    def __repr__(self):
        return "TreeHead(tree_size={}, root_hash={})".format(self.tree_size, self.root_hash.hex())


class AuditProof:
    def __init__(self, leaf_index: int, audit_path: List[bytes]):
        self.leaf_index = leaf_index
        self.audit_path = audit_path
