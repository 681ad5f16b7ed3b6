import hashlib
from typing import List, Optional, Tuple

import asn1crypto.x509
from asn1crypto import pem

from . import ctl_parser_structures
from .merkle import hash_leaf
from .precert import reconstruct_precertificate
from .sct_parser import SignedCertificateTimestamp, extract_scts

# tbs_certificate is an opaque TBSCertificate<1..2^24-1>
MAX_TBS_CERTIFICATE_LENGTH = (1 << 24) - 1


class ChainCertificate:
    def __init__(self, raw_der: Optional[bytes] = None, spki_sha256: Optional[bytes] = None):
        self.raw_der = raw_der
        # SHA-256 of the SubjectPublicKeyInfo, if whoever handed us the chain already computed it
        self.spki_sha256 = spki_sha256


def pem_to_der(cert: bytes) -> bytes:
    if not pem.detect(cert):
        raise Exception("Unable to parse PEM: {!r}".format(cert[:64]))
    _, _, der_bytes = pem.unarmor(cert)
    return der_bytes


def pem_to_der_chain(data: bytes) -> List[bytes]:
    if not pem.detect(data):
        # Assume a single DER certificate
        return [data]
    chain = []
    for object_type, _, der_bytes in pem.unarmor(data, multiple=True):
        if object_type == "CERTIFICATE":
            chain.append(der_bytes)
    return chain


def issuer_key_hash(issuer: ChainCertificate) -> bytes:
    if issuer.spki_sha256 is not None:
        return issuer.spki_sha256
    cert = asn1crypto.x509.Certificate.load(issuer.raw_der)
    return hashlib.sha256(cert["tbs_certificate"]["subject_public_key_info"].dump()).digest()


def build_precert_merkle_tree_leaf(sct: SignedCertificateTimestamp, issuer_key_hash: bytes,
                                   tbs_certificate: bytes) -> bytes:
    if len(tbs_certificate) > MAX_TBS_CERTIFICATE_LENGTH:
        raise ValueError("TBSCertificate of {} bytes does not fit a 24-bit length".format(len(tbs_certificate)))
    if len(issuer_key_hash) != 32:
        raise ValueError("Issuer key hash must be 32 bytes, got {}".format(len(issuer_key_hash)))
    return ctl_parser_structures.PrecertMerkleTreeLeaf.build(dict(
        timestamp=sct.timestamp,
        issuer_key_hash=issuer_key_hash,
        tbs_certificate_length=len(tbs_certificate),
        tbs_certificate=tbs_certificate,
        extensions=dict(
            length=len(sct.extensions),
            content=sct.extensions
        )
    ))


def leaf_hash(merkle_tree_leaf: bytes) -> bytes:
    return hash_leaf(merkle_tree_leaf)


def cert_to_merkle_tree_leaves(cert_bytes: bytes, issuer: ChainCertificate) -> List[Tuple[bytes, bytes]]:
    key_hash = issuer_key_hash(issuer)
    tbs_certificate = reconstruct_precertificate(cert_bytes)
    leaves = []
    for sct in extract_scts(cert_bytes):
        leaves.append((sct.log_id, build_precert_merkle_tree_leaf(sct, key_hash, tbs_certificate)))
    return leaves


def cert_to_leaf_hashes(cert_bytes: bytes, issuer: ChainCertificate) -> List[Tuple[bytes, bytes]]:
    return [(log_id, leaf_hash(leaf)) for log_id, leaf in cert_to_merkle_tree_leaves(cert_bytes, issuer)]
