# TLS presentation-language structures from https://tools.ietf.org/html/rfc6962
from construct import Struct, Byte, Const, Int16ub, Int64ub, Enum, Bytes, Int24ub, this, GreedyRange, Prefixed

HashAlgorithm = Enum(Byte, none=0, md5=1, sha1=2, sha224=3, sha256=4, sha384=5, sha512=6)
SignatureAlgorithm = Enum(Byte, anonymous=0, rsa=1, dsa=2, ecdsa=3)

CtExtensions = Struct(
    "length" / Int16ub,
    "content" / Bytes(this.length)
)

DigitallySigned = Struct(
    "hash_algorithm" / HashAlgorithm,
    "signature_algorithm" / SignatureAlgorithm,
    "signature_length" / Int16ub,
    "signature" / Bytes(this.signature_length)
)

SignedCertificateTimestamp = Struct(
    "sct_version" / Byte,
    "log_id" / Bytes(32),
    "timestamp" / Int64ub,
    "extensions" / CtExtensions,
    "digitally_signed" / DigitallySigned
)

# Each list entry is an opaque SerializedSCT<1..2^16-1>
SerializedSCT = Prefixed(Int16ub, SignedCertificateTimestamp)

SignedCertificateTimestampList = Prefixed(Int16ub, GreedyRange(SerializedSCT))

# MerkleTreeLeaf restricted to a TimestampedEntry carrying a precert_entry
PrecertMerkleTreeLeaf = Struct(
    "version" / Const(0, Byte),
    "leaf_type" / Const(0, Byte),
    "timestamp" / Int64ub,
    "entry_type" / Const(1, Int16ub),
    "issuer_key_hash" / Bytes(32),
    "tbs_certificate_length" / Int24ub,
    "tbs_certificate" / Bytes(this.tbs_certificate_length),
    "extensions" / CtExtensions
)
