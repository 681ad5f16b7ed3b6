from typing import Optional

from .der import ASN1_CONTEXT_3_TAG, ASN1_SEQUENCE_TAG, SCT_OID, DecodeError, DerElement, encode_element, \
    find_subsequence, iter_elements, read_sequence

# Upper bound on the [3] extensions field. Anything larger is treated as a misparse.
MAX_EXTENSION_SIZE = 10000


def extract_tbs_certificate(cert_der: bytes) -> bytes:
    cert = read_sequence(cert_der, 0)
    tbs = read_sequence(cert_der, cert.content_start, cert.end)
    return tbs.encoded(cert_der)


def _find_extensions_field(tbs_certificate: bytes, tbs: DerElement) -> Optional[DerElement]:
    for field in iter_elements(tbs_certificate, tbs.content_start, tbs.end):
        if field.tag == ASN1_CONTEXT_3_TAG:
            return field
    return None


def _filter_extensions(tbs_certificate: bytes, extensions: DerElement) -> bytes:
    kept = []
    for extension in iter_elements(tbs_certificate, extensions.content_start, extensions.end):
        if extension.tag != ASN1_SEQUENCE_TAG:
            raise DecodeError("Unexpected tag 0x{:02x} in extensions at offset {}".format(
                extension.tag, extension.start))
        if not find_subsequence(tbs_certificate, extension.content_start, extension.end, SCT_OID):
            kept.append(extension.encoded(tbs_certificate))
    return b"".join(kept)


def remove_sct_extension(tbs_certificate: bytes) -> bytes:
    """
    Rebuilds the TBSCertificate without its SCT list extension, which is what the log hashed when the
    precertificate was submitted. Returns the input unchanged when there is nothing to strip.

    Raises DecodeError on any structural problem, since hashing the wrong bytes would look exactly like a log
    that never saw the certificate.
    """
    tbs = read_sequence(tbs_certificate, 0)
    if tbs.end != len(tbs_certificate):
        raise DecodeError("{} trailing bytes after TBSCertificate".format(len(tbs_certificate) - tbs.end))

    field = _find_extensions_field(tbs_certificate, tbs)
    if field is None:
        return tbs_certificate
    if field.length > MAX_EXTENSION_SIZE:
        raise DecodeError("Extensions field of {} bytes exceeds the {} byte limit".format(
            field.length, MAX_EXTENSION_SIZE))

    extensions = read_sequence(tbs_certificate, field.content_start, field.end)
    if extensions.end != field.end:
        raise DecodeError("Unexpected data after extensions SEQUENCE at offset {}".format(extensions.end))
    if not find_subsequence(tbs_certificate, extensions.content_start, extensions.end, SCT_OID):
        return tbs_certificate

    kept = _filter_extensions(tbs_certificate, extensions)
    if kept:
        new_field = encode_element(ASN1_CONTEXT_3_TAG, encode_element(ASN1_SEQUENCE_TAG, kept))
    else:
        # Extensions ::= SEQUENCE SIZE (1..MAX), so an emptied list drops the field entirely
        new_field = b""

    content = tbs_certificate[tbs.content_start:field.start] + new_field + tbs_certificate[field.end:tbs.end]
    return encode_element(ASN1_SEQUENCE_TAG, content)


def reconstruct_precertificate(cert_der: bytes) -> bytes:
    return remove_sct_extension(extract_tbs_certificate(cert_der))
