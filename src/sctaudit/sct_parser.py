import datetime
from typing import List, Optional

from construct import ConstructError, Int16ub

from . import ctl_parser_structures
from .der import ASN1_CONTEXT_3_TAG, ASN1_OCTET_STRING_TAG, ASN1_SEQUENCE_TAG, SCT_OID, DecodeError, \
    iter_elements, read_element, read_sequence

ORIGIN_EMBEDDED = "embedded"
LOG_ID_LENGTH = 32
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


class SignedCertificateTimestamp:
    def __init__(self, version: int, log_id: bytes, timestamp: int, extensions: bytes,
                 signature_hash_algorithm: str, signature_algorithm: str, signature: bytes,
                 origin: str = ORIGIN_EMBEDDED):
        if len(log_id) != LOG_ID_LENGTH:
            raise ValueError("SCT log id must be {} bytes, got {}".format(LOG_ID_LENGTH, len(log_id)))
        self.version = version
        self.log_id = bytes(log_id)
        self.timestamp = timestamp
        self.extensions = bytes(extensions)
        self.signature_hash_algorithm = signature_hash_algorithm
        self.signature_algorithm = signature_algorithm
        self.signature = bytes(signature)
        self.origin = origin

    @property
    def log_id_hex(self) -> str:
        return self.log_id.hex()

    @property
    def timestamp_date(self) -> Optional[str]:
        try:
            dt = EPOCH + datetime.timedelta(milliseconds=self.timestamp)
        except OverflowError:
            return None
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def __eq__(self, other):
        if not isinstance(other, SignedCertificateTimestamp):
            return NotImplemented
        return self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((self.log_id, self.timestamp, self.signature))

    def __repr__(self):
        return "SignedCertificateTimestamp(log_id={}, timestamp={}, origin={})".format(
            self.log_id_hex, self.timestamp, self.origin)


def _algorithm_name(value) -> str:
    # construct hands back a str subclass for known codes and a bare int otherwise
    if isinstance(value, str):
        return str(value)
    return "unknown({})".format(int(value))


def find_sct_list(cert_der: bytes) -> Optional[bytes]:
    """
    Walks Certificate -> TBSCertificate -> [3] -> Extensions looking for the SCT list extension and returns the
    TLS-encoded SignedCertificateTimestampList, unwrapping both OCTET STRINGs RFC 6962 puts around it. Returns None
    when the certificate has no such extension or its DER is too broken to find it.
    """
    try:
        cert = read_sequence(cert_der, 0)
        tbs = read_sequence(cert_der, cert.content_start, cert.end)
        for field in iter_elements(cert_der, tbs.content_start, tbs.end):
            if field.tag != ASN1_CONTEXT_3_TAG:
                continue
            extensions = read_sequence(cert_der, field.content_start, field.end)
            for extension in iter_elements(cert_der, extensions.content_start, extensions.end):
                if extension.tag != ASN1_SEQUENCE_TAG:
                    continue
                extn_id = read_element(cert_der, extension.content_start, extension.end)
                if extn_id.encoded(cert_der) != SCT_OID:
                    continue
                # Skip over the optional "critical" BOOLEAN to reach extnValue
                for item in iter_elements(cert_der, extn_id.end, extension.end):
                    if item.tag == ASN1_OCTET_STRING_TAG:
                        inner = read_sequence(cert_der, item.content_start, item.end, tag=ASN1_OCTET_STRING_TAG)
                        return inner.content(cert_der)
                return None
    except DecodeError:
        return None
    return None


def parse_sct_list(data: bytes) -> List[SignedCertificateTimestamp]:
    """
    Decodes as many SCTs as the list holds. A truncated or malformed entry ends the walk but keeps everything
    decoded before it.
    """
    scts = []
    if len(data) < 2:
        return scts
    list_end = min(2 + Int16ub.parse(data[0:2]), len(data))

    pos = 2
    while pos + 2 <= list_end:
        entry_length = Int16ub.parse(data[pos:pos + 2])
        entry_end = pos + 2 + entry_length
        if entry_end > list_end:
            break
        try:
            parsed = ctl_parser_structures.SignedCertificateTimestamp.parse(data[pos + 2:entry_end])
        except ConstructError:
            break
        scts.append(SignedCertificateTimestamp(
            version=parsed.sct_version,
            log_id=parsed.log_id,
            timestamp=parsed.timestamp,
            extensions=parsed.extensions.content,
            signature_hash_algorithm=_algorithm_name(parsed.digitally_signed.hash_algorithm),
            signature_algorithm=_algorithm_name(parsed.digitally_signed.signature_algorithm),
            signature=parsed.digitally_signed.signature
        ))
        pos = entry_end
    return scts


def extract_scts(cert_der: bytes) -> List[SignedCertificateTimestamp]:
    sct_list = find_sct_list(cert_der)
    if sct_list is None:
        return []
    return parse_sct_list(sct_list)
