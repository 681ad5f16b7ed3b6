import hmac
from typing import Iterator, Optional, Tuple

ASN1_OCTET_STRING_TAG = 0x04
ASN1_SEQUENCE_TAG = 0x30
ASN1_CONTEXT_3_TAG = 0xa3

# 1.3.6.1.4.1.11129.2.4.2, tag and length included
SCT_OID = bytes([0x06, 0x0a, 0x2b, 0x06, 0x01, 0x04, 0x01, 0xd6, 0x79, 0x02, 0x04, 0x02])


class DecodeError(Exception):
    pass


class DerElement:
    """
    A single TLV found in a DER buffer. Offsets index into the buffer it was read from:
    `start` is the tag byte, `content_start` the first content byte and `end` one past the last one.
    """

    def __init__(self, tag: int, start: int, content_start: int, end: int):
        self.tag = tag
        self.start = start
        self.content_start = content_start
        self.end = end

    @property
    def length(self) -> int:
        return self.end - self.content_start

    def content(self, data: bytes) -> bytes:
        return data[self.content_start:self.end]

    def encoded(self, data: bytes) -> bytes:
        return data[self.start:self.end]


def encode_big_endian(value: int, width: int) -> bytes:
    if value < 0:
        raise ValueError("Cannot encode negative value {}".format(value))
    if value >= 1 << (8 * width):
        raise ValueError("Value {} does not fit in {} bytes".format(value, width))
    return value.to_bytes(width, "big")


def parse_length(data: bytes, pos: int, end: Optional[int] = None) -> Tuple[int, int]:
    if end is None:
        end = len(data)
    if pos >= end:
        raise DecodeError("Length expected at offset {} but buffer ends at {}".format(pos, end))
    first = data[pos]
    pos += 1
    if first & 0x80 == 0:
        return first, pos

    num_bytes = first & 0x7f
    if num_bytes == 0:
        raise DecodeError("Indefinite length at offset {} is not valid DER".format(pos - 1))
    if pos + num_bytes > end:
        raise DecodeError("Long-form length at offset {} runs past the buffer".format(pos - 1))
    length = int.from_bytes(data[pos:pos + num_bytes], "big")
    return length, pos + num_bytes


def encode_length(length: int) -> bytes:
    if length < 0:
        raise ValueError("Negative length {}".format(length))
    if length < 0x80:
        return bytes([length])
    num_bytes = (length.bit_length() + 7) // 8
    if num_bytes > 0x7f:
        raise ValueError("Length {} is too large to encode".format(length))
    return bytes([0x80 | num_bytes]) + encode_big_endian(length, num_bytes)


def encode_element(tag: int, content: bytes) -> bytes:
    return bytes([tag]) + encode_length(len(content)) + content


def find_subsequence(data: bytes, start: int, end: int, needle: bytes) -> bool:
    return data.find(needle, start, end) != -1


def bytes_equal(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(bytes(a), bytes(b))


def read_tag(data: bytes, pos: int, end: Optional[int] = None) -> Tuple[int, int]:
    if end is None:
        end = len(data)
    if pos >= end:
        raise DecodeError("Tag expected at offset {} but buffer ends at {}".format(pos, end))
    tag = data[pos]
    if tag & 0x1f == 0x1f:
        raise DecodeError("High tag number form at offset {} is not supported".format(pos))
    return tag, pos + 1


def read_length(data: bytes, pos: int, end: Optional[int] = None) -> Tuple[int, int]:
    """
    Reads a length and checks that the content it announces fits before `end`.
    """
    if end is None:
        end = len(data)
    length, content_start = parse_length(data, pos, end)
    if content_start + length > end:
        raise DecodeError("Declared length {} at offset {} runs past the end of its container ({})".format(
            length, pos, end))
    return length, content_start


def read_element(data: bytes, pos: int, end: Optional[int] = None) -> DerElement:
    if end is None:
        end = len(data)
    tag, pos_after_tag = read_tag(data, pos, end)
    length, content_start = read_length(data, pos_after_tag, end)
    return DerElement(tag, pos, content_start, content_start + length)


def read_sequence(data: bytes, pos: int, end: Optional[int] = None, tag: int = ASN1_SEQUENCE_TAG) -> DerElement:
    element = read_element(data, pos, end)
    if element.tag != tag:
        raise DecodeError("Expected tag 0x{:02x} at offset {} but found 0x{:02x}".format(tag, pos, element.tag))
    return element


def iter_elements(data: bytes, start: int, end: int) -> Iterator[DerElement]:
    pos = start
    while pos < end:
        element = read_element(data, pos, end)
        yield element
        pos = element.end
