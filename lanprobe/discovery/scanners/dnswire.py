"""
Strict DNS message reader.

Walks a DNS message section by section and renders the answer records in
zone-file text. Unlike zeroconf's lenient ``DNSIncoming``, any malformed
header, name, record or rdata raises ``MessageError`` instead of being
skipped, and the answer section is kept apart from the authority and
additional sections.
"""

import socket
import struct
from dataclasses import dataclass, field

HEADER = struct.Struct("!6H")
QUESTION_TAIL = struct.Struct("!HH")
RECORD_HEAD = struct.Struct("!HHIH")
SRV_HEAD = struct.Struct("!HHH")

# Top bit of the class field: QU in questions, cache-flush in records
CLASS_MASK = 0x7FFF
CLASS_IN = 1

TYPE_A = 1
TYPE_NS = 2
TYPE_CNAME = 5
TYPE_PTR = 12
TYPE_HINFO = 13
TYPE_TXT = 16
TYPE_AAAA = 28
TYPE_SRV = 33
TYPE_NSEC = 47

TYPE_NAMES = {
    TYPE_A: "A",
    TYPE_NS: "NS",
    TYPE_CNAME: "CNAME",
    TYPE_PTR: "PTR",
    TYPE_HINFO: "HINFO",
    TYPE_TXT: "TXT",
    TYPE_AAAA: "AAAA",
    TYPE_SRV: "SRV",
    TYPE_NSEC: "NSEC",
}

_MAX_POINTERS = 64
_MAX_NAME_LENGTH = 255


class MessageError(ValueError):
    """Raised when a DNS message is malformed."""

    pass


def type_name(rrtype: int) -> str:
    return TYPE_NAMES.get(rrtype, f"TYPE{rrtype}")


def class_name(rrclass: int) -> str:
    return "IN" if rrclass == CLASS_IN else f"CLASS{rrclass}"


@dataclass(frozen=True)
class Question:
    name: str
    qtype: int
    qclass: int
    unicast_response: bool


@dataclass(frozen=True)
class ResourceRecord:
    """An answer record with its rdata already rendered as text."""

    name: str
    rrtype: int
    rrclass: int
    ttl: int
    rdata: str
    cache_flush: bool = False

    def __str__(self) -> str:
        return (
            f"{self.name}\t{self.ttl}\t{class_name(self.rrclass)}"
            f"\t{type_name(self.rrtype)}\t{self.rdata}"
        )


@dataclass
class Message:
    id: int
    flags: int
    questions: list[Question] = field(default_factory=list)
    answers: list[ResourceRecord] = field(default_factory=list)


def _escape_label(label: bytes) -> str:
    text = label.decode("utf-8", errors="replace")
    return text.replace("\\", "\\\\").replace(".", "\\.")


def read_name(data: bytes, offset: int) -> tuple[str, int]:
    """
    Read a possibly compressed domain name.

    Returns:
        The dotted name with a trailing dot, and the offset just past the
        name as stored at ``offset``
    """
    labels: list[str] = []
    wire_length = 0
    end = None
    pointers = 0

    while True:
        if offset >= len(data):
            raise MessageError("name runs past end of message")
        length = data[offset]

        if length & 0xC0 == 0xC0:
            if offset + 1 >= len(data):
                raise MessageError("truncated compression pointer")
            pointers += 1
            if pointers > _MAX_POINTERS:
                raise MessageError("compression pointer loop")
            if end is None:
                end = offset + 2
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if pointer >= len(data):
                raise MessageError("compression pointer out of range")
            offset = pointer
            continue
        if length & 0xC0:
            raise MessageError(f"unsupported label type 0x{length & 0xC0:02x}")

        offset += 1
        if length == 0:
            break
        if offset + length > len(data):
            raise MessageError("label runs past end of message")
        wire_length += length + 1
        if wire_length + 1 > _MAX_NAME_LENGTH:
            raise MessageError("name longer than 255 octets")
        labels.append(_escape_label(data[offset : offset + length]))
        offset += length

    name = ".".join(labels) + "." if labels else "."
    return name, end if end is not None else offset


def _character_strings(rdata: bytes) -> list[str]:
    strings = []
    offset = 0
    while offset < len(rdata):
        length = rdata[offset]
        offset += 1
        if offset + length > len(rdata):
            raise MessageError("character-string runs past rdata")
        text = rdata[offset : offset + length].decode("utf-8", errors="replace")
        strings.append('"' + text.replace('"', '\\"') + '"')
        offset += length
    return strings


def _type_bitmap(bitmap: bytes) -> list[int]:
    types = []
    offset = 0
    while offset < len(bitmap):
        if offset + 2 > len(bitmap):
            raise MessageError("truncated NSEC window")
        window, length = bitmap[offset], bitmap[offset + 1]
        offset += 2
        if not 1 <= length <= 32 or offset + length > len(bitmap):
            raise MessageError("bad NSEC bitmap length")
        for i, octet in enumerate(bitmap[offset : offset + length]):
            for bit in range(8):
                if octet & (0x80 >> bit):
                    types.append(window * 256 + i * 8 + bit)
        offset += length
    return types


def _expect_end(consumed: int, end: int, rrtype: int) -> None:
    if consumed != end:
        raise MessageError(f"{type_name(rrtype)} rdata length mismatch")


def render_rdata(data: bytes, rrtype: int, start: int, end: int) -> str:
    """
    Render the rdata at ``data[start:end]``.

    Names inside rdata may point anywhere in the message, so the whole
    message is passed along. Types without a presentation format here use
    the generic RFC 3597 form.
    """
    rdata = data[start:end]

    if rrtype == TYPE_A:
        if len(rdata) != 4:
            raise MessageError("A rdata must be 4 octets")
        return socket.inet_ntop(socket.AF_INET, rdata)
    if rrtype == TYPE_AAAA:
        if len(rdata) != 16:
            raise MessageError("AAAA rdata must be 16 octets")
        return socket.inet_ntop(socket.AF_INET6, rdata)
    if rrtype in (TYPE_PTR, TYPE_CNAME, TYPE_NS):
        name, consumed = read_name(data, start)
        _expect_end(consumed, end, rrtype)
        return name
    if rrtype == TYPE_SRV:
        if len(rdata) < SRV_HEAD.size:
            raise MessageError("truncated SRV rdata")
        priority, weight, port = SRV_HEAD.unpack_from(data, start)
        target, consumed = read_name(data, start + SRV_HEAD.size)
        _expect_end(consumed, end, rrtype)
        return f"{priority} {weight} {port} {target}"
    if rrtype == TYPE_TXT:
        return " ".join(_character_strings(rdata))
    if rrtype == TYPE_HINFO:
        strings = _character_strings(rdata)
        if len(strings) != 2:
            raise MessageError("HINFO needs exactly two character-strings")
        return " ".join(strings)
    if rrtype == TYPE_NSEC:
        next_name, consumed = read_name(data, start)
        if consumed > end:
            raise MessageError("NSEC next name runs past rdata")
        types = " ".join(type_name(t) for t in _type_bitmap(data[consumed:end]))
        return f"{next_name} {types}".rstrip()

    return f"\\# {len(rdata)} {rdata.hex()}".rstrip()


def _read_question(data: bytes, offset: int) -> tuple[Question, int]:
    name, offset = read_name(data, offset)
    if offset + QUESTION_TAIL.size > len(data):
        raise MessageError("truncated question")
    qtype, qclass = QUESTION_TAIL.unpack_from(data, offset)
    question = Question(name, qtype, qclass & CLASS_MASK, bool(qclass & ~CLASS_MASK))
    return question, offset + QUESTION_TAIL.size


def _read_record(data: bytes, offset: int) -> tuple[ResourceRecord, int]:
    name, offset = read_name(data, offset)
    if offset + RECORD_HEAD.size > len(data):
        raise MessageError("truncated resource record")
    rrtype, rrclass, ttl, rdlength = RECORD_HEAD.unpack_from(data, offset)
    start = offset + RECORD_HEAD.size
    end = start + rdlength
    if end > len(data):
        raise MessageError(f"{type_name(rrtype)} rdata runs past end of message")
    record = ResourceRecord(
        name=name,
        rrtype=rrtype,
        rrclass=rrclass & CLASS_MASK,
        ttl=ttl,
        rdata=render_rdata(data, rrtype, start, end),
        cache_flush=bool(rrclass & ~CLASS_MASK),
    )
    return record, end


def parse_message(data: bytes) -> Message:
    """
    Decode a DNS message.

    Authority and additional records are checked but not returned.

    Raises:
        MessageError: If any part of the message is malformed
    """
    if len(data) < HEADER.size:
        raise MessageError(f"message shorter than header ({len(data)} bytes)")
    msg_id, flags, qdcount, ancount, nscount, arcount = HEADER.unpack_from(data)
    message = Message(id=msg_id, flags=flags)

    offset = HEADER.size
    for _ in range(qdcount):
        question, offset = _read_question(data, offset)
        message.questions.append(question)
    for _ in range(ancount):
        record, offset = _read_record(data, offset)
        message.answers.append(record)
    for _ in range(nscount + arcount):
        _, offset = _read_record(data, offset)

    return message
