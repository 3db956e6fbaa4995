"""
Protocol definitions for the Line Chat Hub.

The wire format is plain text: one message per line, no framing beyond the
line terminator. The helpers below build the lines the server sends.
"""

from common.constants import MessageTemplates, LINE_ENCODING, LINE_TERMINATOR


def create_joined_message(name: str) -> str:
    """Line announcing a new participant."""
    return MessageTemplates.JOINED.format(name=name)


def create_left_message(name: str) -> str:
    """Line announcing a participant has gone."""
    return MessageTemplates.LEFT.format(name=name)


def create_chat_message(name: str, text: str) -> str:
    """Peer chat line, prefixed with the sender's display name."""
    return MessageTemplates.CHAT.format(name=name, text=text)


def create_server_message(text: str) -> str:
    """Operator broadcast line."""
    return MessageTemplates.SERVER.format(text=text)


def encode_line(line: str, encoding: str = LINE_ENCODING) -> bytes:
    """Encode a single line for the wire, appending the terminator."""
    return (line + LINE_TERMINATOR).encode(encoding, errors='replace')


def decode_line(data: bytes, encoding: str = LINE_ENCODING) -> str:
    """
    Decode one raw line read from the wire.

    Trailing '\\n' and '\\r\\n' are stripped; undecodable bytes are replaced
    rather than raising.
    """
    return data.decode(encoding, errors='replace').rstrip('\r\n')
