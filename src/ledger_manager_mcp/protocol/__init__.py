"""Protocol layer: command codec, HID framing, response decoders, and relay engine."""

from .commands import Command, Response, StatusCode, decode_command, encode_command
from .framing import build_reports, parse_reports
from .parser import parse_app_page, parse_app_pages, parse_device_identity
from .relay import RelaySession, parse_envelope
