"""Shared constant values for the Warden runtime."""

READ = "read"
WRITE = "write"

PERMISSIONS = frozenset({READ, WRITE})

OPERATIONS = {
    "read": {"symbol": "r", "requires": frozenset({READ})},
    "write": {"symbol": "w", "requires": frozenset({WRITE})},
    "open": {"symbol": "o", "requires": frozenset({READ, WRITE})},
}

SYMBOLS = {name: entry["symbol"] for name, entry in OPERATIONS.items()}

PRIMITIVES = ("+", "-", "*", "=", "<", ">")

TRUE = 1
FALSE = 0

STATE_COLORS = {
    "start": "#90CAF9",
    "accepting": "#8BC34A",
    "rejecting": "#FF7043",
    "sink": "#B0BEC5",
}

LOGBOOK_FILE = "warden.logbook.jsonl"
KEY_FILE = "warden_private_key.pem"
PUB_FILE = "warden_public_key.pem"
DOCUMENT_VERSION = "1.0"

# Interpreter recursion limit while a program is evaluated.
RECURSION_LIMIT = 8000

__all__ = [
    "READ",
    "WRITE",
    "PERMISSIONS",
    "OPERATIONS",
    "SYMBOLS",
    "PRIMITIVES",
    "TRUE",
    "FALSE",
    "STATE_COLORS",
    "LOGBOOK_FILE",
    "KEY_FILE",
    "PUB_FILE",
    "DOCUMENT_VERSION",
    "RECURSION_LIMIT",
]
