"""Warden run documents: program serialization, hashing and the logbook."""

from __future__ import annotations

from dataclasses import fields
from datetime import datetime, timezone
import hashlib
import json
import sys

from ..constants import DOCUMENT_VERSION, LOGBOOK_FILE
from . import crypto as _crypto
from .evaluator import RunResult, run
from .syntax import EXPR_TYPES, Expr

_NODE_TYPES = {cls.__name__: cls for cls in EXPR_TYPES}


def _utc_timestamp():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _field_to_json(value):
    if isinstance(value, Expr):
        return expr_to_dict(value)
    if isinstance(value, tuple):
        return [_field_to_json(item) for item in value]
    if isinstance(value, frozenset):
        return sorted(value)
    return value


def expr_to_dict(expr):
    """Return a JSON-safe dictionary for an expression tree."""

    if type(expr) not in _NODE_TYPES.values():
        raise TypeError(f"Cannot serialize {type(expr).__name__}")
    doc = {"node": type(expr).__name__}
    for f in fields(expr):
        doc[f.name] = _field_to_json(getattr(expr, f.name))
    return doc


def _field_from_json(value):
    if isinstance(value, dict):
        return expr_from_dict(value)
    if isinstance(value, list):
        return tuple(_field_from_json(item) for item in value)
    return value


def expr_from_dict(data):
    """Rebuild an expression tree produced by :func:`expr_to_dict`."""

    if not isinstance(data, dict):
        raise TypeError("Expression must be built from a mapping")
    kind = data.get("node")
    cls = _NODE_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown expression node: {kind!r}")
    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        kwargs[f.name] = _field_from_json(data[f.name])
    return cls(**kwargs)


def canonicalize_document(doc):
    """Sort mapping keys recursively so equal documents serialize identically."""

    def sort_dict(d):
        if isinstance(d, dict):
            return {k: sort_dict(v) for k, v in sorted(d.items())}
        elif isinstance(d, list):
            return [sort_dict(x) for x in d]
        else:
            return d

    return sort_dict(doc)


def hash_document(doc):
    """Compute the SHA-256 hash of a JSON document's canonical form."""
    canon = canonicalize_document(doc)
    data = json.dumps(canon, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_program(program):
    return hash_document(expr_to_dict(program))


def build_run_document(program, result: RunResult):
    """Create an in-memory record of a program and the outcome of running it."""

    return {
        "warden_version": DOCUMENT_VERSION,
        "timestamp": _utc_timestamp(),
        "program": expr_to_dict(program),
        "program_hash": hash_program(program),
        "result": result.to_dict(),
    }


def write_run_document(doc, filename):
    """Persist a run document to disk."""

    with open(filename, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    print(f"  ✓ Warden run exported → {filename}")
    return doc


def load_run_document(filename):
    with open(filename, "r", encoding="utf-8") as f:
        doc = json.load(f)
    verify_run_document(doc)
    return doc


def verify_run_document(doc):
    """Check that the embedded program still matches its recorded hash."""

    for key in ("program", "program_hash", "result"):
        if key not in doc:
            raise ValueError(f"Run document missing {key!r}")
    program = expr_from_dict(doc["program"])
    if hash_program(program) != doc["program_hash"]:
        raise ValueError("Run document program hash mismatch")
    return True


def reexecute_document(filename):
    """Re-run the program stored in a run document and compare outcomes."""

    doc = load_run_document(filename)
    print(f"Loaded Warden run v{doc['warden_version']} ({filename})")
    result = run(expr_from_dict(doc["program"]))
    replayed = result.to_dict()
    if replayed == doc["result"]:
        print("  ✓ outcome reproduced")
    else:
        print("  ✗ outcome differs from the recorded run")
        for key in ("ok", "value", "error", "trace"):
            if replayed[key] != doc["result"].get(key):
                print(f"    - {key}: {doc['result'].get(key)}\n    + {key}: {replayed[key]}")
    return result


def record_run(program, result: RunResult, logbook_path=None):
    """Append this run's summary to the Warden logbook, signed."""
    sha = hash_program(program)
    runtime_mod = sys.modules.get("warden.runtime")
    signer = getattr(runtime_mod, "sign_hash", _crypto.sign_hash)
    sig = signer(sha)

    entry = {
        "timestamp": _utc_timestamp(),
        "hash": sha,
        "signature": sig,
        "ok": result.ok,
        "error": result.tag,
        "trace": result.trace,
        "log_length": len(result.log),
        "first_log": result.log[0] if result.log else None,
        "last_log": result.log[-1] if result.log else None,
    }

    if logbook_path is None:
        logbook_path = getattr(runtime_mod, "LOGBOOK_FILE", LOGBOOK_FILE)
    with open(logbook_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")

    print(f"  📜 Recorded and signed run → {logbook_path}")
    return entry


def show_logbook(limit=10, logbook_path=None):
    """Display recent logbook entries."""
    if logbook_path is None:
        logbook_path = getattr(
            sys.modules.get("warden.runtime"), "LOGBOOK_FILE", LOGBOOK_FILE
        )

    try:
        with open(logbook_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        print("No logbook yet.")
        return []

    entries = [json.loads(l) for l in lines[-limit:]]
    print(f"\nWarden Logbook — last {len(entries)} entries:")
    for e in reversed(entries):
        verdict = "ok" if e["ok"] else e["error"]
        print(f"• {e['timestamp']}  [{verdict}]  trace={e['trace']!r}  {e['hash'][:12]}…")
        if e["first_log"] and e["last_log"]:
            print(f"    log: {e['first_log']} → {e['last_log']}")
    return entries


__all__ = [
    "build_run_document",
    "canonicalize_document",
    "expr_from_dict",
    "expr_to_dict",
    "hash_document",
    "hash_program",
    "load_run_document",
    "record_run",
    "reexecute_document",
    "show_logbook",
    "verify_run_document",
    "write_run_document",
]
