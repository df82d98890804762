"""Tests for run documents, hashing and the logbook in ``warden.runtime.bitcode``."""

import json

import pytest

from warden import runtime
from warden.runtime.bitcode import (
    build_run_document,
    canonicalize_document,
    expr_from_dict,
    expr_to_dict,
    hash_document,
    hash_program,
    load_run_document,
    record_run,
    reexecute_document,
    show_logbook,
    verify_run_document,
    write_run_document,
)
from warden.runtime.evaluator import run
from warden.runtime.policies import no_read_after_write
from warden.runtime.syntax import (
    Call,
    Fun,
    IntLit,
    Let,
    Narrow,
    Read,
    Var,
    Write,
    seq,
)


def _guarded_program():
    return seq(
        Let("p", no_read_after_write()),
        Write("a"),
        Narrow(Var("p"), Call(Fun("x", Read("a"), {"read", "write"}), IntLit(0))),
    )


def test_expr_dict_preserves_the_tree():
    program = _guarded_program()
    doc = expr_to_dict(program)

    assert doc["node"] == "Seq"
    assert json.loads(json.dumps(doc)) == doc
    assert expr_from_dict(doc) == program

    fun = expr_to_dict(Fun("x", Write("b"), {"write", "read"}))
    assert fun["permissions"] == ["read", "write"]
    assert fun["body"] == {"node": "Write", "resource": "b"}


def test_expr_from_dict_rejects_unknown_nodes():
    with pytest.raises(ValueError, match="Unknown expression node"):
        expr_from_dict({"node": "Goto"})
    with pytest.raises(TypeError):
        expr_from_dict(["Seq"])
    with pytest.raises(TypeError, match="Cannot serialize"):
        expr_to_dict("not an expression")


def test_hash_ignores_key_order():
    a = {"b": [1, {"y": 2, "x": 1}], "a": 0}
    b = {"a": 0, "b": [1, {"x": 1, "y": 2}]}

    assert canonicalize_document(a) == canonicalize_document(b)
    assert hash_document(a) == hash_document(b)
    assert hash_program(Read("a")) != hash_program(Write("a"))


def test_run_document_round_trip_and_reexecution(tmp_path, capsys):
    program = _guarded_program()
    result = run(program)
    assert result.tag == "PolicyRestricted"

    doc = build_run_document(program, result)
    assert doc["program_hash"] == hash_program(program)
    assert doc["result"]["error"]["tag"] == "PolicyRestricted"

    path = tmp_path / "run.json"
    write_run_document(doc, path)
    loaded = load_run_document(path)
    assert loaded["program"] == doc["program"]

    replayed = reexecute_document(path)
    out = capsys.readouterr().out
    assert "outcome reproduced" in out
    assert replayed.to_dict() == result.to_dict()


def test_reexecution_reports_differences(tmp_path, capsys):
    program = Read("a")
    doc = build_run_document(program, run(program))
    doc["result"]["trace"] = "w"
    path = tmp_path / "tampered.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    reexecute_document(path)

    out = capsys.readouterr().out
    assert "outcome differs" in out
    assert "+ trace: r" in out


def test_verify_run_document_detects_tampering():
    program = Read("a")
    doc = build_run_document(program, run(program))
    assert verify_run_document(doc)

    doc["program"] = expr_to_dict(Write("a"))
    with pytest.raises(ValueError, match="hash mismatch"):
        verify_run_document(doc)

    with pytest.raises(ValueError, match="missing 'result'"):
        verify_run_document({"program": {}, "program_hash": ""})


def test_record_run_and_show_logbook(tmp_path, capsys, monkeypatch):
    logbook = tmp_path / "logbook.jsonl"
    monkeypatch.setattr(runtime, "sign_hash", lambda sha: f"sig:{sha}")

    program = _guarded_program()
    result = run(program)
    entry = record_run(program, result, logbook_path=logbook)

    assert entry["signature"] == f"sig:{hash_program(program)}"
    assert entry["ok"] is False
    assert entry["error"] == "PolicyRestricted"
    assert entry["trace"] == "w"
    assert entry["first_log"] == "write:a:permit"
    assert entry["last_log"] == "read:a:deny:policy"

    record_run(Read("b"), run(Read("b")), logbook_path=logbook)
    lines = logbook.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2

    entries = show_logbook(limit=5, logbook_path=logbook)
    out = capsys.readouterr().out
    assert len(entries) == 2
    assert "[PolicyRestricted]" in out
    assert "[ok]" in out


def test_record_run_uses_module_logbook_path(tmp_path, monkeypatch):
    logbook = tmp_path / "default.jsonl"
    monkeypatch.setattr(runtime, "LOGBOOK_FILE", str(logbook))
    monkeypatch.setattr(runtime, "sign_hash", lambda sha: "sig")

    record_run(Read("a"), run(Read("a")))

    assert logbook.exists()


def test_show_logbook_without_file(tmp_path, capsys):
    assert show_logbook(logbook_path=tmp_path / "absent.jsonl") == []
    assert "No logbook yet." in capsys.readouterr().out
