from __future__ import annotations

import json

import pytest

from yomu import cli
from yomu.library import Library


def _seeded_root(tmp_path):
    root = tmp_path / "library"
    library = Library(root)
    book = library.add_book("zoo.txt", "The elephant ran home.", title="Zoo")
    library.add_vocabulary("elephant", "象", "The elephant ran home.", book.id)
    return root, book


def test_no_arguments_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "highlight" in capsys.readouterr().out


def test_unknown_command_errors() -> None:
    with pytest.raises(SystemExit):
        cli.main(["teleport"])


def test_vocab_lists_records(tmp_path, capsys) -> None:
    root, book = _seeded_root(tmp_path)

    assert cli.main(["vocab", str(root), "--book", str(book.id)]) == 0
    out = capsys.readouterr().out
    assert "elephant" in out
    assert "Zoo" in out


def test_vocab_uses_root_from_environment(tmp_path, capsys, monkeypatch) -> None:
    root, _ = _seeded_root(tmp_path)
    monkeypatch.setenv("YOMU_ROOT", str(root))

    assert cli.main(["vocab", "--book", "999"]) == 0
    assert "No vocabulary saved yet." in capsys.readouterr().out


def test_vocab_delete(tmp_path, capsys) -> None:
    root, _ = _seeded_root(tmp_path)
    record_id = Library(root).list_vocabulary()[0].id

    cli.main(["vocab", str(root), "--delete", str(record_id)])
    cli.main(["vocab", str(root), "--delete", str(record_id)])

    out = capsys.readouterr().out
    assert f"Deleted vocabulary {record_id}." in out
    assert f"Vocabulary {record_id} was already gone." in out


def test_missing_root_is_reported(monkeypatch) -> None:
    monkeypatch.delenv("YOMU_ROOT", raising=False)

    with pytest.raises(SystemExit):
        cli.main(["vocab"])


def test_highlight_prints_book_with_jump(tmp_path, capsys) -> None:
    root, book = _seeded_root(tmp_path)

    assert cli.main(["highlight", str(book.id), "--root", str(root), "--jump", "Elephant"]) == 0
    captured = capsys.readouterr()
    assert "The elephant ran home." in captured.out
    assert "1 terms, 1 highlighted occurrences" in captured.err


def test_highlight_reports_missing_jump_term(tmp_path, capsys, monkeypatch) -> None:
    root, book = _seeded_root(tmp_path)
    monkeypatch.setattr(cli.time, "sleep", lambda _delay: None)

    assert cli.main(["highlight", str(book.id), "--root", str(root), "--jump", "tiger"]) == 0
    assert "'tiger' does not occur" in capsys.readouterr().err


def test_highlight_unknown_book_fails(tmp_path) -> None:
    root, _ = _seeded_root(tmp_path)

    assert cli.main(["highlight", "404", "--root", str(root)]) == 1


def test_export_then_import(tmp_path, capsys) -> None:
    root, _ = _seeded_root(tmp_path)
    backup = tmp_path / "backup.json"

    assert cli.main(["export", str(root), "-o", str(backup)]) == 0
    payload = json.loads(backup.read_text(encoding="utf-8"))
    assert payload["vocabulary"][0]["original"] == "elephant"

    fresh = tmp_path / "fresh"
    assert cli.main(["import", str(backup), "--root", str(fresh)]) == 0
    assert "Imported 1 books (1 files) and 1 vocabulary entries." in capsys.readouterr().out
    assert [record.original for record in Library(fresh).list_vocabulary()] == ["elephant"]


def test_import_rejects_invalid_json(tmp_path) -> None:
    backup = tmp_path / "broken.json"
    backup.write_text("{not json", encoding="utf-8")

    with pytest.raises(SystemExit):
        cli.main(["import", str(backup), "--root", str(tmp_path / "library")])


def test_web_builds_app_and_runs_uvicorn(tmp_path, monkeypatch, capsys) -> None:
    calls = {}

    def _fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli.uvicorn, "run", _fake_run)

    assert cli.main(["web", str(tmp_path / "library"), "--host", "127.0.0.1", "--port", "4000"]) == 0
    assert calls["port"] == 4000
    assert calls["app"].state.config.title == "yomu"
    formatter = calls["log_config"]["formatters"]["access"]["()"]
    assert formatter == "yomu.logging_utils.Utf8AccessFormatter"
    assert "http://127.0.0.1:4000/" in capsys.readouterr().out


def test_books_lists_local_library_by_title(tmp_path, capsys) -> None:
    root, _ = _seeded_root(tmp_path)
    Library(root).add_book("aardvark.txt", "", title="Aardvark")

    assert cli.main(["books", str(root), "--sort", "title"]) == 0
    out = capsys.readouterr().out
    assert out.index("Aardvark") < out.index("Zoo")


def test_books_asks_running_server(monkeypatch, capsys) -> None:
    requested = {}

    def _fake_list_books(self, sort=None):
        requested["base_url"] = self.base_url
        requested["sort"] = sort
        return [{"id": 4, "title": "Remote Book", "uploadDate": "2024-05-01"}]

    monkeypatch.setattr(cli.ReaderClient, "list_books", _fake_list_books)

    assert cli.main(["books", "--server", "http://reader.test:3000"]) == 0
    assert requested == {"base_url": "http://reader.test:3000", "sort": "recent"}
    assert "Remote Book" in capsys.readouterr().out


def test_books_reports_unreachable_server(monkeypatch) -> None:
    def _offline(self, sort=None):
        raise cli.ReaderUnavailableError("Failed to contact reader server")

    monkeypatch.setattr(cli.ReaderClient, "list_books", _offline)

    with pytest.raises(SystemExit):
        cli.main(["books", "--server", "http://reader.test:3000"])
