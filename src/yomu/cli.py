from __future__ import annotations

import argparse
import json
import os
import socket
import sys
import time
from importlib import metadata
from pathlib import Path
from typing import Callable

import tomllib
import uvicorn
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .client import ReaderClient, ReaderClientError, ReaderUnavailableError
from .highlight import AnnotatedRendering
from .library import BookNotFoundError, Library, LibraryError
from .locator import JUMP_RETRY_DELAY
from .logging_utils import build_uvicorn_log_config, set_debug_logging
from .reader import ReaderConfig, create_reader_app
from .session import LocalBackend, ReaderBackend, ReaderSession
from .vocab import VocabularyRecord

ROOT_ENV = "YOMU_ROOT"
SERVER_ENV = "YOMU_SERVER"
DEFAULT_PORT = 3000


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("yomu")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"yomu {__version__}",
    )


def _add_root_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=os.environ.get(ROOT_ENV),
        help=f"Library directory holding uploads and the database (default: ${ROOT_ENV}).",
    )


def _add_debug_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print debug logging from yomu modules.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu",
        description="Read plain-text books with your saved vocabulary highlighted.",
        epilog="Commands: web, highlight, books, vocab, export, import. Use `yomu <command> -h` for details.",
    )
    _add_version_flag(ap)
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu web",
        description="Serve the library as a browser-based reader.",
    )
    _add_version_flag(ap)
    _add_root_argument(ap)
    ap.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host interface for the web server (default: 0.0.0.0).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port for the web server (default: {DEFAULT_PORT}).",
    )
    ap.add_argument(
        "--title",
        default="yomu",
        help="Title shown in the browser tab (default: yomu).",
    )
    ap.add_argument(
        "--jump-retry-delay",
        type=float,
        default=JUMP_RETRY_DELAY,
        help=f"Seconds before the single jump retry (default: {JUMP_RETRY_DELAY}).",
    )
    _add_debug_flag(ap)
    return ap


def build_highlight_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu highlight",
        description="Print a book with vocabulary terms highlighted.",
    )
    _add_version_flag(ap)
    ap.add_argument("book_id", help="Book id to render.")
    ap.add_argument(
        "--root",
        default=os.environ.get(ROOT_ENV),
        help=f"Local library directory (default: ${ROOT_ENV}).",
    )
    ap.add_argument(
        "--server",
        default=os.environ.get(SERVER_ENV),
        help=f"Base URL of a running yomu server; overrides --root (default: ${SERVER_ENV}).",
    )
    ap.add_argument(
        "--jump",
        help="Mark the first occurrence of this vocabulary term.",
    )
    _add_debug_flag(ap)
    return ap


def build_books_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu books",
        description="List the books in a library or on a running server.",
    )
    _add_version_flag(ap)
    _add_root_argument(ap)
    ap.add_argument(
        "--server",
        default=os.environ.get(SERVER_ENV),
        help=f"Base URL of a running yomu server; overrides ROOT (default: ${SERVER_ENV}).",
    )
    ap.add_argument(
        "--sort",
        choices=["recent", "title"],
        default="recent",
        help="Order by upload date (newest first) or title (default: recent).",
    )
    return ap


def build_vocab_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu vocab",
        description="List saved vocabulary.",
    )
    _add_version_flag(ap)
    _add_root_argument(ap)
    ap.add_argument("--book", type=int, help="Only show terms saved from this book id.")
    ap.add_argument("--delete", type=int, metavar="ID", help="Delete the vocabulary record with this id.")
    _add_debug_flag(ap)
    return ap


def build_export_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu export",
        description="Write a JSON backup of books and vocabulary.",
    )
    _add_version_flag(ap)
    _add_root_argument(ap)
    ap.add_argument(
        "-o",
        "--output",
        help="Destination file (default: stdout).",
    )
    return ap


def build_import_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="yomu import",
        description="Restore a JSON backup into the library.",
    )
    _add_version_flag(ap)
    ap.add_argument("backup", help="Backup file produced by `yomu export`.")
    ap.add_argument(
        "--root",
        default=os.environ.get(ROOT_ENV),
        help=f"Library directory (default: ${ROOT_ENV}).",
    )
    return ap


def _require_root(parser: argparse.ArgumentParser, value: str | None) -> Path:
    if not value:
        parser.error(f"a library directory is required (argument or ${ROOT_ENV})")
    return Path(value).expanduser()


def _run_web(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    root = _require_root(parser, args.root)
    set_debug_logging(args.debug)
    config = ReaderConfig(root=root, title=args.title, jump_retry_delay=args.jump_retry_delay)
    app = create_reader_app(config)
    public_ip = _resolve_local_ip(args.host)
    url = f"http://{public_ip}:{args.port}/"
    print(f"Serving yomu library from {app.state.library.root}")
    print(f"Web URL: {url}")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="debug" if args.debug else "info",
        log_config=build_uvicorn_log_config(debug=args.debug),
    )
    return 0


def _blocking_scheduler(delay: float, callback: Callable[[], None]) -> None:
    time.sleep(delay)
    callback()


def render_rich_text(rendering: AnnotatedRendering, jump_index: int | None = None) -> Text:
    text = Text()
    for index, segment in enumerate(rendering):
        if not segment.is_highlight:
            text.append(segment.text)
        elif index == jump_index:
            text.append(segment.text, style="bold black on yellow")
        else:
            text.append(segment.text, style="underline cyan")
    return text


def _open_backend(args: argparse.Namespace, parser: argparse.ArgumentParser) -> ReaderBackend:
    if args.server:
        return ReaderClient(args.server)
    return LocalBackend(Library(_require_root(parser, args.root)))


def _run_highlight(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    set_debug_logging(args.debug)
    console = Console()
    err_console = Console(stderr=True)
    backend = _open_backend(args, parser)
    book_id: int | str = int(args.book_id) if args.book_id.isdigit() else args.book_id
    session = ReaderSession(backend, book_id, scheduler=_blocking_scheduler)
    try:
        session.open()
        if not session.text:
            err_console.print(f"[red]Book {args.book_id} has no readable content.[/red]")
            return 1
        jump_index = None
        if args.jump:
            request = session.jump_to(args.jump)
            if request.result is not None and request.result.found:
                jump_index = request.result.segment_index
            else:
                err_console.print(f"[yellow]'{args.jump}' does not occur in book {args.book_id}.[/yellow]")
        console.print(render_rich_text(session.rendering, jump_index))
        highlighted = sum(1 for _ in session.rendering.highlights())
        err_console.print(f"{len(session.terms)} terms, {highlighted} highlighted occurrences")
    finally:
        session.close()
        if isinstance(backend, ReaderClient):
            backend.close()
    return 0


def build_vocab_table(records: list[VocabularyRecord]) -> Table:
    table = Table(title="Vocabulary")
    table.add_column("ID", justify="right")
    table.add_column("Word")
    table.add_column("Translation")
    table.add_column("Book")
    table.add_column("Saved")
    for record in records:
        table.add_row(
            str(record.id),
            record.original,
            record.translation,
            record.book_title or "",
            record.created_at or "",
        )
    return table


def _run_vocab(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    set_debug_logging(args.debug)
    library = Library(_require_root(parser, args.root))
    console = Console()
    if args.delete is not None:
        if library.delete_vocabulary(args.delete):
            console.print(f"Deleted vocabulary {args.delete}.")
        else:
            console.print(f"Vocabulary {args.delete} was already gone.")
        return 0
    records = library.list_vocabulary()
    if args.book is not None:
        records = [record for record in records if record.belongs_to(args.book)]
    if not records:
        console.print("No vocabulary saved yet.")
        return 0
    console.print(build_vocab_table(records))
    return 0


def build_books_table(books: list[dict[str, object]]) -> Table:
    table = Table(title="Books")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Uploaded")
    for book in books:
        table.add_row(str(book.get("id", "")), str(book.get("title", "")), str(book.get("uploadDate") or ""))
    return table


def _run_books(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.server:
        client = ReaderClient(args.server)
        try:
            books = client.list_books(args.sort)
        finally:
            client.close()
    else:
        library = Library(_require_root(parser, args.root))
        books = [book.to_payload() for book in library.list_books(args.sort)]
    console = Console()
    if not books:
        console.print("No books uploaded yet.")
        return 0
    console.print(build_books_table(books))
    return 0


def _run_export(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    library = Library(_require_root(parser, args.root))
    payload = json.dumps(library.export_data(), ensure_ascii=False, indent=2)
    if args.output:
        output = Path(args.output).expanduser()
        output.write_text(payload + "\n", encoding="utf-8")
        Console(stderr=True).print(f"Wrote backup to {output}")
    else:
        print(payload)
    return 0


def _run_import(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    library = Library(_require_root(parser, args.root))
    backup = Path(args.backup).expanduser()
    try:
        payload = json.loads(backup.read_text(encoding="utf-8"))
    except FileNotFoundError:
        parser.error(f"backup not found: {backup}")
    except json.JSONDecodeError as exc:
        raise SystemExit(f"{backup} is not valid JSON: {exc}") from exc
    try:
        counts = library.import_data(payload)
    except ValueError as exc:
        raise SystemExit(f"Invalid backup: {exc}") from exc
    Console().print(
        f"Imported {counts['books']} books ({counts['files']} files) "
        f"and {counts['vocabulary']} vocabulary entries."
    )
    return 0


_COMMANDS: dict[str, tuple[Callable[[], argparse.ArgumentParser], Callable[..., int]]] = {
    "web": (build_web_parser, _run_web),
    "highlight": (build_highlight_parser, _run_highlight),
    "books": (build_books_parser, _run_books),
    "vocab": (build_vocab_parser, _run_vocab),
    "export": (build_export_parser, _run_export),
    "import": (build_import_parser, _run_import),
}


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] in _COMMANDS:
        build, run = _COMMANDS[argv[0]]
        sub_parser = build()
        sub_args = sub_parser.parse_args(argv[1:])
        try:
            return run(sub_args, sub_parser)
        except BookNotFoundError as exc:
            raise SystemExit(str(exc)) from exc
        except (LibraryError, ReaderClientError, ReaderUnavailableError) as exc:
            raise SystemExit(f"yomu {argv[0]} failed: {exc}") from exc

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    parser.error(f"unknown command: {argv[0]}")
    return 2


def _resolve_local_ip(host: str) -> str:
    if host not in {"", "0.0.0.0"}:
        return host
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"


if __name__ == "__main__":
    sys.exit(main())
