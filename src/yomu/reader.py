from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from fastapi import Body, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from .highlight import compile_rendering, serialize_segments
from .library import BookNotFoundError, Library, LibraryError
from .locator import JUMP_RETRY_DELAY, TRANSIENT_WINDOW
from .selection import smart_truncate_context
from .vocab import VocabularyNotifier, VocabularyStoreAdapter, serialize_records
from .web_assets import YOMU_FAVICON_URL

logger = logging.getLogger(__name__)

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>__YOMU_TITLE__</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <link rel="icon" type="image/svg+xml" href="__YOMU_FAVICON__">
  <style>
    :root {
      color-scheme: light;
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
      --bg: #f6f3ee;
      --panel: #ffffff;
      --outline: #e2ddd3;
      --text: #2c2c2c;
      --muted: #7a756c;
      --accent: #0ea5e9;
      --accent-soft: rgba(14,165,233,0.2);
      --danger: #ef4444;
    }
    * { box-sizing: border-box; }
    body { margin: 0; background: var(--bg); color: var(--text); }
    .hidden { display: none !important; }
    .app { display: grid; grid-template-columns: 300px 1fr; min-height: 100vh; }
    aside {
      border-right: 1px solid var(--outline);
      padding: 1rem;
      display: flex;
      flex-direction: column;
      gap: 1rem;
      background: var(--panel);
    }
    aside h1 { margin: 0; font-size: 1.2rem; }
    aside ul { list-style: none; margin: 0; padding: 0; display: flex; flex-direction: column; gap: 0.35rem; }
    aside li button.book { width: 100%; text-align: left; background: none; border: 1px solid var(--outline); border-radius: 8px; padding: 0.45rem 0.6rem; cursor: pointer; }
    aside li button.book.active { border-color: var(--accent); }
    .toolbar { display: flex; gap: 0.4rem; flex-wrap: wrap; }
    .toolbar button, .toolbar label { font-size: 0.8rem; border: 1px solid var(--outline); border-radius: 8px; padding: 0.3rem 0.6rem; background: var(--bg); cursor: pointer; }
    .status { min-height: 1.2rem; font-size: 0.85rem; color: var(--muted); }
    .status.error { color: var(--danger); }
    main { padding: 2rem 1.5rem; overflow-y: auto; max-height: 100vh; }
    .text-content {
      max-width: 800px;
      margin: 0 auto;
      background: var(--panel);
      border: 1px solid var(--outline);
      border-radius: 12px;
      padding: 2.5rem;
      white-space: pre-wrap;
      word-wrap: break-word;
      font-family: Georgia, serif;
      font-size: 18px;
      line-height: 1.8;
      user-select: text;
    }
    .vocab-highlight {
      background: linear-gradient(180deg, transparent 60%, var(--accent-soft) 60%);
      color: inherit;
      cursor: pointer;
      border-radius: 2px;
    }
    .vocab-highlight:hover { background: rgba(14,165,233,0.25); }
    .vocab-highlight.jump-flash { animation: jumpFlash 2s ease; background: rgba(250,204,21,0.6); }
    @keyframes jumpFlash { from { background: rgba(250,204,21,0.9); } to { background: rgba(250,204,21,0.2); } }
    .popup {
      position: absolute;
      background: var(--panel);
      border: 1px solid var(--outline);
      border-radius: 10px;
      box-shadow: 0 12px 30px rgba(0,0,0,0.15);
      padding: 1rem;
      width: 300px;
      z-index: 100;
    }
    .popup input { width: 100%; padding: 0.5rem; margin: 0.5rem 0; border: 1px solid var(--outline); border-radius: 6px; }
    .tooltip {
      position: absolute;
      background: var(--text);
      color: #fff;
      padding: 0.25rem 0.6rem;
      border-radius: 6px;
      font-size: 0.8rem;
      pointer-events: none;
      transform: translateX(-50%);
      z-index: 90;
    }
    .overlay { position: fixed; inset: 0; background: rgba(0,0,0,0.4); display: flex; align-items: center; justify-content: center; z-index: 200; }
    .detail { background: var(--panel); border-radius: 12px; padding: 1.5rem; max-width: 480px; width: 100%; }
    .detail .context { font-style: italic; color: var(--muted); }
    .vocab-list li { border-left: 3px solid var(--accent); padding: 0.3rem 0.5rem; font-size: 0.85rem; }
    .vocab-list .meta { color: var(--muted); font-size: 0.75rem; }
  </style>
</head>
<body>
  <div class="app">
    <aside>
      <h1>__YOMU_TITLE__</h1>
      <div class="toolbar">
        <label>Upload .txt<input id="upload" type="file" accept=".txt,text/plain" class="hidden"></label>
        <button id="export">Export</button>
        <label>Import<input id="import" type="file" accept="application/json" class="hidden"></label>
      </div>
      <div id="status" class="status"></div>
      <ul id="books"></ul>
      <h2>Vocabulary</h2>
      <ul id="vocab" class="vocab-list"></ul>
    </aside>
    <main>
      <div id="reader" class="text-content"></div>
    </main>
  </div>
  <div id="capture" class="popup hidden">
    <div id="capture-text"></div>
    <input id="capture-translation" type="text" placeholder="Translation">
    <button id="capture-save">Save</button>
    <button id="capture-close">Close</button>
  </div>
  <div id="tooltip" class="tooltip hidden"></div>
  <div id="detail-overlay" class="overlay hidden">
    <div class="detail">
      <h3 id="detail-word"></h3>
      <div id="detail-translation"></div>
      <p id="detail-context" class="context"></p>
      <div id="detail-meta" class="meta"></div>
    </div>
  </div>
  <script>
    const MAX_DEPTH = 5;
    const TAP_MAX_MS = 300;
    const TAP_MAX_PX = 10;
    const LONG_PRESS_MS = 500;
    const TRANSIENT_MS = __YOMU_TRANSIENT_MS__;
    const RETRY_MS = __YOMU_RETRY_MS__;

    const state = { book: null, records: {}, segments: [], capture: null, generation: 0 };
    const vocabListeners = [];
    const $ = (id) => document.getElementById(id);
    const reader = $("reader");

    function onVocabularyChanged(fn) { vocabListeners.push(fn); }
    function vocabularyChanged() { vocabListeners.forEach((fn) => fn()); }

    function setStatus(message, isError) {
      const el = $("status");
      el.textContent = message || "";
      el.classList.toggle("error", Boolean(isError));
    }

    async function fetchJson(url, options) {
      const res = await fetch(url, options);
      if (!res.ok) throw new Error(`${url}: ${res.status}`);
      return res.json();
    }

    async function loadBooks() {
      const books = await fetchJson("/api/books");
      const list = $("books");
      list.replaceChildren();
      books.forEach((book) => {
        const li = document.createElement("li");
        const btn = document.createElement("button");
        btn.className = "book" + (state.book && state.book.id === book.id ? " active" : "");
        btn.textContent = book.title;
        btn.addEventListener("click", () => openBook(book.id));
        li.appendChild(btn);
        list.appendChild(li);
      });
    }

    async function loadVocabulary() {
      let rows = [];
      try {
        rows = await fetchJson("/api/vocab");
      } catch (err) {
        setStatus("Could not load vocabulary", true);
      }
      const list = $("vocab");
      list.replaceChildren();
      rows.forEach((row) => {
        const li = document.createElement("li");
        const word = document.createElement("strong");
        word.textContent = row.original;
        const meta = document.createElement("div");
        meta.className = "meta";
        meta.textContent = `${row.translation || ""} - ${row.bookTitle || ""}`;
        const jump = document.createElement("button");
        jump.textContent = "Go";
        jump.addEventListener("click", () => {
          const url = `?book=${row.documentId}&jump=${encodeURIComponent(row.original)}`;
          window.history.pushState(null, "", url);
          openBook(row.documentId, row.original);
        });
        const del = document.createElement("button");
        del.textContent = "Delete";
        del.addEventListener("click", async () => {
          const res = await fetch(`/api/vocab/${row.id}`, { method: "DELETE" });
          if (res.ok || res.status === 404) vocabularyChanged();
        });
        li.append(word, meta, jump, del);
        list.appendChild(li);
      });
    }

    function renderSegments(segments) {
      const fragment = document.createDocumentFragment();
      segments.forEach((segment, index) => {
        if (segment.kind !== "highlight") {
          fragment.appendChild(document.createTextNode(segment.text));
          return;
        }
        const mark = document.createElement("mark");
        mark.className = "vocab-highlight";
        mark.dataset.segment = String(index);
        mark.dataset.recordId = String(segment.recordId);
        mark.textContent = segment.text;
        fragment.appendChild(mark);
      });
      reader.replaceChildren(fragment);
    }

    async function loadRendering(bookId, jumpTerm) {
      const generation = ++state.generation;
      const params = jumpTerm ? `?jump=${encodeURIComponent(jumpTerm)}` : "";
      let payload;
      try {
        payload = await fetchJson(`/api/books/${bookId}/rendering${params}`);
      } catch (err) {
        setStatus("Could not load book", true);
        return false;
      }
      if (generation !== state.generation) return false;
      state.book = payload.book;
      state.segments = payload.segments;
      state.records = {};
      payload.records.forEach((record) => { state.records[String(record.id)] = record; });
      renderSegments(payload.segments);
      return true;
    }

    function locate(term) {
      const needle = term.trim().toLowerCase();
      const marks = reader.querySelectorAll("mark.vocab-highlight");
      for (const mark of marks) {
        if (mark.textContent.toLowerCase() === needle) return mark;
      }
      return null;
    }

    function jumpTo(term, retried) {
      const mark = locate(term);
      if (!mark) {
        if (!retried) setTimeout(() => jumpTo(term, true), RETRY_MS);
        return;
      }
      mark.scrollIntoView({ block: "center", behavior: "smooth" });
      mark.classList.add("jump-flash");
      setTimeout(() => mark.classList.remove("jump-flash"), TRANSIENT_MS);
    }

    async function openBook(bookId, jumpTerm) {
      hidePopups();
      const ok = await loadRendering(bookId, jumpTerm);
      if (!ok) return;
      loadBooks();
      if (jumpTerm) jumpTo(jumpTerm, false);
    }

    function findMarker(target) {
      let node = target;
      for (let depth = 0; node && node !== reader && depth < MAX_DEPTH; depth += 1) {
        if (node.classList && node.classList.contains("vocab-highlight")) return node;
        node = node.parentElement;
      }
      return null;
    }

    function showDetail(recordId) {
      const record = state.records[String(recordId)];
      if (!record) {
        setStatus("No detail available", true);
        return;
      }
      $("detail-word").textContent = record.original;
      $("detail-translation").textContent = record.translation || "";
      $("detail-context").textContent = record.displayContext || "";
      $("detail-meta").textContent = `${record.bookTitle || ""} ${record.createdAt || ""}`;
      $("detail-overlay").classList.remove("hidden");
    }

    function hidePopups() {
      $("capture").classList.add("hidden");
      $("tooltip").classList.add("hidden");
      $("detail-overlay").classList.add("hidden");
      state.capture = null;
    }

    function captureSelection(suppressMenu) {
      const sel = window.getSelection();
      const text = sel ? sel.toString().trim() : "";
      if (!text || sel.rangeCount === 0) {
        state.capture = null;
        $("capture").classList.add("hidden");
        return false;
      }
      const range = sel.getRangeAt(0);
      const rect = range.getBoundingClientRect();
      state.capture = { text, context: range.startContainer.textContent || "", suppressMenu };
      const popup = $("capture");
      popup.style.top = `${rect.top + window.scrollY + rect.height + 8}px`;
      popup.style.left = `${rect.left + window.scrollX}px`;
      $("capture-text").textContent = text.length > 30 ? text.slice(0, 30) + "..." : text;
      $("capture-translation").value = "";
      popup.classList.remove("hidden");
      $("capture-translation").focus();
      return true;
    }

    function caretFromPoint(x, y) {
      if (document.caretRangeFromPoint) return document.caretRangeFromPoint(x, y);
      if (document.caretPositionFromPoint) {
        const pos = document.caretPositionFromPoint(x, y);
        if (!pos) return null;
        const range = document.createRange();
        range.setStart(pos.offsetNode, pos.offset);
        range.collapse(true);
        return range;
      }
      return null;
    }

    let rightDragging = false;
    reader.addEventListener("contextmenu", (event) => event.preventDefault());
    reader.addEventListener("mousedown", (event) => {
      if (event.button !== 2) return;
      rightDragging = true;
      const range = caretFromPoint(event.clientX, event.clientY);
      if (range) {
        const sel = window.getSelection();
        sel.removeAllRanges();
        sel.addRange(range);
      }
    });
    reader.addEventListener("mousemove", (event) => {
      if (!rightDragging || event.buttons !== 2) return;
      const range = caretFromPoint(event.clientX, event.clientY);
      const sel = window.getSelection();
      if (range && sel.rangeCount > 0) sel.extend(range.startContainer, range.startOffset);
    });
    reader.addEventListener("mouseup", (event) => {
      if (rightDragging && event.button === 2) {
        rightDragging = false;
        captureSelection(true);
      } else if (event.button === 0) {
        const sel = window.getSelection();
        if (sel && sel.toString().trim()) captureSelection(false);
      }
    });
    reader.addEventListener("click", (event) => {
      const marker = findMarker(event.target);
      if (!marker) {
        $("detail-overlay").classList.add("hidden");
        return;
      }
      event.preventDefault();
      event.stopPropagation();
      showDetail(marker.dataset.recordId);
    });
    reader.addEventListener("mouseover", (event) => {
      const tip = $("tooltip");
      const marker = event.target.classList && event.target.classList.contains("vocab-highlight") ? event.target : null;
      if (!marker) {
        tip.classList.add("hidden");
        return;
      }
      const record = state.records[marker.dataset.recordId];
      const rect = marker.getBoundingClientRect();
      tip.textContent = record ? record.translation : "";
      tip.style.top = `${rect.top + window.scrollY - 32}px`;
      tip.style.left = `${rect.left + window.scrollX + rect.width / 2}px`;
      tip.classList.remove("hidden");
    });
    reader.addEventListener("mouseout", () => $("tooltip").classList.add("hidden"));

    let touchStart = null;
    reader.addEventListener("touchstart", (event) => {
      const touch = event.touches[0];
      touchStart = { x: touch.clientX, y: touch.clientY, time: Date.now(), moved: false };
    });
    reader.addEventListener("touchmove", (event) => {
      if (!touchStart) return;
      const touch = event.touches[0];
      const distance = Math.abs(touch.clientX - touchStart.x) + Math.abs(touch.clientY - touchStart.y);
      if (distance > TAP_MAX_PX) touchStart.moved = true;
    });
    reader.addEventListener("touchend", (event) => {
      if (!touchStart) return;
      const duration = Date.now() - touchStart.time;
      const moved = touchStart.moved;
      touchStart = null;
      if (duration < TAP_MAX_MS && !moved) {
        const touch = event.changedTouches[0];
        const marker = findMarker(document.elementFromPoint(touch.clientX, touch.clientY));
        if (marker) {
          event.preventDefault();
          event.stopPropagation();
          showDetail(marker.dataset.recordId);
        }
      } else if (duration > LONG_PRESS_MS || moved) {
        setTimeout(() => captureSelection(false), 100);
      }
    });

    $("capture-close").addEventListener("click", hidePopups);
    $("detail-overlay").addEventListener("click", () => $("detail-overlay").classList.add("hidden"));
    $("capture-save").addEventListener("click", async () => {
      const translation = $("capture-translation").value.trim();
      if (!state.capture || !translation || !state.book) return;
      const res = await fetch("/api/vocab", {
        method: "POST",
        headers: { "Content-Type": "application/json" },
        body: JSON.stringify({
          original: state.capture.text,
          translation,
          context: state.capture.context,
          bookId: state.book.id,
        }),
      });
      if (!res.ok) {
        setStatus("Save failed, please retry", true);
        return;
      }
      setStatus("Saved");
      hidePopups();
      vocabularyChanged();
    });

    $("upload").addEventListener("change", async (event) => {
      const file = event.target.files[0];
      if (!file) return;
      const form = new FormData();
      form.append("file", file);
      const res = await fetch("/api/upload", { method: "POST", body: form });
      setStatus(res.ok ? "Uploaded" : "Upload failed", !res.ok);
      event.target.value = "";
      loadBooks();
    });
    $("export").addEventListener("click", async () => {
      const payload = await fetchJson("/api/export");
      const blob = new Blob([JSON.stringify(payload, null, 2)], { type: "application/json" });
      const link = document.createElement("a");
      link.href = URL.createObjectURL(blob);
      link.download = "yomu-backup.json";
      link.click();
      URL.revokeObjectURL(link.href);
    });
    $("import").addEventListener("change", async (event) => {
      const file = event.target.files[0];
      if (!file) return;
      const body = await file.text();
      const res = await fetch("/api/import", { method: "POST", headers: { "Content-Type": "application/json" }, body });
      setStatus(res.ok ? "Imported" : "Import failed", !res.ok);
      event.target.value = "";
      loadBooks();
      vocabularyChanged();
    });

    onVocabularyChanged(loadVocabulary);
    onVocabularyChanged(() => { if (state.book) loadRendering(state.book.id); });

    loadBooks().catch(() => setStatus("Could not load books", true));
    loadVocabulary();
    const params = new URLSearchParams(window.location.search);
    if (params.get("book")) openBook(params.get("book"), params.get("jump"));
  </script>
</body>
</html>
"""


@dataclass(slots=True)
class ReaderConfig:
    root: Path
    title: str = "yomu"
    transient_window: float = TRANSIENT_WINDOW
    jump_retry_delay: float = JUMP_RETRY_DELAY


def _render_index(config: ReaderConfig) -> str:
    return (
        INDEX_HTML.replace("__YOMU_TITLE__", config.title)
        .replace("__YOMU_FAVICON__", YOMU_FAVICON_URL)
        .replace("__YOMU_TRANSIENT_MS__", str(int(config.transient_window * 1000)))
        .replace("__YOMU_RETRY_MS__", str(int(config.jump_retry_delay * 1000)))
    )


def _parse_book_id(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=404, detail="Book not found") from None


def _decode_upload(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="ignore")


def create_reader_app(config: ReaderConfig, notifier: VocabularyNotifier | None = None) -> FastAPI:
    library = Library(config.root, notifier)

    app = FastAPI(title="yomu Reader")
    app.state.config = config
    app.state.library = library

    def _get_book(book_id: str):
        try:
            return library.get_book(_parse_book_id(book_id))
        except BookNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Book not found") from exc

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse(_render_index(config))

    @app.post("/api/upload")
    async def api_upload(
        file: UploadFile = File(...),
        title: str | None = Form(None),
    ) -> JSONResponse:
        filename = file.filename or ""
        content_type = (file.content_type or "").lower()
        if not filename.lower().endswith(".txt") and content_type != "text/plain":
            raise HTTPException(status_code=400, detail="Only .txt files are allowed")
        try:
            data = await file.read()
        finally:
            await file.close()
        try:
            book = library.add_book(filename, _decode_upload(data), title=title)
        except LibraryError as exc:
            logger.error("Upload of %s failed: %s", filename, exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return JSONResponse({"message": "File uploaded successfully", "book": book.to_payload()})

    @app.get("/api/books")
    def api_books(
        sort: str | None = Query(None, description="Sort order: recent or title"),
    ) -> JSONResponse:
        try:
            books = library.list_books(sort)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid sort mode.") from exc
        return JSONResponse([book.to_payload() for book in books])

    @app.get("/api/books/{book_id}/content")
    def api_book_content(book_id: str) -> PlainTextResponse:
        book = _get_book(book_id)
        try:
            text = library.read_content(book.id)
        except LibraryError as exc:
            raise HTTPException(status_code=500, detail="Error reading file") from exc
        return PlainTextResponse(text)

    @app.put("/api/books/{book_id}/content")
    def api_update_content(book_id: str, payload: dict[str, object] = Body(...)) -> JSONResponse:
        book = _get_book(book_id)
        content = payload.get("content") if isinstance(payload, Mapping) else None
        if not isinstance(content, str):
            raise HTTPException(status_code=400, detail="Content is required")
        try:
            library.write_content(book.id, content)
        except LibraryError as exc:
            raise HTTPException(status_code=500, detail="Error writing file") from exc
        return JSONResponse({"message": "Book content updated successfully"})

    @app.put("/api/books/{book_id}")
    def api_rename_book(book_id: str, payload: dict[str, object] = Body(...)) -> JSONResponse:
        book = _get_book(book_id)
        title = payload.get("title") if isinstance(payload, Mapping) else None
        if not isinstance(title, str) or not title.strip():
            raise HTTPException(status_code=400, detail="Title is required")
        try:
            updated = library.rename_book(book.id, title)
        except BookNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Book not found") from exc
        return JSONResponse({"message": "Book title updated successfully", "title": updated.title})

    @app.delete("/api/books/{book_id}")
    def api_delete_book(book_id: str) -> JSONResponse:
        book = _get_book(book_id)
        try:
            library.delete_book(book.id)
        except BookNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Book not found") from exc
        return JSONResponse({"message": "Book deleted successfully", "deletedFile": book.filename})

    @app.get("/api/books/{book_id}/rendering")
    def api_book_rendering(
        book_id: str,
        jump: str | None = Query(None, description="Term to flag as the jump target"),
    ) -> JSONResponse:
        book = _get_book(book_id)
        try:
            text = library.read_content(book.id)
        except LibraryError as exc:
            raise HTTPException(status_code=500, detail="Error reading file") from exc
        terms = VocabularyStoreAdapter(library.list_vocabulary).load(book.id)
        rendering = compile_rendering(text, terms, jump)
        records = serialize_records(terms)
        for entry, record in zip(records, terms):
            entry["displayContext"] = smart_truncate_context(record.context, record.original)
        return JSONResponse(
            {
                "book": book.to_payload(),
                "segments": serialize_segments(rendering),
                "records": records,
                "jump_index": rendering.jump_index,
            }
        )

    @app.get("/api/vocab")
    def api_list_vocab() -> JSONResponse:
        return JSONResponse(serialize_records(library.list_vocabulary()))

    @app.post("/api/vocab")
    def api_save_vocab(payload: dict[str, object] = Body(...)) -> JSONResponse:
        if not isinstance(payload, Mapping):
            raise HTTPException(status_code=400, detail="Invalid payload.")
        original = payload.get("original")
        if not isinstance(original, str) or not original.strip():
            raise HTTPException(status_code=400, detail="Original text is required")
        translation = payload.get("translation")
        context = payload.get("context")
        book_value = payload.get("bookId")
        if book_value is None:
            book_value = payload.get("documentId")
        book_id: int | None = None
        if book_value is not None:
            book_id = _get_book(str(book_value)).id
        record_id = library.add_vocabulary(
            original,
            translation if isinstance(translation, str) else "",
            context if isinstance(context, str) else "",
            book_id,
        )
        return JSONResponse({"message": "Vocabulary saved", "id": record_id})

    @app.delete("/api/vocab/{record_id}")
    def api_delete_vocab(record_id: str) -> JSONResponse:
        try:
            numeric_id = int(record_id)
        except ValueError:
            raise HTTPException(status_code=404, detail="Vocabulary not found") from None
        if not library.delete_vocabulary(numeric_id):
            raise HTTPException(status_code=404, detail="Vocabulary not found")
        return JSONResponse({"message": "Vocabulary deleted successfully"})

    @app.get("/api/export")
    def api_export() -> JSONResponse:
        return JSONResponse(library.export_data())

    @app.post("/api/import")
    def api_import(payload: dict[str, object] = Body(...)) -> JSONResponse:
        try:
            imported = library.import_data(payload)
        except ValueError as exc:
            logger.warning("Rejected import payload: %s", exc)
            raise HTTPException(status_code=400, detail="Invalid import data") from exc
        return JSONResponse({"message": "Import completed", "imported": imported})

    return app
