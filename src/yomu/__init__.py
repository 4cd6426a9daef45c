from .highlight import AnnotatedRendering, Segment, compile_rendering
from .library import Book, BookNotFoundError, Library, LibraryError
from .locator import JumpRequest, LocateResult, OccurrenceLocator
from .reader import ReaderConfig, create_reader_app
from .session import LocalBackend, ReaderSession
from .vocab import TermSet, VocabularyNotifier, VocabularyRecord, VocabularyStoreAdapter

__all__ = [
    "AnnotatedRendering",
    "Segment",
    "compile_rendering",
    "Book",
    "Library",
    "LibraryError",
    "BookNotFoundError",
    "VocabularyRecord",
    "TermSet",
    "VocabularyNotifier",
    "VocabularyStoreAdapter",
    "OccurrenceLocator",
    "LocateResult",
    "JumpRequest",
    "LocalBackend",
    "ReaderSession",
    "ReaderConfig",
    "create_reader_app",
]
