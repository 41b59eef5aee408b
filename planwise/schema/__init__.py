"""Schema package exports."""

from .lesson import LessonDocument
from .sections import ErrorKind, ErrorSection, SectionKind, UnknownSection, parse_section
from .validate_lesson import build_error_document, build_error_lesson, validate_lesson_payload

__all__ = ["ErrorKind", "ErrorSection", "LessonDocument", "SectionKind", "UnknownSection", "build_error_document", "build_error_lesson", "parse_section", "validate_lesson_payload"]
