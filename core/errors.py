#!/usr/bin/env python3
"""
errors.py — Error taxonomy for the content pipeline
----------------------------------------------------
Every error carries a short machine-readable ``code`` (e.g. "no-site")
next to the human message so an API layer can map it to a response.

  • NotFound     : referenced site/post/comment does not exist
  • StorageFault : the SQLite layer failed or rejected a write
  • DispatchFault: a single notification could not be recorded
  • FanoutFault  : feed propagation failed (never shown to authors)
"""


class CodeError(Exception):
    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code

    def __str__(self):
        return f"[{self.code}] {self.message}"


class NotFound(CodeError):
    pass


class StorageFault(CodeError):
    def __init__(self, message: str = "Storage failure"):
        super().__init__("storage", message)


class DispatchFault(CodeError):
    def __init__(self, message: str = "Notification dispatch failed"):
        super().__init__("dispatch", message)


class FanoutFault(CodeError):
    def __init__(self, message: str = "Feed fan-out failed"):
        super().__init__("fanout", message)
