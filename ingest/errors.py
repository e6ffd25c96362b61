from __future__ import annotations


class IngestError(Exception):
    pass


class FetchError(IngestError):
    def __init__(
        self, url: str, *, status_code: int | None = None, reason: str | None = None
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        detail = f"HTTP {status_code}" if status_code is not None else reason
        super().__init__(f"fetch failed for {url}: {detail or 'unknown'}")


class ParseError(IngestError):
    pass


class PersistError(IngestError):
    pass


class RefreshError(IngestError):
    pass
