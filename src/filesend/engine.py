"""
=============================================================================
REQUEST ENGINE
=============================================================================

FileSend turns one (request, response) pair into the right status, headers
and bytes for a file under the configured root. It is a small state
machine; every arrow that leaves the main line terminates the request:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST STATE MACHINE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   START                                                             │
    │     │  headers already sent ─────────────────► "Can't set headers"  │
    │     ▼                                                               │
    │   METHOD CHECK ── not GET/HEAD ──────────────► 405 (empty)          │
    │     ▼                                                               │
    │   PATH VALIDATE ── bad escape / NUL ─────────► 400                  │
    │     │            ── escapes root ────────────► 403                  │
    │     │            ── ignored: deny / ignore ──► 403 / 404            │
    │     ▼                                                               │
    │   STAT ── ENOENT/ENAMETOOLONG/ENOTDIR ───────► 404                  │
    │     │  ── other OSError ─────────────────────► 500 (message)        │
    │     │  ── directory ──► INDEX RESOLVE ──► 301 / serve index /       │
    │     │                                     directory hook / 403      │
    │     │  ── file with trailing slash ──────────► 404                  │
    │     ▼                                                               │
    │   HEADER INIT  (Accept-Ranges, Content-Type, Cache-Control,         │
    │     │           Last-Modified, ETag: each only if absent)           │
    │     │  on_headers(context)                                          │
    │     ▼                                                               │
    │   CONDITIONAL CHECK ── precondition failed ──► 412 (empty)          │
    │     │               ── fresh ────────────────► 304 (empty)          │
    │     ▼                                                               │
    │   HEAD? ─────────────────────────────────────► headers only         │
    │     ▼                                                               │
    │   RANGE PLAN ── unsatisfiable ───────────────► 416 (empty)          │
    │     ▼                                                               │
    │   SEND  on_file(context, stat)                                      │
    │         source → stages → response                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Failures are raised as HTTPError subclasses and caught once, at the top of
send(), which renders them. Nothing is retried.

=============================================================================
ERRORS AFTER THE HEAD IS FLUSHED
=============================================================================

Once the status line is on the wire it cannot change. An error after that
point degrades to:

    body not streaming yet   →  write "Can't set headers after they are sent."
                                and end
    body streaming           →  destroy the response (close the connection)

Never a second status line.

=============================================================================
EXTENSION POINTS
=============================================================================

    SendConfig.on_directory(context)         directory with no index
    SendConfig.on_error(context, error)      replace the HTML error document
    SendConfig.on_headers(context)           inspect/rewrite default headers
    SendConfig.on_file(context, stat)        body is about to stream
    FileSend.use(stage)                      body transform stages

=============================================================================
"""

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from .conditional import is_cachable, is_conditional_request, is_fresh, is_precondition_failed
from .config import SendConfig
from .errors import (
    HTTPError,
    HeadersSentError,
    Forbidden,
    InternalError,
    MethodNotAllowed,
    NotFound,
    PreconditionFailed,
    RangeNotSatisfiable,
    StreamError,
)
from .etag import stat_etag
from .filesystem import FileSystem, LocalFileSystem, ResourceStat, is_not_found_error
from .http.mime_types import lookup
from .http.request import FileRequest
from .http.response import (
    Body,
    Response,
    create_error_document,
    create_redirect_document,
    encode_path,
    format_http_date,
)
from .http.status_codes import HTTPStatus
from .ignore import AccessDecision, IgnoreMatcher
from .index import IndexAction, resolve_index
from .middleware.base import StreamPipeline
from .ranges import Multipart, RangePlan, Single, Unsatisfiable, Whole, plan_ranges
from .sandbox import ResourceLocator, resolve


logger = logging.getLogger(__name__)


HEADERS_SENT_MESSAGE = "Can't set headers after they are sent."

ALLOWED_METHODS = ("GET", "HEAD")

# Headers describing the file; meaningless on an error document
_ENTITY_HEADERS = ("Content-Length", "Content-Range", "ETag", "Last-Modified")


@dataclass
class RequestContext:
    """
    Everything the engine knows about one request, owned by that request.

    Hooks receive the context, so they can look at what was resolved
    (locator, stat, plan) and at the live response.
    """

    request: FileRequest
    response: Response
    config: SendConfig
    locator: Optional[ResourceLocator] = None
    stat: Optional[ResourceStat] = None
    plan: Optional[RangePlan] = None
    streaming: bool = False
    started: float = field(default_factory=time.perf_counter)

    @property
    def path(self) -> str:
        """Decoded request path once resolved, raw path before."""
        return self.locator.path if self.locator else self.request.path

    @property
    def realpath(self) -> Optional[str]:
        return self.locator.realpath if self.locator else None

    @property
    def is_head(self) -> bool:
        return self.request.is_head


class FileSend:
    """
    Static file engine for a root directory.

    Usage:
        engine = FileSend(SendConfig(root="public", max_age="1h"))
        engine.use(TransferLogStage())

        response = BufferedResponse()
        engine.send(FileRequest("GET", "/index.html"), response)

    Options may also be passed as keywords:

        engine = FileSend(root="public", index=["index.html", "index.htm"])
    """

    mime = staticmethod(lookup)

    def __init__(
        self,
        config: Optional[SendConfig] = None,
        filesystem: Optional[FileSystem] = None,
        etag_func: Callable[..., str] = stat_etag,
        mime: Optional[Callable[[str], Optional[str]]] = None,
        **options,
    ):
        if config is None:
            config = SendConfig(**options)
        elif options:
            config = dataclasses.replace(config, **options)

        self.config = config
        self.filesystem = filesystem or LocalFileSystem()
        self.etag_func = etag_func
        if mime is not None:
            self.mime = mime
        self.matcher = IgnoreMatcher(config.ignore, dot=config.glob_dot)
        self.pipeline = StreamPipeline()

    def use(self, *stages) -> "FileSend":
        """Attach body stages shared by every request."""
        self.pipeline.use(*stages)
        return self

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def send(
        self,
        request: FileRequest,
        response: Response,
        stages: Iterable = (),
    ) -> RequestContext:
        """
        Answer `request` on `response`.

        Args:
            request: Method, raw path and request headers.
            response: Sink to write status, headers and body to.
            stages: Extra body stages for this request only (run after the
                    engine-wide ones).

        Returns:
            The request context (resolved locator, stat and range plan).
        """
        context = RequestContext(request=request, response=response, config=self.config)
        stages = tuple(stages)
        pipeline = self.pipeline.extend(stages) if stages else self.pipeline

        if response.headers_sent:
            self._headers_already_sent(context, None)
            return context

        try:
            self._dispatch(context, pipeline)
        except HTTPError as e:
            self._error(context, e)
        except HeadersSentError as e:
            self._headers_already_sent(context, e)
        except Exception as e:
            logger.exception(f"Unhandled error serving {context.path}")
            self._error(context, InternalError(str(e) or type(e).__name__))

        return context

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def _dispatch(self, context: RequestContext, pipeline: StreamPipeline) -> None:
        request = context.request
        config = self.config

        # ─── METHOD CHECK ───
        if request.method not in ALLOWED_METHODS:
            logger.debug(f"Method {request.method} not allowed for {request.path}")
            context.response.headers.set("Allow", ", ".join(ALLOWED_METHODS))
            raise MethodNotAllowed()

        # ─── PATH VALIDATE ───
        context.locator = resolve(config.root, request.path)
        self._check_access(context.locator)

        # ─── STAT ───
        stat = self._stat(context.locator)
        logger.debug(
            f"Resolved {context.path} -> {context.realpath} "
            f"(dir={stat.is_directory}, size={stat.size})"
        )

        if stat.is_directory:
            self._send_directory(context, pipeline)
            return

        if context.locator.has_trailing_slash or not stat.is_file:
            raise NotFound()

        self._send_file(context, pipeline, stat)

    def _check_access(self, locator: ResourceLocator) -> None:
        decision = self.matcher.decide(locator.path, self.config.ignore_access)
        if decision is AccessDecision.DENY:
            logger.warning(f"Denied ignored path: {locator.path}")
            raise Forbidden()
        if decision is AccessDecision.HIDE:
            logger.debug(f"Hidden ignored path: {locator.path}")
            raise NotFound()

    def _stat(self, locator: ResourceLocator) -> ResourceStat:
        try:
            return self.filesystem.stat(locator.realpath)
        except OSError as e:
            if is_not_found_error(e):
                raise NotFound() from e
            logger.error(f"Stat failed for {locator.realpath}: {e}")
            raise InternalError(str(e)) from e

    # ─── DIRECTORIES ───

    def _send_directory(self, context: RequestContext, pipeline: StreamPipeline) -> None:
        result = resolve_index(
            context.locator,
            self.config.index,
            self.filesystem,
            self.matcher,
        )

        if result.action is IndexAction.REDIRECT:
            self._redirect(context, result.location)
        elif result.action is IndexAction.SERVE:
            logger.debug(f"Serving index {result.locator.path} for {context.path}")
            context.locator = result.locator
            self._send_file(context, pipeline, result.stat)
        else:
            self._directory(context)

    def _directory(self, context: RequestContext) -> None:
        hook = self.config.on_directory
        if hook is None:
            logger.debug(f"No index for {context.path} and no directory hook")
            raise Forbidden()

        body = hook(context)
        if not context.response.finished:
            self._end(context, body or b"")

    def _redirect(self, context: RequestContext, location: str) -> None:
        response = context.response
        self._ensure_head_unsent(response)

        location = encode_path(location)
        if context.request.query:
            location = f"{location}?{context.request.query}"
        href, document = create_redirect_document(location)
        body = document.encode("utf-8")

        logger.debug(f"Redirecting {context.path} -> {href}")
        response.set_status(HTTPStatus.MOVED_PERMANENTLY)
        headers = response.headers
        headers.set("Cache-Control", "no-cache")
        headers.set("Content-Type", "text/html; charset=UTF-8")
        headers.set("Content-Length", len(body))
        headers.set("Content-Security-Policy", "default-src 'self'")
        headers.set("X-Content-Type-Options", "nosniff")
        headers.set("Location", href)
        response.end(b"" if context.is_head else body)

    # ─── FILES ───

    def _init_headers(self, context: RequestContext, stat: ResourceStat) -> None:
        config = self.config
        headers = context.response.headers

        if config.accept_ranges and "Accept-Ranges" not in headers:
            headers.set("Accept-Ranges", "bytes")

        if "Content-Type" not in headers:
            mime_type = self.mime(context.locator.path)
            if mime_type:
                if config.charset:
                    mime_type = f"{mime_type}; charset={config.charset}"
                headers.set("Content-Type", mime_type)

        if config.cache_control and "Cache-Control" not in headers:
            headers.set("Cache-Control", config.cache_control_value)

        if config.last_modified and "Last-Modified" not in headers:
            headers.set("Last-Modified", format_http_date(stat.mtime))

        if config.etag and "ETag" not in headers:
            headers.set("ETag", self.etag_func(stat.size, stat.mtime))

    def _send_file(
        self,
        context: RequestContext,
        pipeline: StreamPipeline,
        stat: ResourceStat,
    ) -> None:
        config = self.config
        request = context.request
        response = context.response
        headers = response.headers
        context.stat = stat

        # ─── HEADER INIT ───
        self._init_headers(context, stat)
        if config.on_headers is not None:
            config.on_headers(context)

        # ─── CONDITIONAL CHECK ───
        etag = headers.get("ETag")
        last_modified = headers.get("Last-Modified")

        if is_conditional_request(request.headers) and is_cachable(response.status):
            if is_precondition_failed(request.headers, etag, last_modified):
                logger.debug(f"Precondition failed for {context.path}")
                raise PreconditionFailed()
            if is_fresh(request.headers, etag, last_modified):
                logger.debug(f"Not modified: {context.path}")
                self._end_empty(context, HTTPStatus.NOT_MODIFIED)
                return

        # ─── HEAD ───
        if context.is_head:
            headers.set("Content-Length", stat.size)
            response.end()
            return

        # ─── RANGE PLAN ───
        # Ranges only apply to a plain 200; a caller-chosen status is kept
        plan = plan_ranges(
            request.get_header("range") if response.status == HTTPStatus.OK else None,
            request.get_header("if-range"),
            stat.size,
            etag=etag,
            last_modified=last_modified,
            content_type=headers.get("Content-Type"),
            accept_ranges=config.accept_ranges,
        )
        context.plan = plan
        logger.debug(f"Range plan for {context.path}: {type(plan).__name__}")

        if isinstance(plan, Unsatisfiable):
            headers.set("Content-Range", plan.content_range)
            raise RangeNotSatisfiable()

        if isinstance(plan, Single):
            response.set_status(HTTPStatus.PARTIAL_CONTENT)
            headers.set("Content-Range", plan.content_range)
        elif isinstance(plan, Multipart):
            response.set_status(HTTPStatus.PARTIAL_CONTENT)
            headers.set("Content-Type", plan.content_type)
        headers.set("Content-Length", plan.content_length)

        # ─── SEND ───
        if config.on_file is not None:
            config.on_file(context, stat)

        context.streaming = True
        pipeline.run(
            self._body(context, plan),
            response,
            context=context,
            on_error=lambda error: self._stream_error(context, error),
        )

    def _body(self, context: RequestContext, plan: RangePlan) -> Iterator[bytes]:
        """Frames and file spans, in plan order, one read open at a time."""
        realpath = context.realpath
        chunk_size = self.config.chunk_size
        read = self.filesystem.read

        if isinstance(plan, Multipart):
            for part in plan.parts:
                yield part.open_frame
                yield from read(realpath, part.start, part.end, chunk_size)
                if part.close_frame:
                    yield part.close_frame
        elif isinstance(plan, Single):
            yield from read(realpath, plan.span.start, plan.span.end, chunk_size)
        elif isinstance(plan, Whole) and plan.size:
            yield from read(realpath, 0, plan.size - 1, chunk_size)

    # =========================================================================
    # TERMINATION
    # =========================================================================

    @staticmethod
    def _ensure_head_unsent(response: Response) -> None:
        if response.headers_sent:
            raise HeadersSentError()

    def _end_empty(self, context: RequestContext, status: int) -> None:
        """412, 304, 405, 416: status and headers, no body, no Content-Type."""
        response = context.response
        self._ensure_head_unsent(response)
        response.set_status(status)
        response.headers.remove("Content-Type")
        response.end()

    def _error(self, context: RequestContext, error: HTTPError) -> None:
        response = context.response
        status = int(error.status_code)

        if response.headers_sent:
            self._headers_already_sent(context, error)
            return

        if status >= 500:
            logger.error(f"{status} for {context.path}: {error.message}")
        else:
            logger.debug(f"{status} for {context.path}: {error.message}")

        if not error.has_body:
            self._end_empty(context, status)
            return

        response.set_status(status)
        for name in _ENTITY_HEADERS:
            response.headers.remove(name)

        hook = self.config.on_error
        if hook is not None:
            try:
                body = hook(context, error)
            except Exception:
                logger.exception(f"Error hook failed for {context.path}; sending the default document")
            else:
                if not self._settled(context, error):
                    self._end(context, body or b"")
                return
            if self._settled(context, error):
                return
            response.set_status(status)

        document = create_error_document(status, error.message).encode("utf-8")
        headers = response.headers
        headers.set("Cache-Control", "private")
        headers.set("Content-Type", "text/html; charset=UTF-8")
        headers.set("Content-Length", len(document))
        headers.set("Content-Security-Policy", "default-src 'self' 'unsafe-inline'")
        headers.set("X-Content-Type-Options", "nosniff")
        self._end(context, document)

    def _settled(self, context: RequestContext, error: HTTPError) -> bool:
        """True once nothing more can be written for this error."""
        response = context.response
        if response.finished or response.destroyed:
            return True
        if response.headers_sent:
            self._headers_already_sent(context, error)
            return True
        return False

    def _end(self, context: RequestContext, body: Body) -> None:
        context.response.end(b"" if context.is_head else body)

    def _stream_error(self, context: RequestContext, error: StreamError) -> None:
        cause = error.error
        response = context.response

        if response.headers_sent:
            logger.error(f"Body stream for {context.path} failed in {error.stage}: {cause}")
            response.destroy(cause)
            return

        if is_not_found_error(cause):
            self._error(context, NotFound())
        else:
            logger.error(f"Body stream for {context.path} failed in {error.stage}: {cause}")
            self._error(context, InternalError(str(cause)))

    def _headers_already_sent(
        self,
        context: RequestContext,
        error: Optional[BaseException],
    ) -> None:
        response = context.response
        logger.warning(
            f"Headers already sent for {context.path}"
            + (f", cannot report: {error}" if error else "")
        )

        if response.finished or response.destroyed:
            return
        if context.streaming:
            response.destroy(error)
            return
        response.end(HEADERS_SENT_MESSAGE)
