"""
=============================================================================
STREAM PIPELINE
=============================================================================

The body of a file response is a stream of byte chunks. Before it reaches
the client it can pass through any number of transform STAGES, attached in
order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       BODY FLOW                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐      │
    │   │  source  │───►│ stage 1  │───►│ stage 2  │───►│   sink   │      │
    │   │ (file    │    │ (e.g.    │    │ (e.g.    │    │ (response│      │
    │   │  reads + │    │  log)    │    │  throttle│    │  write / │      │
    │   │  frames) │    │          │    │  )       │    │  end)    │      │
    │   └──────────┘    └──────────┘    └──────────┘    └──────────┘      │
    │                                                                      │
    │   pull-based: the sink iterates, each stage iterates the one        │
    │   before it, the source reads the file only when asked              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A stage is a callable taking the upstream chunk iterator and yielding
chunks. Because everything is a generator, stopping early (client went
away) is just closing the outermost iterator: the close travels upstream
and the file handle is released.

=============================================================================
ERROR FORWARDING
=============================================================================

When the source or any stage raises, the failure is wrapped in a
StreamError naming the stage, and every stage DOWNSTREAM of it is told via
its on_error() hook before the error reaches the pipeline's caller:

    source raises OSError
        │
        ├──► stage1.on_error(StreamError("source", OSError))
        ├──► stage2.on_error(StreamError("source", OSError))
        └──► run(..., on_error=handler) → handler(StreamError)

No failure is dropped, whichever stage produced it.

=============================================================================
TERMINAL WRITE
=============================================================================

run() ends the sink at most once. A second end is a no-op, both here (the
per-run latch) and in the Response itself.

=============================================================================
"""

import logging
from abc import ABC
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from ..errors import StreamError


logger = logging.getLogger(__name__)


Chunks = Iterable[bytes]
ErrorHandler = Callable[[StreamError], Any]


class Stage(ABC):
    """
    Base class for body transform stages.

    Override transform()/flush() for chunk-by-chunk transforms, or
    __call__ for anything that needs to see the whole stream:

        class UpperCase(Stage):
            def transform(self, chunk, context):
                return chunk.upper()

    Stages can be shared between concurrent requests: keep per-request
    state in local variables of __call__, not on self.
    """

    def __call__(self, chunks: Chunks, context: Any = None) -> Iterator[bytes]:
        for chunk in chunks:
            output = self.transform(chunk, context)
            if output:
                yield output
        tail = self.flush(context)
        if tail:
            yield tail

    def transform(self, chunk: bytes, context: Any) -> bytes:
        return chunk

    def flush(self, context: Any) -> bytes:
        return b""

    def on_error(self, error: StreamError, context: Any) -> None:
        """Called when a stage upstream of this one failed."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class FunctionStage(Stage):
    """
    Wraps a generator function as a stage.

    Usage:
        def count(chunks, context):
            for chunk in chunks:
                yield chunk

        pipeline.attach(FunctionStage(count))
    """

    def __init__(
        self,
        func: Callable[[Chunks, Any], Iterable[bytes]],
        name: Optional[str] = None,
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, chunks: Chunks, context: Any = None) -> Iterator[bytes]:
        return iter(self._func(chunks, context))

    @property
    def name(self) -> str:
        return self._name


def function_stage(func: Callable[[Chunks, Any], Iterable[bytes]]) -> FunctionStage:
    """
    Decorator turning a generator function into a stage.

        @function_stage
        def strip_bom(chunks, context):
            first = True
            for chunk in chunks:
                if first and chunk.startswith(b"\\xef\\xbb\\xbf"):
                    chunk = chunk[3:]
                first = False
                yield chunk
    """
    return FunctionStage(func)


def _as_stage(stage) -> Stage:
    if isinstance(stage, Stage):
        return stage
    if callable(stage):
        return FunctionStage(stage)
    raise TypeError(f"Stage must be callable, got {type(stage).__name__}")


class StreamPipeline:
    """
    Ordered chain of stages between a body source and a response sink.

    Usage:
        pipeline = StreamPipeline()
        pipeline.attach(TransferLogStage())
        pipeline.run(source, response, context=ctx, on_error=handle)
    """

    def __init__(self, stages: Sequence[Stage] = ()):
        self._stages: List[Stage] = []
        self.use(*stages)

    def attach(self, stage) -> "StreamPipeline":
        """Append a stage; first attached runs first."""
        stage = _as_stage(stage)
        self._stages.append(stage)
        logger.debug(f"Attached stage: {stage.name}")
        return self

    def use(self, *stages) -> "StreamPipeline":
        for stage in stages:
            self.attach(stage)
        return self

    def extend(self, stages: Iterable) -> "StreamPipeline":
        """Copy of this pipeline with `stages` appended."""
        return StreamPipeline(self._stages).use(*stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self):
        return iter(self._stages)

    # =========================================================================
    # RUNNING
    # =========================================================================

    def _guard(
        self,
        name: str,
        chunks: Iterable[bytes],
        downstream: Sequence[Stage],
        context: Any,
    ) -> Iterator[bytes]:
        """
        Re-yield `chunks`, turning a failure into a StreamError that every
        downstream stage is notified of.
        """
        iterator = iter(chunks)
        try:
            for chunk in iterator:
                yield chunk
        except StreamError:
            # already wrapped and forwarded by the stage that raised it
            raise
        except Exception as e:
            error = StreamError(name, e)
            for stage in downstream:
                try:
                    stage.on_error(error, context)
                except Exception as hook_error:
                    logger.error(f"Stage {stage.name} failed handling an error: {hook_error}")
            raise error from e
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

    def _chain(self, source: Iterable[bytes], context: Any) -> List[Iterator[bytes]]:
        """Guarded iterators from the source outwards."""
        chain = [self._guard("source", source, self._stages, context)]
        for index, stage in enumerate(self._stages):
            chain.append(self._guard(
                stage.name,
                stage(chain[-1], context),
                self._stages[index + 1:],
                context,
            ))
        return chain

    def build(self, source: Iterable[bytes], context: Any = None) -> Iterator[bytes]:
        """Wire source → stages and return the outermost iterator."""
        return self._chain(source, context)[-1]

    def run(
        self,
        source: Iterable[bytes],
        sink,
        context: Any = None,
        on_error: Optional[ErrorHandler] = None,
    ) -> bool:
        """
        Pump `source` through the stages into `sink`, then end it.

        Args:
            source: Iterable of body chunks.
            sink: Object with write(bytes), end() and a `closed` flag
                  (a Response).
            context: Passed to every stage.
            on_error: Receives the StreamError when a stage fails. When
                      omitted the error propagates.

        Returns:
            True when the sink was ended normally, False when the stream
            was cancelled or failed.
        """
        chain = self._chain(source, context)

        try:
            for chunk in chain[-1]:
                if sink.closed:
                    logger.debug("Sink closed by the client, stopping the body stream")
                    return False
                sink.write(chunk)

            if sink.closed:
                return False
            sink.end()
            return True
        except StreamError as error:
            if on_error is None:
                raise
            on_error(error)
            return False
        finally:
            # outermost first, so every stage sees GeneratorExit before its upstream
            for iterator in reversed(chain):
                iterator.close()
