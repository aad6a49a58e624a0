from .stream_assembler import (
    STREAM_ROOT_PATH,
    StreamAssembler,
    StreamFeedResult,
    StreamFinalizeResult,
)

__all__ = [
    "STREAM_ROOT_PATH",
    "StreamAssembler",
    "StreamFeedResult",
    "StreamFinalizeResult",
]
