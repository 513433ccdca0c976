"""solrelay prove - Proof request, chunked upload and on-chain validation."""
from .chunks import ProofChunk, decode_chunk_instruction, encode_chunk_instruction, split_into_chunks
from .client import ProofJob, ProofJobClient, backoff_delays
from .upload import ChunkUploader, UploadCursor, ValidationTrigger

__all__ = [
    "ProofChunk",
    "decode_chunk_instruction",
    "encode_chunk_instruction",
    "split_into_chunks",
    "ProofJob",
    "ProofJobClient",
    "backoff_delays",
    "ChunkUploader",
    "UploadCursor",
    "ValidationTrigger",
]
