"""test fixtures and utilities for docpanic.

this package contains rust samples and synthetic crates for testing
the panic analyser.
"""

from __future__ import annotations

# import commonly used fixtures for convenience
from .rust_samples import (
    CLOSURE_INDEX,
    DOCUMENTED_UNWRAP,
    EMPTY_BODY,
    PRIVATE_ABORT,
    PRIVATE_MODULE,
    UNDOCUMENTED_UNWRAP,
    create_synthetic_crate,
    write_crate,
)

__all__ = [
    "CLOSURE_INDEX",
    "DOCUMENTED_UNWRAP",
    "EMPTY_BODY",
    "PRIVATE_ABORT",
    "PRIVATE_MODULE",
    "UNDOCUMENTED_UNWRAP",
    "create_synthetic_crate",
    "write_crate",
]
