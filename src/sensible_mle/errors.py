from __future__ import annotations


class MLEError(Exception):
    """Base class for errors raised by sensible_mle."""


class ModelError(MLEError, TypeError):
    """The model cannot be optimized as supplied (missing capability, bad shape)."""
