"""Application layer: result types, DTOs and the interfaces services depend on."""

from .result import Err, ErrorKind, Ok, Result

__all__ = ["Err", "ErrorKind", "Ok", "Result"]
