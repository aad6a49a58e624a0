from .base import BaseModelClient, is_transient
from .opper import OpperClient

__all__ = ["BaseModelClient", "OpperClient", "is_transient"]
