"""UDP readers-writers database server with reader, writer and monitor clients."""

__version__ = "0.1.0"
__all__ = ["protocol", "server", "reader", "writer", "monitor"]