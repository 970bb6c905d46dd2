"""SQL Studio: streaming natural-language SQL assistant."""

__version__ = "0.1.0"
