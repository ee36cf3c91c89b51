"""Send terminal output to an AI provider and get an improved script back."""

__version__ = "0.4.0"

__all__ = ["__version__"]
