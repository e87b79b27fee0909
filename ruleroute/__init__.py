"""Rule selection and routing engine for LLM context bundles."""

__version__ = "0.3.0"
