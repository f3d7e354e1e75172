"""Single-site crawler that streams page text and links for llms.txt generation."""

__version__ = "0.1.0"
