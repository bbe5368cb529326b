"""Inlay hints for implicit Ruby syntax, served as a python-lsp-server plugin."""
