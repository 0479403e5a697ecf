"""Adapters - Infrastructure implementations of core interfaces.

- datasource/: source type catalogue and the HTTP data source client
- storage/: key-value stores backing the registries
"""
