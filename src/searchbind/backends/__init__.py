"""Backends — OpenSearch client, lock services and primary stores.

Built-in backends:
  - client: ``AsyncOpenSearch`` factory and cluster health
  - locks: in-process and Redis lock services
  - store: the ``PrimaryStore`` protocol and an in-memory store
"""
