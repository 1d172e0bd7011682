"""Command-line tools for sitechat.

- ``python -m sitechat.cli`` -- index content, purge the store, run a
  retrieval query or check connectivity (see :mod:`sitechat.cli.index`).
"""
