"""Task attachment service package.

Houses the chunked file store, the task-file use cases and the HTTP API
that exposes them.
"""
