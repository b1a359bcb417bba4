"""
Shared infrastructure for roster-sync: logging, connection pools,
retry, SQL identifier safety, Vault credentials, metrics and tracing.
"""
