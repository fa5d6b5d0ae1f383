"""
Adapter layer for the file workflow.

Contains the object store (S3), the status and audit tables (DynamoDB) and
the notification queue (local/SQS). Provides mode-aware implementations that
work across deployment environments.
"""
