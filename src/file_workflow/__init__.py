"""
File workflow service.

Uploads land in an object store under in/out/archive folders, each file's
processing status is tracked in a status table, every upload emits a
notification, and every action is appended to an audit log.
"""
