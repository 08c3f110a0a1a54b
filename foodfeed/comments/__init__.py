"""
Video comments.

Responsibilities:
- Thread the flat, newest-first comment list into a reply tree.
- Cap reply depth.
- Post comments optimistically and roll back on failure.
"""
