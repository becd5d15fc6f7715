"""Kernel services.  Each takes a Session and flushes; callers commit."""
