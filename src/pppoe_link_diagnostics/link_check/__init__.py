"""Core probing, classification and diagnosis for PPPoE link checks."""

# Submodules are imported explicitly by callers so that library consumers and
# tests do not pick up CLI wiring or shell collaborators at import time.

__all__: list[str] = []
