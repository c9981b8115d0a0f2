"""Module installer (state-driven, resumable).

Core design goals:
- Required modules pull in their whole dependency closure
- One module installs at a time; a stuck module never stalls the batch
- Selection survives restarts and is applied incrementally
- Centralized logging
"""

__all__ = []
