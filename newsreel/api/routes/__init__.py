from . import jobs, system

__all__ = ["jobs", "system"]
