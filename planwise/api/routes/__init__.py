from . import lessons

__all__ = ["lessons"]
