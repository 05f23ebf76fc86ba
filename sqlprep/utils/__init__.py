from sqlprep.utils import logging, text

__all__ = ("logging", "text")
