from sqldal.utils import logging

__all__ = ("logging",)
