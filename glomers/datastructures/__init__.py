"""Datastructures shared by the glomers nodes."""

from .gcounter import CounterSlot, GCounter

__all__ = ["CounterSlot", "GCounter"]
