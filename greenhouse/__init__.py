"""Greenhouse monitor package"""

from .core import GreenhouseServer

__all__ = ['GreenhouseServer']
