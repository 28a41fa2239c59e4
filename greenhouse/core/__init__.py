"""Core package"""

from .server import GreenhouseServer

__all__ = ['GreenhouseServer']
