"""
TISS Models
"""

from .guia import TISSGuia

__all__ = ['TISSGuia']
