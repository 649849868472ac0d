from .technical import TechnicalIndicators

__all__ = ['TechnicalIndicators']
