from .swing_zone import SwingTracker, classify_zone

__all__ = ['SwingTracker', 'classify_zone']
