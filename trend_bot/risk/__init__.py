from .position_sizer import PositionSizer, PositionPlan, ATR_STOP_MULTIPLIER

__all__ = ['PositionSizer', 'PositionPlan', 'ATR_STOP_MULTIPLIER']
