from .discord_notifier import DiscordNotifier, COLOR_GREEN, COLOR_RED

__all__ = ['DiscordNotifier', 'COLOR_GREEN', 'COLOR_RED']
