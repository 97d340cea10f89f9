from procmon.config.settings import Settings

__all__ = ['Settings']
