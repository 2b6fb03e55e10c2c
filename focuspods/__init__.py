"""
FocusPods - движок фокус-сессий и Pod'ов
"""

__version__ = "1.0.0"
