"""
Оркестратор жизненного цикла заказов интернет-магазина
"""

__version__ = "0.1.0"
