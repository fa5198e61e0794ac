# memomiles/api/services/__init__.py
