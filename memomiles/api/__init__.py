# memomiles/api/__init__.py
