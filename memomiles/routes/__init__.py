# memomiles/routes/__init__.py
"""HTTP and Socket.IO surfaces over the itinerary core."""
