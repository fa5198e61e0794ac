"""MEMOmiles itinerary core: trips, days, stops, geocoding and routes."""
