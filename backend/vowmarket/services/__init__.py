"""Domain services. Import submodules directly, e.g. ``services.booking_lifecycle``."""
