from garden_monitor.blueprints.api.gardens import gardens_api

__all__ = ["gardens_api"]
