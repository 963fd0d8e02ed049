from .service import LUCK_EVENT_COLUMNS, LuckEventExporter, luck_event_rows

__all__ = ["LUCK_EVENT_COLUMNS", "LuckEventExporter", "luck_event_rows"]
