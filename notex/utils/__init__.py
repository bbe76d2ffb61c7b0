from .datetime import ensure_utc, epoch_millis, utc_now, utc_now_isoformat

__all__ = ["ensure_utc", "epoch_millis", "utc_now", "utc_now_isoformat"]
