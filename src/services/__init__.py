"""Services that wire the alert pipeline together."""

from src.services.alert_pipeline import AlertPipeline, PipelineComponents, create_pipeline

__all__ = ["AlertPipeline", "PipelineComponents", "create_pipeline"]
