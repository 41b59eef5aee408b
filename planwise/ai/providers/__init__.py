"""Provider implementations."""

from planwise.ai.providers.base import AIModel, BatchImageRequest, BatchImageResult, ImageModel, Provider

__all__ = ["AIModel", "BatchImageRequest", "BatchImageResult", "ImageModel", "Provider"]
