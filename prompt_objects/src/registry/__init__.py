from .registry import Registry, CapabilityAdapter, BoundTool

__all__ = ["Registry", "CapabilityAdapter", "BoundTool"]
