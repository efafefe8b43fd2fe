from .human_queue import HumanQueue, HumanRequest

__all__ = ["HumanQueue", "HumanRequest"]
